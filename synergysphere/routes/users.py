from flask import Blueprint, g

from synergysphere.schemas import UpdateProfileRequest, UserSearchQuery
from synergysphere.services import user_service
from synergysphere.util.auth import login_required
from synergysphere.util.http import success, parse_body, parse_query

users = Blueprint('users', __name__, url_prefix='/users')


@users.get('/search')
@login_required
def search():
    query = parse_query(UserSearchQuery)
    return success({'users': user_service.search_users(query.q, query.limit, exclude_id=g.user.id)})


@users.get('/<user_id>')
@login_required
def get_profile(user_id):
    user = user_service.get_user(user_id)
    profile = user.as_summary()
    profile['createdAt'] = user.createdAt
    return success({'user': profile})


@users.put('/profile')
@login_required
def update_profile():
    user = user_service.update_profile(g.user, parse_body(UpdateProfileRequest))
    return success({'user': user.as_public_dict()}, 'Profile updated successfully')


@users.delete('/account')
@login_required
def deactivate():
    user_service.deactivate(g.user)
    return success(message='Account deactivated successfully')
