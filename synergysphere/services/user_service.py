import logging
import re

import settings
from synergysphere.models.user import User, PUBLIC_FIELDS
from synergysphere.repository import Repository, Collection
from synergysphere.schemas import UpdateProfileRequest
from synergysphere.util.common import MongoId, ensure_object_id, utc_now
from synergysphere.util.exceptions import DocumentNotFoundException

logger = logging.getLogger(__name__)

db = Repository.get_instance(**settings.MONGO_CONN)

_SUMMARY_PROJECTION = {key: 1 for key in PUBLIC_FIELDS}


def get_user(user_id: MongoId) -> User:
    user = db.find_one(Collection.USER, User, id=user_id)
    if user is None:
        raise DocumentNotFoundException('User', user_id)
    return user


def find_by_email(email: str):
    return db.find_one(Collection.USER, User, email=email.lower())


def search_users(term: str, limit: int = 10, exclude_id=None) -> list:
    """
    Case-insensitive match on name or email among active users.
    """
    pattern = {'$regex': re.escape(term), '$options': 'i'}
    query = {'$or': [{'name': pattern}, {'email': pattern}], 'isActive': True}
    if exclude_id is not None:
        query['_id'] = {'$ne': exclude_id}
    return db.find(Collection.USER, projection=_SUMMARY_PROJECTION, limit=limit, sort=[('name', 1)], **query)


def summaries(user_ids) -> dict:
    """
    Maps user id strings to {_id, name, email, avatar} for populating references.
    """
    ids = list({ensure_object_id(i) for i in user_ids if i is not None})
    if not ids:
        return {}
    users = db.find(Collection.USER, projection=_SUMMARY_PROJECTION, _id={'$in': ids})
    return {str(u['_id']): u for u in users}


def populate(document: dict, lookup: dict, **fields) -> dict:
    """
    Adds user summaries to a document dict.
    :param document: dict to populate
    :param lookup: result of `summaries`
    :param fields: target field name to source id field name, e.g. author='authorId'
    """
    for target, source in fields.items():
        value = document.get(source)
        document[target] = lookup.get(str(value)) if value is not None else None
    return document


def update_profile(user: User, payload: UpdateProfileRequest) -> User:
    values = payload.values()
    update = {'updatedAt': utc_now()}
    if 'name' in values:
        update['name'] = values['name']
    if 'avatar' in values:
        update['avatar'] = values['avatar']
    for channel, enabled in (values.get('notifications') or {}).items():
        if enabled is not None:
            update[f'preferences.notifications.{channel}'] = enabled
    db.update_one(Collection.USER, user.id, {'$set': update})
    return get_user(user.id)


def deactivate(user: User) -> None:
    db.update_one(Collection.USER, user.id, {'$set': {'isActive': False, 'updatedAt': utc_now()}})
    db.delete_many(Collection.SESSION, userId=user.id)
    logger.info('Deactivated user %s', user.id)
