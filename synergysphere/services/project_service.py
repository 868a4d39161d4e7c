import logging
import re

import settings
from synergysphere import realtime
from synergysphere.models.project import Project, ProjectMember, merged_settings, role_permissions, progress_percentage
from synergysphere.models.user import User
from synergysphere.repository import Repository, Collection
from synergysphere.schemas import ProjectCreate, ProjectListQuery, ProjectUpdate, AddMemberRequest
from synergysphere.services import notification_service, user_service
from synergysphere.util.common import MongoId, ensure_object_id, same_id, utc_now
from synergysphere.util.exceptions import (
    AppError, DocumentNotFoundException, PermissionDeniedException, ValidationException,
)

logger = logging.getLogger(__name__)

db = Repository.get_instance(**settings.MONGO_CONN)

NULLABLE_FIELDS = ('description', 'startDate', 'dueDate')


def membership_query(user_id) -> dict:
    return {'$or': [{'ownerId': user_id}, {'members.userId': user_id}]}


def get_project(project_id: MongoId) -> Project:
    project = db.find_one(Collection.PROJECT, Project, id=project_id)
    if project is None:
        raise DocumentNotFoundException('Project', project_id)
    return project


def require_member(project: Project, user: User, message: str = 'Access denied to this project') -> None:
    if not project.is_member(user.id):
        raise PermissionDeniedException(message)


def require_permission(project: Project, user: User, permission: str, message: str) -> None:
    if not project.has_permission(user.id, permission):
        raise PermissionDeniedException(message)


def get_project_for_member(project_id, user: User) -> Project:
    project = get_project(project_id)
    require_member(project, user)
    return project


def project_ids_for(user_id) -> list:
    return [p['_id'] for p in db.find(Collection.PROJECT, projection={'_id': 1}, **membership_query(user_id))]


def projects_for(user: User) -> list:
    return db.find(Collection.PROJECT, Project, sort=[('updatedAt', -1)], **membership_query(user.id))


def list_projects(user: User, query: ProjectListQuery):
    q = membership_query(user.id)
    if query.status:
        q['status'] = query.status
    if query.search:
        pattern = {'$regex': re.escape(query.search), '$options': 'i'}
        q = {'$and': [q, {'$or': [{'name': pattern}, {'description': pattern}, {'tags': pattern}]}]}

    total = db.count(Collection.PROJECT, **q)
    projects = db.find(Collection.PROJECT, Project,
                       sort=[('updatedAt', -1)],
                       skip=(query.page - 1) * query.limit,
                       limit=query.limit,
                       **q)
    return projects, total


def create_project(user: User, payload: ProjectCreate) -> Project:
    project = Project(_id=None, ownerId=user.id, **payload.values(exclude_unset=False))
    project.members.append(ProjectMember.create(user.id, 'owner').as_dict())
    created = db.insert(Collection.PROJECT, project, return_type=Project)
    logger.info('User %s created project %s', user.id, created.id)
    return created


def update_project(project: Project, user: User, payload: ProjectUpdate) -> Project:
    require_permission(project, user, 'canEditProject', 'Not authorized to update this project')
    values = {k: v for k, v in payload.values().items() if v is not None or k in NULLABLE_FIELDS}
    now = utc_now()
    if values.get('status') == 'completed' and project.status != 'completed':
        values['completedAt'] = now
    elif 'status' in values and values['status'] != 'completed':
        values['completedAt'] = None
    if payload.settings is not None:
        values['settings'] = merged_settings(project.settings, payload.settings.values())
    values['updatedAt'] = now
    values['statistics.lastActivity'] = now
    db.update_one(Collection.PROJECT, project.id, {'$set': values})
    updated = get_project(project.id)
    realtime.emit_to_project(project.id, 'project_updated', {'project': updated.as_dict(), 'updatedBy': user.id})
    return updated


def delete_project(project: Project, user: User) -> None:
    """
    Deletes the project with its tasks, messages and notifications. Owner only.
    """
    if not project.is_owner(user.id):
        raise PermissionDeniedException('Only project owner can delete the project')
    db.delete_many(Collection.TASK, projectId=project.id)
    db.delete_many(Collection.MESSAGE, projectId=project.id)
    notification_service.delete_for_project(project.id)
    db.delete(Collection.PROJECT, _id=project.id)
    logger.info('User %s deleted project %s', user.id, project.id)
    realtime.emit_to_project(project.id, 'project_deleted', {'projectId': project.id})


def members_with_users(project: Project) -> list:
    lookup = user_service.summaries(m['userId'] for m in project.members)
    return [user_service.populate(dict(m), lookup, user='userId') for m in project.members]


def as_detail(project: Project) -> dict:
    d = project.as_dict()
    d['members'] = members_with_users(project)
    d['owner'] = user_service.summaries([project.ownerId]).get(str(project.ownerId))
    return d


def add_member(project: Project, actor: User, payload: AddMemberRequest) -> Project:
    require_permission(project, actor, 'canManageMembers', 'Not authorized to manage project members')
    if payload.userId:
        new_user = db.find_one(Collection.USER, User, id=payload.userId)
    else:
        new_user = user_service.find_by_email(payload.email)
    if new_user is None:
        raise DocumentNotFoundException('User')
    if project.is_member(new_user.id):
        raise ValidationException('User is already a member of this project')

    member = ProjectMember.create(new_user.id, payload.role,
                                  payload.permissions.values() if payload.permissions else None)
    now = utc_now()
    db.push(Collection.PROJECT, project.id, 'members', member)
    db.update_one(Collection.PROJECT, project.id, {'$set': {'updatedAt': now, 'statistics.lastActivity': now}})

    notification_service.create_notification(
        new_user.id, 'member_added',
        title=f'Added to project: {project.name}',
        message=f'{actor.name} added you to the project "{project.name}"',
        sender_id=actor.id,
        project_id=project.id,
        action_url=f'/projects/{project.id}',
        action_text='View Project')
    realtime.emit_to_project(project.id, 'member_added', {
        'projectId': project.id,
        'member': user_service.populate(member.as_dict(), user_service.summaries([new_user.id]), user='userId'),
        'addedBy': actor.id,
    })
    logger.info('User %s added %s to project %s as %s', actor.id, new_user.id, project.id, payload.role)
    return get_project(project.id)


def remove_member(project: Project, actor: User, user_id) -> Project:
    user_id = ensure_object_id(user_id)
    if not same_id(actor.id, user_id):
        require_permission(project, actor, 'canManageMembers', 'Not authorized to remove members')
    if project.is_owner(user_id):
        raise ValidationException('Cannot remove project owner')
    if project.get_member(user_id) is None:
        raise AppError('User is not a member of this project', 404)

    db.pull(Collection.PROJECT, project.id, 'members', {'userId': user_id})
    db.update_one(Collection.PROJECT, project.id, {'$set': {'updatedAt': utc_now()}})

    if not same_id(actor.id, user_id):
        notification_service.create_notification(
            user_id, 'member_removed',
            title=f'Removed from project: {project.name}',
            message=f'{actor.name} removed you from the project "{project.name}"',
            sender_id=actor.id,
            project_id=project.id)
    realtime.emit_to_project(project.id, 'member_removed', {
        'projectId': project.id, 'userId': user_id, 'removedBy': actor.id,
    })
    return get_project(project.id)


def update_member_role(project: Project, actor: User, user_id, role: str) -> Project:
    """
    Changes a member's role. Permissions are reset to the defaults of the new role.
    """
    require_permission(project, actor, 'canManageMembers', 'Not authorized to manage project members')
    user_id = ensure_object_id(user_id)
    if project.is_owner(user_id) or role == 'owner':
        raise ValidationException('Cannot change the owner role')
    member = project.get_member(user_id)
    if member is None:
        raise AppError('User is not a member of this project', 404)

    member['role'] = role
    member['permissions'] = role_permissions(role)
    db.update_one(Collection.PROJECT, project.id, {'$set': {'members': project.members, 'updatedAt': utc_now()}})
    realtime.emit_to_project(project.id, 'member_role_updated', {
        'projectId': project.id, 'userId': user_id, 'role': role,
    })
    return get_project(project.id)


def update_progress(project_id: MongoId) -> dict:
    """
    Recounts the project's tasks and stores the derived progress.
    Counting from scratch keeps the result correct even after an earlier write was lost.
    """
    project_id = ensure_object_id(project_id)
    total = db.count(Collection.TASK, projectId=project_id)
    completed = db.count(Collection.TASK, projectId=project_id, status='completed')
    progress = {
        'totalTasks': total,
        'completedTasks': completed,
        'percentage': progress_percentage(completed, total),
    }
    now = utc_now()
    db.update_one(Collection.PROJECT, project_id, {'$set': {'progress': progress, 'statistics.lastActivity': now}})
    return progress


def touch(project_id, messages: int = 0) -> None:
    update = {'$set': {'statistics.lastActivity': utc_now()}}
    if messages:
        update['$inc'] = {'statistics.totalMessages': messages}
    db.update_one(Collection.PROJECT, project_id, update)
