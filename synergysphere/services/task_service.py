import logging
import re
from typing import Optional, Tuple

import settings
from synergysphere import realtime
from synergysphere.models.project import Project
from synergysphere.models.task import Task, Subtask, Comment, TaskDependency, CLOSED_STATUSES
from synergysphere.models.user import User
from synergysphere.repository import Repository, Collection
from synergysphere.schemas import (
    TaskCreate, TaskUpdate, TaskListQuery, CommentCreate, SubtaskCreate, DependencyCreate,
)
from synergysphere.services import notification_service, project_service, user_service
from synergysphere.util.common import MongoId, ensure_object_id, same_id, utc_now
from synergysphere.util.exceptions import (
    DocumentNotFoundException, ListItemNotFoundException, PermissionDeniedException, ValidationException,
)

logger = logging.getLogger(__name__)

db = Repository.get_instance(**settings.MONGO_CONN)

# fields recorded as plain `updated` activity when changed
TRACKED_FIELDS = ('title', 'description', 'priority', 'startDate', 'progress',
                  'estimatedHours', 'actualHours', 'tags', 'position', 'isArchived')
NULLABLE_FIELDS = ('assignee', 'description', 'dueDate', 'startDate', 'estimatedHours', 'actualHours')


def load_task(task_id: MongoId) -> Tuple[Task, Project]:
    """
    Fetches a task together with its project in one lookup.
    :raises DocumentNotFoundException: if the task, or the project it belongs to, does not exist
    """
    rows = db.join(Collection.TASK, 'projectId', Collection.PROJECT, '_id', 'project', unwind=True, id=task_id)
    if not rows:
        raise DocumentNotFoundException('Task', task_id)
    row = rows[0]
    project = Project.from_dict(row.pop('project'), True)
    return Task.from_dict(row, True), project


def load_task_for_member(task_id, user: User) -> Tuple[Task, Project]:
    task, project = load_task(task_id)
    if not project.is_member(user.id) and not same_id(task.assigneeId, user.id):
        raise PermissionDeniedException('Access denied to this task')
    return task, project


def as_api(task: Task, detail: bool = False) -> dict:
    return as_api_list([task], detail)[0]


def as_api_list(tasks: list, detail: bool = False) -> list:
    """
    Task dicts with derived fields and assignee/creator summaries.
    With `detail`, comment authors are populated too.
    """
    ids = set()
    for task in tasks:
        ids.update((task.assigneeId, task.creatorId))
        if detail:
            ids.update(c['authorId'] for c in task.comments)
    lookup = user_service.summaries(ids)
    result = []
    for task in tasks:
        d = user_service.populate(task.as_api_dict(), lookup, assignee='assigneeId', creator='creatorId')
        if detail:
            d['comments'] = [user_service.populate(dict(c), lookup, author='authorId') for c in task.comments]
        result.append(d)
    return result


def list_tasks(user: User, query: TaskListQuery):
    q = {}
    if query.project:
        project = project_service.get_project(query.project)
        project_service.require_member(project, user)
        q['projectId'] = project.id
    else:
        q['projectId'] = {'$in': project_service.project_ids_for(user.id)}
    if query.assignee:
        q['assigneeId'] = ensure_object_id(query.assignee)
    if query.status:
        q['status'] = query.status
    if query.priority:
        q['priority'] = query.priority

    due = {}
    if query.dueDateFrom:
        due['$gte'] = query.dueDateFrom
    if query.dueDateTo:
        due['$lte'] = query.dueDateTo
    if query.overdue:
        due['$lt'] = utc_now()
        if not query.status:
            q['status'] = {'$nin': list(CLOSED_STATUSES)}
    if due:
        q['dueDate'] = due
    if query.search:
        pattern = {'$regex': re.escape(query.search), '$options': 'i'}
        q['$or'] = [{'title': pattern}, {'description': pattern}]

    total = db.count(Collection.TASK, **q)
    tasks = db.find(Collection.TASK, Task,
                    sort=[(query.sortBy, 1 if query.sortOrder == 'asc' else -1)],
                    skip=(query.page - 1) * query.limit,
                    limit=query.limit,
                    **q)
    return tasks, total


def _require_assignable(project: Project, assignee_id) -> None:
    if assignee_id is not None and not project.is_member(assignee_id):
        raise ValidationException('Assignee must be a member of the project')


def create_task(user: User, payload: TaskCreate, project_id=None) -> Task:
    project_id = project_id or payload.project
    if project_id is None:
        raise ValidationException('Project is required')
    project = project_service.get_project(project_id)
    if not project.has_permission(user.id, 'canCreateTasks'):
        raise PermissionDeniedException('Not authorized to create tasks in this project')

    assignee_id = ensure_object_id(payload.assignee) if payload.assignee else None
    _require_assignable(project, assignee_id)

    values = payload.values(exclude_unset=False)
    for key in ('project', 'assignee'):
        del values[key]
    task = Task(_id=None, projectId=project.id, creatorId=user.id, assigneeId=assignee_id, **values)
    task.watchers = [user.id] if assignee_id is None or same_id(assignee_id, user.id) else [user.id, assignee_id]
    task.add_activity('created', user.id, 'Task created')
    task = db.insert(Collection.TASK, task, return_type=Task)
    project_service.update_progress(project.id)

    if assignee_id is not None and not same_id(assignee_id, user.id):
        notification_service.create_notification(
            assignee_id, 'task_assigned',
            title='New task assigned',
            message=f'You have been assigned to "{task.title}" in project "{project.name}"',
            sender_id=user.id, project_id=project.id, task_id=task.id,
            priority='high' if task.priority in ('high', 'urgent') else 'medium',
            action_url=f'/tasks/{task.id}', action_text='View Task')
    others = [m for m in project.member_ids() if not same_id(m, assignee_id)]
    notification_service.notify_many(
        others, exclude_id=user.id,
        type_='task_created',
        title=f'New task in {project.name}',
        message=f'{user.name} created "{task.title}"',
        sender_id=user.id, project_id=project.id, task_id=task.id,
        priority='low')

    realtime.emit_to_project(project.id, 'task_created', {'task': as_api(task), 'createdBy': user.id})
    logger.info('User %s created task %s in project %s', user.id, task.id, project.id)
    return task


def _save(task: Task) -> Task:
    task.updatedAt = utc_now()
    saved = db.update(Collection.TASK, task, Task)
    project_service.update_progress(task.projectId)
    return saved


def _notify_watchers(task: Task, project: Project, actor: User, type_: str, title: str, message: str,
                     extra_recipients=()) -> None:
    recipients = [task.assigneeId, *task.watchers, *extra_recipients]
    notification_service.notify_many(
        recipients, exclude_id=actor.id,
        type_=type_, title=title, message=message,
        sender_id=actor.id, project_id=project.id, task_id=task.id,
        action_url=f'/tasks/{task.id}', action_text='View Task')


def assign(task: Task, project: Project, actor: User, assignee_id) -> None:
    """
    Changes the assignee in place, recording activity and watching the task on their behalf.
    """
    _require_assignable(project, assignee_id)
    old = task.assigneeId
    task.assigneeId = assignee_id
    if assignee_id is None:
        task.add_activity('assigned', actor.id, 'Task unassigned', old, None)
        return
    task.add_activity('assigned', actor.id, 'Task assigned', old, assignee_id)
    if not task.is_watched_by(assignee_id):
        task.watchers.append(assignee_id)
    if not same_id(assignee_id, actor.id):
        notification_service.create_notification(
            assignee_id, 'task_assigned',
            title='Task assigned to you',
            message=f'{actor.name} assigned you to "{task.title}"',
            sender_id=actor.id, project_id=project.id, task_id=task.id,
            action_url=f'/tasks/{task.id}', action_text='View Task')


def update_task(user: User, task_id, payload: TaskUpdate) -> Task:
    task, project = load_task(task_id)
    if not project.has_permission(user.id, 'canEditTasks'):
        raise PermissionDeniedException('Not authorized to edit this task')

    values = {k: v for k, v in payload.values().items() if v is not None or k in NULLABLE_FIELDS}
    changes = []
    if 'assignee' in values:
        assignee_id = ensure_object_id(values['assignee']) if values['assignee'] else None
        if str(assignee_id) != str(task.assigneeId):
            assign(task, project, user, assignee_id)
            changes.append('assignee')
    if values.get('status') and values['status'] != task.status:
        old = task.status
        task.set_status(values['status'])
        task.add_activity('status_changed', user.id, f'Status changed from {old} to {task.status}', old, task.status)
        changes.append('status')
    if 'dueDate' in values and values['dueDate'] != task.dueDate:
        task.add_activity('due_date_changed', user.id, 'Due date changed', task.dueDate, values['dueDate'])
        task.dueDate = values['dueDate']
        changes.append('dueDate')
    for key in TRACKED_FIELDS:
        if key in values and values[key] != getattr(task, key):
            task.add_activity('updated', user.id, f'{key} updated', getattr(task, key), values[key])
            setattr(task, key, values[key])
            changes.append(key)

    if not changes:
        return task
    task = _save(task)
    _notify_watchers(task, project, user, 'task_updated',
                     title='Task updated',
                     message=f'{user.name} updated "{task.title}" ({", ".join(changes)})')
    realtime.emit_to_project(project.id, 'task_updated', {
        'task': as_api(task), 'changes': changes, 'updatedBy': user.id,
    })
    return task


def update_status(user: User, task_id, status: str) -> Task:
    task, project = load_task_for_member(task_id, user)
    if status == task.status:
        return task
    old = task.status
    task.set_status(status)
    task.add_activity('status_changed', user.id, f'Status changed from {old} to {status}', old, status)
    task = _save(task)

    if status == 'completed':
        _notify_watchers(task, project, user, 'task_completed',
                         title='Task completed',
                         message=f'{user.name} completed "{task.title}"',
                         extra_recipients=[task.creatorId])
    realtime.emit_to_project(project.id, 'task_status_updated', {
        'taskId': task.id, 'oldStatus': old, 'newStatus': status, 'updatedBy': user.id,
    })
    return task


def delete_task(user: User, task_id) -> None:
    """
    Deletes the task, then removes it from other tasks' dependency lists.
    The two writes are independent.
    """
    task, project = load_task(task_id)
    if not project.has_permission(user.id, 'canDeleteTasks'):
        raise PermissionDeniedException('Not authorized to delete this task')
    db.delete(Collection.TASK, _id=task.id)
    db.update_many(Collection.TASK, {'dependencies.taskId': task.id},
                   {'$pull': {'dependencies': {'taskId': task.id}}})
    project_service.update_progress(project.id)
    realtime.emit_to_project(project.id, 'task_deleted', {'taskId': task.id, 'deletedBy': user.id})
    logger.info('User %s deleted task %s', user.id, task.id)


def add_comment(user: User, task_id, payload: CommentCreate) -> dict:
    task, project = load_task_for_member(task_id, user)
    mentions = [ensure_object_id(m) for m in payload.mentions]
    comment = Comment(authorId=user.id, content=payload.content, mentions=mentions)
    task.comments.append(comment.as_dict())
    task.add_activity('comment_added', user.id, 'Comment added')
    task = _save(task)

    _notify_watchers(task, project, user, 'task_comment',
                     title='New comment on task',
                     message=f'{user.name} commented on "{task.title}"',
                     extra_recipients=[m for m in mentions if project.is_member(m)])
    added = user_service.populate(comment.as_dict(), user_service.summaries([user.id]), author='authorId')
    realtime.emit_to_project(project.id, 'task_comment_added', {'taskId': task.id, 'comment': added})
    return added


def add_subtask(user: User, task_id, payload: SubtaskCreate) -> dict:
    task, project = load_task(task_id)
    if not project.has_permission(user.id, 'canEditTasks'):
        raise PermissionDeniedException('Not authorized to edit this task')
    subtask = Subtask(title=payload.title)
    task.subtasks.append(subtask.as_dict())
    _save(task)
    realtime.emit_to_project(project.id, 'subtask_added', {'taskId': task.id, 'subtask': subtask.as_dict()})
    return subtask.as_dict()


def toggle_subtask(user: User, task_id, subtask_id) -> dict:
    task, project = load_task_for_member(task_id, user)
    subtask = next((s for s in task.subtasks if same_id(s['_id'], subtask_id)), None)
    if subtask is None:
        raise ListItemNotFoundException(task.id, 'subtasks', subtask_id)
    subtask['completed'] = not subtask['completed']
    subtask['completedAt'] = utc_now() if subtask['completed'] else None
    _save(task)
    realtime.emit_to_project(project.id, 'subtask_toggled', {
        'taskId': task.id, 'subtaskId': subtask['_id'], 'completed': subtask['completed'],
    })
    return subtask


def toggle_watch(user: User, task_id) -> bool:
    """
    :return: True if the user now watches the task
    """
    task, _ = load_task_for_member(task_id, user)
    if task.is_watched_by(user.id):
        db.pull(Collection.TASK, task.id, 'watchers', user.id)
        return False
    db.push(Collection.TASK, task.id, 'watchers', user.id)
    return True


def add_dependency(user: User, task_id, payload: DependencyCreate) -> Task:
    task, project = load_task(task_id)
    if not project.has_permission(user.id, 'canEditTasks'):
        raise PermissionDeniedException('Not authorized to edit this task')
    other_id = ensure_object_id(payload.taskId)
    if same_id(other_id, task.id):
        raise ValidationException('A task cannot depend on itself')
    other = db.find_one(Collection.TASK, Task, _id=other_id)
    if other is None:
        raise DocumentNotFoundException('Dependency task', other_id)
    if not same_id(other.projectId, task.projectId):
        raise ValidationException('Dependencies must belong to the same project')
    if any(same_id(d['taskId'], other_id) for d in task.dependencies):
        raise ValidationException('Dependency already exists')
    task.dependencies.append(TaskDependency(taskId=other_id, type=payload.type).as_dict())
    return _save(task)


def remove_dependency(user: User, task_id, dependency_task_id) -> Task:
    task, project = load_task(task_id)
    if not project.has_permission(user.id, 'canEditTasks'):
        raise PermissionDeniedException('Not authorized to edit this task')
    remaining = [d for d in task.dependencies if not same_id(d['taskId'], dependency_task_id)]
    if len(remaining) == len(task.dependencies):
        raise ListItemNotFoundException(task.id, 'dependencies', dependency_task_id)
    task.dependencies = remaining
    return _save(task)


def overdue_tasks(user: User, limit: Optional[int] = None) -> list:
    return db.find(Collection.TASK, Task,
                   sort=[('dueDate', 1)],
                   limit=limit or 0,
                   assigneeId=user.id,
                   dueDate={'$lt': utc_now()},
                   status={'$nin': list(CLOSED_STATUSES)},
                   isArchived=False)


def assigned_tasks(user: User, limit: int = 10) -> list:
    return db.find(Collection.TASK, Task,
                   sort=[('dueDate', 1)],
                   limit=limit,
                   assigneeId=user.id,
                   status={'$nin': list(CLOSED_STATUSES)})
