from flask import Blueprint, g

from synergysphere.schemas import (
    TaskCreate, TaskUpdate, TaskListQuery, StatusUpdate, CommentCreate, SubtaskCreate, DependencyCreate,
)
from synergysphere.services import task_service
from synergysphere.util.auth import login_required
from synergysphere.util.http import success, parse_body, parse_query, pagination

tasks = Blueprint('tasks', __name__, url_prefix='/tasks')


@tasks.get('')
@login_required
def list_tasks():
    query = parse_query(TaskListQuery)
    items, total = task_service.list_tasks(g.user, query)
    return success({
        'tasks': task_service.as_api_list(items),
        'pagination': pagination(query.page, query.limit, total, 'Tasks'),
    })


@tasks.post('')
@login_required
def create_task():
    task = task_service.create_task(g.user, parse_body(TaskCreate))
    return success({'task': task_service.as_api(task)}, 'Task created successfully', 201)


@tasks.get('/overdue')
@login_required
def overdue():
    items = task_service.overdue_tasks(g.user)
    return success({'tasks': task_service.as_api_list(items), 'count': len(items)})


@tasks.get('/<task_id>')
@login_required
def get_task(task_id):
    task, _ = task_service.load_task_for_member(task_id, g.user)
    return success({'task': task_service.as_api(task, detail=True)})


@tasks.put('/<task_id>')
@login_required
def update_task(task_id):
    task = task_service.update_task(g.user, task_id, parse_body(TaskUpdate))
    return success({'task': task_service.as_api(task)}, 'Task updated successfully')


@tasks.delete('/<task_id>')
@login_required
def delete_task(task_id):
    task_service.delete_task(g.user, task_id)
    return success(message='Task deleted successfully')


@tasks.post('/<task_id>/comments')
@login_required
def add_comment(task_id):
    comment = task_service.add_comment(g.user, task_id, parse_body(CommentCreate))
    return success({'comment': comment}, 'Comment added successfully', 201)


@tasks.put('/<task_id>/status')
@login_required
def update_status(task_id):
    payload = parse_body(StatusUpdate)
    task = task_service.update_status(g.user, task_id, payload.status)
    return success({'task': task_service.as_api(task)}, 'Task status updated successfully')


@tasks.post('/<task_id>/subtasks')
@login_required
def add_subtask(task_id):
    subtask = task_service.add_subtask(g.user, task_id, parse_body(SubtaskCreate))
    return success({'subtask': subtask}, 'Subtask added successfully', 201)


@tasks.put('/<task_id>/subtasks/<subtask_id>/toggle')
@login_required
def toggle_subtask(task_id, subtask_id):
    subtask = task_service.toggle_subtask(g.user, task_id, subtask_id)
    return success({'subtask': subtask}, 'Subtask updated successfully')


@tasks.post('/<task_id>/watch')
@login_required
def toggle_watch(task_id):
    watching = task_service.toggle_watch(g.user, task_id)
    return success({'watching': watching}, 'Now watching task' if watching else 'Stopped watching task')


@tasks.post('/<task_id>/dependencies')
@login_required
def add_dependency(task_id):
    task = task_service.add_dependency(g.user, task_id, parse_body(DependencyCreate))
    return success({'task': task_service.as_api(task)}, 'Dependency added successfully', 201)


@tasks.delete('/<task_id>/dependencies/<dependency_id>')
@login_required
def remove_dependency(task_id, dependency_id):
    task = task_service.remove_dependency(g.user, task_id, dependency_id)
    return success({'task': task_service.as_api(task)}, 'Dependency removed successfully')
