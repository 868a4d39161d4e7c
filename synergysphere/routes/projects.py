from flask import Blueprint, g

from synergysphere.schemas import (
    ProjectCreate, ProjectUpdate, ProjectListQuery, AddMemberRequest, UpdateMemberRoleRequest, TaskCreate,
    TaskListQuery,
)
from synergysphere.services import project_service, task_service
from synergysphere.util.auth import login_required
from synergysphere.util.http import success, parse_body, parse_query, pagination

projects = Blueprint('projects', __name__, url_prefix='/projects')


@projects.get('')
@login_required
def list_projects():
    query = parse_query(ProjectListQuery)
    items, total = project_service.list_projects(g.user, query)
    return success({
        'projects': [p.as_dict() for p in items],
        'pagination': pagination(query.page, query.limit, total, 'Projects'),
    })


@projects.post('')
@login_required
def create_project():
    project = project_service.create_project(g.user, parse_body(ProjectCreate))
    return success({'project': project_service.as_detail(project)}, 'Project created successfully', 201)


@projects.get('/<project_id>')
@login_required
def get_project(project_id):
    project = project_service.get_project_for_member(project_id, g.user)
    return success({'project': project_service.as_detail(project)})


@projects.put('/<project_id>')
@login_required
def update_project(project_id):
    project = project_service.get_project_for_member(project_id, g.user)
    project = project_service.update_project(project, g.user, parse_body(ProjectUpdate))
    return success({'project': project_service.as_detail(project)}, 'Project updated successfully')


@projects.delete('/<project_id>')
@login_required
def delete_project(project_id):
    project = project_service.get_project(project_id)
    project_service.delete_project(project, g.user)
    return success(message='Project deleted successfully')


@projects.post('/<project_id>/members')
@login_required
def add_member(project_id):
    project = project_service.get_project_for_member(project_id, g.user)
    project = project_service.add_member(project, g.user, parse_body(AddMemberRequest))
    return success({'project': project_service.as_detail(project)}, 'Member added successfully', 201)


@projects.delete('/<project_id>/members/<user_id>')
@login_required
def remove_member(project_id, user_id):
    project = project_service.get_project_for_member(project_id, g.user)
    project = project_service.remove_member(project, g.user, user_id)
    return success({'project': project_service.as_detail(project)}, 'Member removed successfully')


@projects.put('/<project_id>/members/<user_id>/role')
@login_required
def update_member_role(project_id, user_id):
    project = project_service.get_project_for_member(project_id, g.user)
    payload = parse_body(UpdateMemberRoleRequest)
    project = project_service.update_member_role(project, g.user, user_id, payload.role)
    return success({'project': project_service.as_detail(project)}, 'Member role updated successfully')


@projects.get('/<project_id>/tasks')
@login_required
def list_project_tasks(project_id):
    query = parse_query(TaskListQuery)
    query.project = project_id
    items, total = task_service.list_tasks(g.user, query)
    return success({
        'tasks': task_service.as_api_list(items),
        'pagination': pagination(query.page, query.limit, total, 'Tasks'),
    })


@projects.post('/<project_id>/tasks')
@login_required
def create_project_task(project_id):
    task = task_service.create_task(g.user, parse_body(TaskCreate), project_id=project_id)
    return success({'task': task_service.as_api(task)}, 'Task created successfully', 201)
