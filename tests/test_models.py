from datetime import timedelta

import pytest
from bson import ObjectId

from synergysphere.models.message import Message
from synergysphere.models.notification import Notification
from synergysphere.models.project import Project, ProjectMember, merged_settings, progress_percentage, role_permissions
from synergysphere.models.task import Task, Subtask
from synergysphere.util.common import utc_now


@pytest.mark.parametrize('completed, total, expected', [
    (0, 0, 0),
    (0, 4, 0),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),
    (3, 3, 100),
])
def test_progress_percentage(completed, total, expected):
    assert progress_percentage(completed, total) == expected


def test_role_permissions():
    assert all(role_permissions('owner').values())
    assert all(role_permissions('admin').values())
    assert role_permissions('member') == {
        'canCreateTasks': True,
        'canEditTasks': True,
        'canDeleteTasks': False,
        'canManageMembers': False,
        'canEditProject': False,
    }
    assert not any(role_permissions('viewer').values())


def test_has_permission():
    owner, member, outsider = ObjectId(), ObjectId(), ObjectId()
    project = Project(_id=ObjectId(), name='P', ownerId=owner,
                      members=[ProjectMember.create(member, 'viewer', {'canEditTasks': True}).as_dict()])

    assert project.has_permission(owner, 'canDeleteTasks')
    assert project.has_permission(str(member), 'canEditTasks')
    assert not project.has_permission(member, 'canCreateTasks')
    assert not project.has_permission(outsider, 'canCreateTasks')
    assert project.member_role(owner) == 'owner'
    assert project.member_ids() == [owner, member]


def test_permission_requires_boolean_true():
    owner, member = ObjectId(), ObjectId()
    project = Project(_id=ObjectId(), name='P', ownerId=owner,
                      members=[{'userId': member, 'role': 'member', 'permissions': {'canDeleteTasks': 'false'}}])

    assert not project.has_permission(member, 'canDeleteTasks')


def test_merged_settings_keeps_unchanged_flags():
    current = {'isPublic': True, 'allowGuestAccess': False, 'notifications': {'taskUpdates': False}}

    merged = merged_settings(current, {'notifications': {'deadlines': False}})

    assert merged == {
        'isPublic': True,
        'allowGuestAccess': False,
        'notifications': {'taskUpdates': False, 'memberChanges': True, 'deadlines': False},
    }


def test_object_id_strings_are_converted():
    task = Task(_id='64b7f0c2a1b2c3d4e5f60718', title='T', projectId='64b7f0c2a1b2c3d4e5f60719',
                creatorId=ObjectId())

    assert isinstance(task.id, ObjectId)
    assert isinstance(task.projectId, ObjectId)


def test_task_status_and_derived_fields():
    task = Task(_id=None, title='T', projectId=ObjectId(), creatorId=ObjectId(),
                dueDate=utc_now() - timedelta(days=1))
    assert task.is_overdue

    task.set_status('completed')
    assert task.completedAt is not None
    assert not task.is_overdue

    task.set_status('in-review')
    assert task.completedAt is None

    task.subtasks = [Subtask(title='a').as_dict(), Subtask(title='b', completed=True).as_dict(),
                     Subtask(title='c', completed=True).as_dict()]
    assert task.as_api_dict()['subtaskProgress'] == 67


def test_message_reactions():
    alice, bob = ObjectId(), ObjectId()
    message = Message(_id=None, content='hi', projectId=ObjectId(), authorId=alice)

    message.add_reaction('🎉', alice)
    message.add_reaction('🎉', bob)
    message.add_reaction('🎉', bob)
    assert message.get_reaction('🎉')['count'] == 2

    message.remove_reaction('🎉', alice)
    message.remove_reaction('🎉', bob)
    assert message.reactions == []


def test_deleted_message_is_masked():
    message = Message(_id=None, content='secret', projectId=ObjectId(), authorId=ObjectId(), isDeleted=True,
                      editHistory=[{'content': 'older secret'}])

    d = message.as_api_dict()

    assert d['content'] == '[Message deleted]'
    assert d['editHistory'] == []


@pytest.mark.parametrize('age, expected', [
    (timedelta(seconds=10), 'just now'),
    (timedelta(minutes=5), '5m ago'),
    (timedelta(hours=3), '3h ago'),
    (timedelta(days=2), '2d ago'),
])
def test_notification_time_ago(age, expected):
    notification = Notification(_id=None, recipientId=ObjectId(), type='system_announcement', title='t', message='m',
                                createdAt=utc_now() - age)

    assert notification.time_ago() == expected
