from datetime import timedelta

import pytest
from bson import ObjectId

from synergysphere.services import notification_service
from synergysphere.util.common import utc_now
from synergysphere.util.exceptions import DocumentNotFoundException


def notify(account, type_='system_announcement', **kwargs):
    return notification_service.create_notification(account.id, type_, title='Heads up', message='Something happened',
                                                    **kwargs)


def listing(client, account, query=''):
    return client.get(f'/api/notifications{query}', headers=account.headers).get_json()['data']


def test_create_requires_recipient(app):
    with pytest.raises(DocumentNotFoundException):
        notification_service.create_notification(ObjectId(), 'system_announcement', 'Title', 'Body')


def test_channels_follow_preferences(client, alice):
    client.put('/api/users/profile', json={'notifications': {'email': False, 'push': True}}, headers=alice.headers)

    notification = notify(alice)

    assert notification.channels == {'inApp': True, 'email': False, 'push': True}
    assert notification.expiresAt > utc_now() + timedelta(days=29)


def test_list_and_unread_count(client, alice):
    notify(alice, priority='high')
    notify(alice, type_='task_overdue')

    body = listing(client, alice)
    high = listing(client, alice, '?priority=high')

    assert body['unreadCount'] == 2
    assert body['pagination']['totalNotifications'] == 2
    assert [n['type'] for n in body['notifications']] == ['task_overdue', 'system_announcement']
    assert body['notifications'][0]['timeAgo'] == 'just now'
    assert len(high['notifications']) == 1


def test_invalid_type_filter(client, alice):
    response = client.get('/api/notifications?type=party_invite', headers=alice.headers)

    assert response.status_code == 400


def test_expired_notifications_are_hidden_and_cleaned_up(client, database, alice):
    notify(alice)
    notify(alice, expires_at=utc_now() - timedelta(hours=1))

    assert listing(client, alice)['pagination']['totalNotifications'] == 1
    assert notification_service.cleanup_expired() == 1
    assert database['notification'].count_documents({}) == 1


def test_get_marks_read(client, alice):
    notification_id = str(notify(alice).id)

    body = client.get(f'/api/notifications/{notification_id}', headers=alice.headers).get_json()['data']

    assert body['notification']['isRead'] is True
    assert body['notification']['readAt'] is not None
    assert client.get('/api/notifications/unread/count', headers=alice.headers).get_json()['data']['unreadCount'] == 0


def test_mark_read_and_unread(client, alice):
    notification_id = str(notify(alice).id)

    read = client.put(f'/api/notifications/{notification_id}/read', headers=alice.headers)
    unread = client.put(f'/api/notifications/{notification_id}/unread', headers=alice.headers)

    assert read.get_json()['data']['notification']['isRead'] is True
    assert unread.get_json()['data']['notification']['isRead'] is False
    assert unread.get_json()['data']['notification']['readAt'] is None


def test_mark_all_read_per_project(client, alice, project):
    project_id = ObjectId(project['_id'])
    notify(alice, project_id=project_id)
    notify(alice)

    scoped = client.put(f'/api/notifications/read-all?project={project["_id"]}', headers=alice.headers)
    remaining = client.get('/api/notifications/unread/count', headers=alice.headers).get_json()['data']
    everything = client.put('/api/notifications/read-all', headers=alice.headers)

    assert scoped.get_json()['data']['modifiedCount'] == 1
    assert remaining['unreadCount'] == 1
    assert everything.get_json()['data']['modifiedCount'] == 1


def test_recipient_only(client, alice, bob):
    notification_id = str(notify(alice).id)

    assert client.get(f'/api/notifications/{notification_id}', headers=bob.headers).status_code == 404
    assert client.delete(f'/api/notifications/{notification_id}', headers=bob.headers).status_code == 404
    assert client.delete(f'/api/notifications/{notification_id}', headers=alice.headers).status_code == 200
    assert listing(client, alice)['notifications'] == []


def test_unread_count_per_project(client, alice, project):
    notify(alice, project_id=ObjectId(project['_id']))
    notify(alice)

    total = client.get('/api/notifications/unread/count', headers=alice.headers).get_json()['data']
    scoped = client.get(f'/api/notifications/unread/count/{project["_id"]}', headers=alice.headers).get_json()['data']

    assert total['unreadCount'] == 2
    assert scoped['unreadCount'] == 1
