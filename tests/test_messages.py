from conftest import add_member


def send(client, project, account, content='Hello team', **fields):
    return client.post(f'/api/messages/project/{project["_id"]}', json={'content': content, **fields},
                       headers=account.headers)


def message_id(response):
    return response.get_json()['data']['message']['_id']


def test_send_and_list(client, alice, bob, project):
    first = send(client, project, alice, 'First')
    send(client, project, bob, 'Second')

    body = client.get(f'/api/messages/project/{project["_id"]}', headers=alice.headers).get_json()['data']

    assert first.status_code == 201
    assert first.get_json()['data']['message']['author']['name'] == alice.name
    assert [m['content'] for m in body['messages']] == ['Second', 'First']
    assert body['pagination']['totalMessages'] == 2
    project_body = client.get(f'/api/projects/{project["_id"]}', headers=alice.headers).get_json()['data']
    assert project_body['project']['statistics']['totalMessages'] == 2


def test_non_member_cannot_read_or_send(client, carol, project):
    assert client.get(f'/api/messages/project/{project["_id"]}', headers=carol.headers).status_code == 403
    assert send(client, project, carol).status_code == 403


def test_listing_marks_messages_read(client, alice, bob, project):
    send(client, project, alice, 'One')
    send(client, project, alice, 'Two')

    before = client.get('/api/messages/unread/count', headers=bob.headers).get_json()['data']['unreadCount']
    client.get(f'/api/messages/project/{project["_id"]}', headers=bob.headers)
    after = client.get('/api/messages/unread/count', headers=bob.headers).get_json()['data']['unreadCount']

    assert before == 2
    assert after == 0


def test_mark_all_read(client, alice, bob, project):
    send(client, project, alice, 'One')

    response = client.put(f'/api/messages/project/{project["_id"]}/read-all', headers=bob.headers)

    assert response.get_json()['data']['modifiedCount'] == 1
    count = client.get(f'/api/messages/unread/count?project={project["_id"]}', headers=bob.headers)
    assert count.get_json()['data']['unreadCount'] == 0


def test_threads(client, alice, bob, project):
    parent = message_id(send(client, project, alice, 'Question?'))
    send(client, project, bob, 'Answer', parentMessage=parent)
    send(client, project, alice, 'Thanks', parentMessage=parent)

    top_level = client.get(f'/api/messages/project/{project["_id"]}', headers=alice.headers).get_json()['data']
    detail = client.get(f'/api/messages/{parent}', headers=bob.headers).get_json()['data']['message']
    replies = client.get(f'/api/messages/{parent}/replies', headers=bob.headers).get_json()['data']

    assert [m['content'] for m in top_level['messages']] == ['Question?']
    assert detail['replyCount'] == 2
    assert [r['content'] for r in replies['replies']] == ['Answer', 'Thanks']
    assert replies['pagination']['totalReplies'] == 2


def test_reply_to_unknown_parent(client, alice, project):
    response = send(client, project, alice, parentMessage='64b7f0c2a1b2c3d4e5f60718')

    assert response.status_code == 404


def test_mentions(client, alice, bob, carol, project):
    rejected = send(client, project, alice, 'Hey Carol', mentions=[carol.id])
    accepted = send(client, project, alice, 'Hey Bob', mentions=[bob.id])

    assert rejected.status_code == 400
    assert accepted.status_code == 201
    notifications = client.get('/api/notifications?type=message_mention', headers=bob.headers).get_json()['data']
    assert len(notifications['notifications']) == 1
    assert notifications['notifications'][0]['data']['messageId'] == message_id(accepted)


def test_edit_keeps_history(client, alice, bob, project):
    msg = message_id(send(client, project, bob, 'Draft'))

    by_owner = client.put(f'/api/messages/{msg}', json={'content': 'Hijack'}, headers=alice.headers)
    edited = client.put(f'/api/messages/{msg}', json={'content': 'Final'}, headers=bob.headers)

    # the project owner may edit any message in the project
    assert by_owner.status_code == 200
    body = edited.get_json()['data']['message']
    assert body['content'] == 'Final'
    assert body['isEdited'] is True
    assert [h['content'] for h in body['editHistory']] == ['Draft', 'Hijack']


def test_member_cannot_edit_others_message(client, alice, bob, project):
    msg = message_id(send(client, project, alice, 'Owner note'))

    assert client.put(f'/api/messages/{msg}', json={'content': 'Changed'}, headers=bob.headers).status_code == 403
    assert client.delete(f'/api/messages/{msg}', headers=bob.headers).status_code == 403


def test_soft_delete(client, alice, bob, project):
    msg = message_id(send(client, project, bob, 'Oops'))

    assert client.delete(f'/api/messages/{msg}', headers=bob.headers).status_code == 200

    body = client.get(f'/api/messages/{msg}', headers=alice.headers).get_json()['data']['message']
    assert body['isDeleted'] is True
    assert body['content'] == '[Message deleted]'
    assert client.put(f'/api/messages/{msg}', json={'content': 'Back'}, headers=bob.headers).status_code == 400


def test_reactions(client, alice, bob, project):
    msg = message_id(send(client, project, alice))

    client.post(f'/api/messages/{msg}/reactions', json={'emoji': '👍', 'action': 'add'}, headers=alice.headers)
    both = client.post(f'/api/messages/{msg}/reactions', json={'emoji': '👍', 'action': 'add'}, headers=bob.headers)
    again = client.post(f'/api/messages/{msg}/reactions', json={'emoji': '👍', 'action': 'add'}, headers=bob.headers)

    assert both.get_json()['data']['reactions'][0]['count'] == 2
    assert again.get_json()['data']['reactions'][0]['count'] == 2

    client.post(f'/api/messages/{msg}/reactions', json={'emoji': '👍', 'action': 'remove'}, headers=alice.headers)
    gone = client.post(f'/api/messages/{msg}/reactions', json={'emoji': '👍', 'action': 'remove'},
                       headers=bob.headers)
    assert gone.get_json()['data']['reactions'] == []


def test_pin(client, alice, bob, carol, project):
    msg = message_id(send(client, project, bob))
    add_member(client, project, alice, carol, role='admin')

    assert client.post(f'/api/messages/{msg}/pin', headers=bob.headers).status_code == 403
    pinned = client.post(f'/api/messages/{msg}/pin', headers=carol.headers).get_json()['data']['message']
    send(client, project, alice, 'Later')

    assert pinned['isPinned'] is True
    assert pinned['pinnedById'] == carol.id
    listing = client.get(f'/api/messages/project/{project["_id"]}', headers=alice.headers).get_json()['data']
    assert listing['messages'][0]['_id'] == msg

    unpinned = client.post(f'/api/messages/{msg}/pin', headers=alice.headers).get_json()['data']['message']
    assert unpinned['isPinned'] is False


def test_search(client, alice, bob, project):
    send(client, project, alice, 'Release notes ready')
    send(client, project, bob, 'Lunch?')

    body = client.get('/api/messages/search?q=release', headers=bob.headers).get_json()['data']
    short = client.get('/api/messages/search?q=r', headers=bob.headers)

    assert [m['content'] for m in body['messages']] == ['Release notes ready']
    assert short.status_code == 400
