def _create(client, host='host-1', name='Hana'):
    res = client.post('/api/games/create', json={'hostCustomerId': host, 'hostName': name})
    assert res.status_code == 201
    return res.get_json()['session']


def _join(client, code, player_id, name):
    return client.post('/api/games/join', json={'lobbyCode': code, 'playerId': player_id, 'playerName': name})


def _started(client, *others):
    session = _create(client)
    for pid in others:
        assert _join(client, session['lobby_code'], pid, pid.title()).status_code == 201
    res = client.post(f"/api/games/{session['id']}/start", json={})
    assert res.status_code == 200
    return res.get_json()


def test_create_session(client):
    session = _create(client)
    assert len(session['lobby_code']) == 6
    assert session['status'] == 'waiting'
    assert session['host_id'] == 'host-1'


def test_create_requires_host(client):
    res = client.post('/api/games/create', json={})
    assert res.status_code == 400
    body = res.get_json()
    assert body['code'] == 'validation_failed'
    assert body['error'] == body['message']
    assert body['details']


def test_join_and_lobby_state(client):
    session = _create(client)
    res = _join(client, session['lobby_code'].lower(), 'p-2', 'Alice')
    assert res.status_code == 201
    assert res.get_json()['player']['turn_order'] == 2

    # Rejoin is harmless
    res = _join(client, session['lobby_code'], 'p-2', 'Alice')
    assert res.status_code == 200
    assert res.get_json()['already_joined'] is True

    state = client.get(f"/api/games/{session['id']}/lobby").get_json()
    assert [p['player_id'] for p in state['players']] == ['host-1', 'p-2']
    assert state['turns'] == []


def test_numeric_player_ids_are_accepted(client):
    session = _create(client)
    res = _join(client, session['lobby_code'], 12345, 'Numbers')
    assert res.status_code == 201
    assert res.get_json()['player']['player_id'] == '12345'


def test_unknown_session_is_404(client):
    res = client.get('/api/games/999/lobby')
    assert res.status_code == 404
    assert res.get_json()['code'] == 'not_found'


def test_full_round_over_http(client):
    started = _started(client, 'bob', 'cara')
    session = started['session']
    assert session['current_round'] == 1
    assert session['current_storyteller_id'] == 'host-1'
    turn_id = started['turn']['id']

    res = client.post(f'/api/games/turns/{turn_id}/secret', json={'secretElementId': 'custom:Anchor'})
    assert res.status_code == 200

    res = client.post(f'/api/games/turns/{turn_id}/guess', json={'playerId': 'bob', 'guess': 'anchor'})
    body = res.get_json()
    assert body['correct'] is True
    assert body['points_earned'] == 10
    assert body['turn_completed'] is False

    # Guessers cannot see the secret while the turn is open
    state = client.get(f"/api/games/{session['id']}/state?playerId=cara").get_json()
    assert state['current_turn']['secret_element'] is None
    assert state['guessed_player_ids'] == ['bob']

    res = client.post(f'/api/games/turns/{turn_id}/guess', json={'playerId': 'cara', 'content': 'rope'})
    body = res.get_json()
    assert body['turn_completed'] is True
    assert body['next_round']['storyteller_id'] == 'bob'

    state = client.get(f"/api/games/{session['id']}/state?playerId=cara").get_json()
    assert state['session']['current_round'] == 2
    scores = {p['player_id']: p['score'] for p in state['players']}
    assert scores == {'host-1': 1, 'bob': 10, 'cara': 0}


def test_duplicate_guess_over_http(client):
    started = _started(client, 'bob', 'cara')
    turn_id = started['turn']['id']
    first = client.post(f'/api/games/turns/{turn_id}/guess', json={'playerId': 'bob', 'guess': 'a'})
    second = client.post(f'/api/games/turns/{turn_id}/guess', json={'playerId': 'bob', 'guess': 'b'})
    assert first.status_code == second.status_code == 200
    assert second.get_json()['already_submitted'] is True


def test_guess_requires_content(client):
    started = _started(client, 'bob')
    turn_id = started['turn']['id']
    res = client.post(f'/api/games/turns/{turn_id}/guess', json={'playerId': 'bob'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'validation_failed'


def test_storyteller_guess_is_rejected(client):
    started = _started(client, 'bob')
    turn_id = started['turn']['id']
    res = client.post(f'/api/games/turns/{turn_id}/guess', json={'playerId': 'host-1', 'guess': 'x'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_operation'


def test_timeout_and_skip_finish_game(client):
    started = _started(client, 'bob')
    sid = started['session']['id']
    res = client.post(f'/api/games/{sid}/timeout', json={'roundNumber': 1, 'playerId': 'bob', 'reason': 'timer'})
    body = res.get_json()
    assert body['timeout'] is True
    assert body['turn_completed'] is True
    assert body['next_round']['storyteller_id'] == 'bob'

    res = client.post(f'/api/games/{sid}/skip', json={'reason': 'no recording'})
    body = res.get_json()
    assert body['skipped'] is True
    assert body['game_completed'] is True
    assert body['winner']['player_id'] == 'host-1'

    state = client.get(f'/api/games/{sid}/lobby').get_json()
    assert state['session']['status'] == 'completed'
    assert state['session']['ended_at'] is not None


def test_start_turn_only_for_storyteller(client):
    started = _started(client, 'bob')
    sid = started['session']['id']
    res = client.post(f'/api/games/{sid}/turn/start', json={'playerId': 'bob', 'selectedThemeId': 't1'})
    assert res.status_code == 403

    res = client.post(f'/api/games/{sid}/turn/start', json={
        'playerId': 'host-1', 'selectedThemeId': 't1', 'elementName': 'Anchor', 'turnMode': 'audio',
    })
    assert res.status_code == 200
    # No API key configured in tests
    assert res.get_json()['whisp'] == 'story'


def test_turn_order_and_kick(client):
    session = _create(client)
    sid = session['id']
    _join(client, session['lobby_code'], 'bob', 'Bob')
    _join(client, session['lobby_code'], 'cara', 'Cara')

    res = client.post(f'/api/games/{sid}/turn-order', json={'updates': [
        {'playerId': 'cara', 'turnOrder': 1}, {'playerId': 'host-1', 'turnOrder': 3},
    ]})
    assert res.status_code == 200
    assert res.get_json()['order'] == ['cara', 'bob', 'host-1']

    res = client.post(f'/api/games/{sid}/kick', json={'playerIdToKick': 'bob', 'hostId': 'bob'})
    assert res.status_code == 403
    res = client.post(f'/api/games/{sid}/kick', json={'playerIdToKick': 'bob', 'hostId': 'host-1'})
    assert res.get_json()['kicked_player_name'] == 'Bob'

    started = client.post(f'/api/games/{sid}/start', json={}).get_json()
    assert started['session']['current_storyteller_id'] == 'cara'


def test_leave_and_end(client):
    session = _create(client)
    sid = session['id']
    _join(client, session['lobby_code'], 'bob', 'Bob')
    assert client.post(f'/api/games/{sid}/leave', json={'playerId': 'host-1'}).status_code == 403
    assert client.post(f'/api/games/{sid}/leave', json={'playerId': 'bob'}).status_code == 200

    res = client.post(f'/api/games/{sid}/end', json={'hostCustomerId': 'host-1'})
    assert res.status_code == 200
    assert client.get(f'/api/games/{sid}/lobby').status_code == 404


def test_audio_registration(client):
    session = _create(client)
    sid = session['id']
    res = client.post(f'/api/games/{sid}/audio', json={
        'playerId': 'host-1', 'audioUrl': 'https://cdn.example/a.webm', 'select': True,
    })
    assert res.status_code == 201
    state = client.get(f'/api/games/{sid}/lobby').get_json()
    assert state['session']['selected_audio_id'] == str(res.get_json()['audio']['id'])
    assert len(state['audio_files']) == 1


def test_completed_game_is_cleaned_up(scheduler_app):
    client = scheduler_app.test_client()
    started = _started(client, 'bob')
    sid = started['session']['id']
    client.post(f'/api/games/{sid}/skip', json={})
    done = client.post(f'/api/games/{sid}/skip', json={}).get_json()
    assert done['game_completed'] is True
    assert client.get(f'/api/games/{sid}/lobby').status_code == 404


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json()['database'] is True
