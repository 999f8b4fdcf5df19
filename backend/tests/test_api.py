from pairplay.services.games import roster, storage


def _make_room(runtime, code='abcd'):
    room = runtime.registry.create_room(code)
    roster.add_player(room, 'host-socket', 'Host', is_host=True)
    roster.add_player(room, 'player1-socket', 'Alice')
    return room


def test_list_games_empty(client, runtime):
    res = client.get('/api/games')
    assert res.status_code == 200
    assert res.get_json() == {'games': []}


def test_list_games_skips_hostless_rooms(client, runtime):
    _make_room(runtime)
    runtime.registry.create_room('wxyz')
    games = client.get('/api/games').get_json()['games']
    assert games == [{
        'room_code': 'abcd',
        'host_name': 'Host',
        'status': 'lobby',
        'player_count': 1,
        'joinable': True,
    }]


def test_game_state(client, runtime):
    _make_room(runtime)
    res = client.get('/api/games/ABCD/state')
    assert res.status_code == 200
    state = res.get_json()
    assert state['room_code'] == 'abcd'
    assert state['host']['name'] == 'Host'
    assert [p['name'] for p in state['players']] == ['Alice']
    assert state['host_grace_period_sec'] == 5


def test_game_state_not_found(client, runtime):
    res = client.get('/api/games/none/state')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}


def test_game_rounds(client, runtime):
    storage.create_game('abcd')
    round_id = storage.save_round('abcd', 1, 'Favorite food?')
    storage.save_answer(round_id, 'Alice', None, 'Pizza', 900)

    data = client.get('/api/games/abcd/rounds').get_json()
    assert data['room_code'] == 'abcd'
    assert data['round_count'] == 1
    assert data['rounds'][0]['question'] == 'Favorite food?'
    assert data['rounds'][0]['answers'][0]['answer_text'] == 'Pizza'


def test_game_rounds_unknown_room(client, runtime):
    assert client.get('/api/games/none/rounds').get_json() == {
        'room_code': 'none', 'round_count': 0, 'rounds': [],
    }
