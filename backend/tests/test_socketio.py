from derby import socketio


def _names(received):
    return [pkt['name'] for pkt in received]


def _first(received, name):
    for pkt in received:
        if pkt['name'] == name:
            return pkt['args'][0] if pkt['args'] else None
    raise AssertionError(f'{name} not received, got {_names(received)}')


def _host(flask_app):
    host = socketio.test_client(flask_app)
    host.emit('hostLogin', {'adminPass': 'start'})
    host.get_received()
    return host


def _start_race(flask_app, scheduler):
    host = _host(flask_app)
    host.emit('startRace')
    scheduler.advance(5000)
    return host


def test_socket_connect_and_join(sio_client):
    assert sio_client.is_connected()
    assert 'connected' in _names(sio_client.get_received())

    sio_client.emit('joinGame', {'name': 'Alice', 'color': 'red'})
    sync = _first(sio_client.get_received(), 'syncGame')
    assert sync['currentState'] == 'LOBBY'
    assert sync['isHost'] is False
    me = sync['allPlayers'][sync['myId']]
    assert me['name'] == 'Alice'
    assert me['lane'] == 0
    assert me['passes'] == 3


def test_join_requires_name(sio_client):
    sio_client.get_received()
    sio_client.emit('joinGame', {'color': 'red'})
    assert _first(sio_client.get_received(), 'error') == {'message': 'name is required'}


def test_other_players_hear_about_joins_and_leaves(flask_app, sio_client):
    sio_client.emit('joinGame', {'name': 'Alice', 'color': 'red'})
    sio_client.get_received()

    bob = socketio.test_client(flask_app)
    bob.emit('joinGame', {'name': 'Bob', 'color': 'blue'})
    joined = _first(sio_client.get_received(), 'playerJoined')
    assert joined['name'] == 'Bob'
    assert joined['lane'] == 1
    assert 'playerJoined' not in _names(bob.get_received())

    bob.disconnect()
    assert _first(sio_client.get_received(), 'playerLeft') == {'lane': 1, 'name': 'Bob'}


def test_wrong_host_password_gets_no_sync(flask_app):
    intruder = socketio.test_client(flask_app)
    intruder.get_received()
    intruder.emit('hostLogin', {'adminPass': 'guess'})
    intruder.emit('startRace')
    assert intruder.get_received() == []


def test_race_round_trip(flask_app, sio_client, scheduler):
    sio_client.emit('joinGame', {'name': 'Alice', 'color': 'red'})
    sio_client.get_received()

    host = _host(flask_app)
    host.emit('startRace')
    assert 'raceStarting' in _names(sio_client.get_received())
    scheduler.advance(5000)
    assert _first(sio_client.get_received(), 'gameStateChange') == {'state': 'RACING', 'winner': None}

    sio_client.emit('requestQuestion', {'difficulty': '3'})
    question = _first(sio_client.get_received(), 'hereIsYourQuestion')
    assert question['question'] == 'Largest planet?'
    assert question['type'] == 'text'
    assert question['dangerZone'] == 15000
    assert 'Jupiter' not in repr(question)

    sio_client.emit('submitAnswer', {'answer': ' jupiter '})
    received = sio_client.get_received()
    assert _first(received, 'horseAdvanced') == {'lane': 0, 'newPosition': 105}
    assert _first(received, 'answerResult')['correct'] is True
    assert _first(host.get_received(), 'horseAdvanced') == {'lane': 0, 'newPosition': 105}


def test_penalty_and_pass_over_socket(flask_app, sio_client, scheduler):
    sio_client.emit('joinGame', {'name': 'Alice', 'color': 'red'})
    _start_race(flask_app, scheduler)
    sio_client.get_received()

    sio_client.emit('requestQuestion', {'difficulty': 1})
    sio_client.emit('submitAnswer', {'answer': 'Rome'})
    result = _first(sio_client.get_received(), 'answerResult')
    assert result['penalized'] is True
    assert result['penalty'] == 5000

    scheduler.advance(5000)
    assert 'penaltyOver' in _names(sio_client.get_received())

    sio_client.emit('requestQuestion', {'difficulty': 2})
    sio_client.emit('passQuestion')
    used = _first(sio_client.get_received(), 'passUsed')
    assert used == {'success': True, 'passesRemaining': 2}


def test_join_during_race_is_refused(flask_app, sio_client, scheduler):
    sio_client.emit('joinGame', {'name': 'Alice', 'color': 'red'})
    _start_race(flask_app, scheduler)

    late = socketio.test_client(flask_app)
    late.get_received()
    late.emit('joinGame', {'name': 'Late', 'color': 'green'})
    assert 'gameInProgress' in _names(late.get_received())


def test_bad_difficulty_reports_error(flask_app, sio_client, scheduler):
    sio_client.emit('joinGame', {'name': 'Alice', 'color': 'red'})
    _start_race(flask_app, scheduler)
    sio_client.get_received()

    sio_client.emit('requestQuestion', {'difficulty': 'hard'})
    assert _first(sio_client.get_received(), 'error') == {'message': 'difficulty must be 1, 2 or 3'}


def test_reset_clears_players(flask_app, sio_client, scheduler):
    sio_client.emit('joinGame', {'name': 'Alice', 'color': 'red'})
    host = _host(flask_app)
    host.emit('resetGame')
    assert 'gameReset' in _names(sio_client.get_received())

    from derby import get_engine
    engine = get_engine(flask_app)
    assert engine.registry.count() == 0
    assert len(scheduler.spawned) == 1
