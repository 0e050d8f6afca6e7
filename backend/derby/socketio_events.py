from flask import current_app, request
from flask_socketio import emit

from derby import socketio, get_engine
from derby.errors import EmptyBank, GameInProgress
from derby.services.race.bank import parse_tier


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _engine():
    return get_engine(current_app)


def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


def handle_connect(auth=None):
    emit('connected', {'sid': _get_sid()})


def handle_disconnect(reason=None):
    _engine().disconnect(_get_sid())


def handle_join_game(data=None):
    data = _payload(data)
    name = str(data.get('name') or '').strip()
    if not name:
        emit('error', {'message': 'name is required'})
        return
    try:
        _engine().join(_get_sid(), name, str(data.get('color') or ''))
    except GameInProgress:
        emit('gameInProgress')


def handle_host_login(data=None):
    password = _payload(data).get('adminPass')
    _engine().host_login(_get_sid(), password)


def handle_start_race(data=None):
    _engine().start_race(_get_sid())


def handle_reset_game(data=None):
    _engine().reset_game(_get_sid())


def handle_request_question(data=None):
    tier = parse_tier(_payload(data).get('difficulty'))
    if tier is None:
        emit('error', {'message': 'difficulty must be 1, 2 or 3'})
        return
    try:
        _engine().request_question(_get_sid(), tier)
    except EmptyBank as exc:
        emit('error', {'message': str(exc)})


def handle_submit_answer(data=None):
    answer = _payload(data).get('answer')
    _engine().submit_answer(_get_sid(), answer)


def handle_pass_question(data=None):
    _engine().pass_question(_get_sid())


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on the race namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('joinGame', handle_join_game, namespace=namespace)
    socketio.on_event('hostLogin', handle_host_login, namespace=namespace)
    socketio.on_event('startRace', handle_start_race, namespace=namespace)
    socketio.on_event('resetGame', handle_reset_game, namespace=namespace)
    socketio.on_event('requestQuestion', handle_request_question, namespace=namespace)
    socketio.on_event('submitAnswer', handle_submit_answer, namespace=namespace)
    socketio.on_event('passQuestion', handle_pass_question, namespace=namespace)
