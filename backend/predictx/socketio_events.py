from flask_socketio import join_room, leave_room, emit
from predictx import socketio
from predictx.services.game import rounds
from predictx.services.game.errors import GameRuleError


def _user_room(data):
    fid = (data or {}).get('fid')
    try:
        return f"user:{int(fid)}"
    except (TypeError, ValueError):
        return None


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_user(data):
    room = _user_room(data)
    if not room:
        emit('error', {'message': 'fid is required'})
        return
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_user(data):
    room = _user_room(data)
    if not room:
        emit('error', {'message': 'fid is required'})
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_round_info(data):
    challenge_type = (data or {}).get('challenge_type')
    try:
        info = rounds.get_current_round(challenge_type)
    except GameRuleError as exc:
        emit('error', {'message': str(exc)})
        return
    payload = info.to_dict()
    payload['challenge_type'] = challenge_type
    payload['is_locked'] = rounds.is_challenge_locked(challenge_type)
    payload['time_remaining_formatted'] = rounds.format_time_remaining(info.time_remaining)
    emit('round_info', payload)


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('join_user', handle_join_user, namespace=namespace)
        socketio.on_event('leave_user', handle_leave_user, namespace=namespace)
        socketio.on_event('round_info', handle_round_info, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
