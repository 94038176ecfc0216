from flask_socketio import join_room, leave_room, emit
from dailyscore import socketio
from dailyscore.errors import ScoreServiceError
from dailyscore.services.scores import get_clock, get_leaderboard


def _room_date(data):
    return (data or {}).get('date') or get_clock().today()


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_leaderboard(data):
    date = _room_date(data)
    room = f"leaderboard:{date}"
    join_room(room)
    emit('joined', {'room': room})
    try:
        entries = get_leaderboard().today(date=date)
    except ScoreServiceError as exc:
        emit('error', {'message': exc.message})
        return
    emit('leaderboard', {'date': date, 'entries': [e.to_dict() for e in entries]})


def handle_leave_leaderboard(data):
    room = f"leaderboard:{_room_date(data)}"
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_leaderboard', handle_join_leaderboard, namespace='/ws')
    socketio.on_event('leave_leaderboard', handle_leave_leaderboard, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')
