from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from dailyscore import socketio
from dailyscore.errors import ScoreServiceError, StoreUnavailable
from dailyscore.services.scores import get_clock, get_coordinator, get_leaderboard, request_timeout


scores = Blueprint('scores', __name__)


def _flag(value):
    if value is None:
        return None
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@scores.route('/scores/complete', methods=['POST'])
@login_required
def complete_game():
    data = request.get_json(silent=True) or {}
    guess_count = data.get('guess_count')
    result = get_coordinator().complete(
        current_user.identity,
        guess_count,
        display_name=current_user.display_name,
        timeout=request_timeout(),
    )
    if result.accepted:
        current_app.logger.info(
            f"[score-accepted] identity={result.identity} date={result.date} score={result.score}"
        )
        socketio.emit('leaderboard_update', {'date': result.date}, to=f"leaderboard:{result.date}", namespace='/ws')
    else:
        current_app.logger.info(
            f"[score-duplicate] identity={result.identity} date={result.date} kept={result.score} offered={guess_count}"
        )
    return jsonify(result.to_dict())


@scores.route('/scores/today', methods=['GET'])
@login_required
def today_status():
    date = get_clock().today()
    state, score = get_coordinator().state_of(current_user.identity, date)
    return jsonify({'date': date, 'state': state.value, 'score': score})


@scores.route('/leaderboard/today', methods=['GET'])
def leaderboard_today():
    entries = get_leaderboard().today(
        include_pending=_flag(request.args.get('include_pending')),
        timeout=request_timeout(),
    )
    return jsonify([e.to_dict() for e in entries])


@scores.route('/leaderboard/all-time', methods=['GET'])
def leaderboard_all_time():
    entries = get_leaderboard().all_time(timeout=request_timeout())
    return jsonify([e.to_dict() for e in entries])


def register_error_handlers(flask_app):
    @flask_app.errorhandler(StoreUnavailable)
    def handle_store_unavailable(exc):
        # Leaderboard sync failed; the client keeps its local result and shows a warning
        flask_app.logger.warning(f"[store-unavailable] path={request.path} error={exc.message}")
        return jsonify({'warning': 'Leaderboard is unavailable right now; your result is saved on this device.'}), exc.status_code

    @flask_app.errorhandler(ScoreServiceError)
    def handle_score_error(exc):
        flask_app.logger.info(f"[score-error] path={request.path} type={type(exc).__name__} error={exc.message}")
        return jsonify({'error': exc.message}), exc.status_code
