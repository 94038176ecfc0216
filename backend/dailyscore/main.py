from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from dailyscore.errors import InvalidIdentity, NotFound
from dailyscore.services.scores import get_coordinator
from dailyscore.services.scores.accounts import sign_in, sign_up

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the daily score server!'})

@main.route('/signup', methods=['POST'])
def signup():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    first_name = data.get('firstName')
    if not all([email, first_name]):
        return jsonify({'error': 'Please fill in both fields.'}), 400

    record = sign_up(get_coordinator(), email, first_name)
    current_app.logger.info(f"[signup] identity={record.identity}")
    return jsonify({'message': 'Sign up successful! Now sign in.', 'user': record.to_dict()}), 201

@main.route('/signin', methods=['POST'])
def signin():
    data = request.get_json(silent=True) or {}
    if not data.get('email'):
        return jsonify({'error': 'Please enter an email.'}), 400
    try:
        user = sign_in(get_coordinator(), data['email'])
    except NotFound:
        return jsonify({'error': 'No user found with this email. Please try again.'}), 404
    except InvalidIdentity as exc:
        return jsonify({'error': exc.message}), 400
    login_user(user, remember=True)
    current_app.logger.info(f"[signin] identity={user.identity}")
    return jsonify({'success': True, 'user': user.to_dict()})

@main.route('/check_login', methods=['GET'])
@login_required
def check_login():
    return jsonify({'success': True, 'user': current_user.to_dict()})

@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
