from flask import Blueprint, request, jsonify, current_app
from shape3d import get_controller
import uuid

main = Blueprint('main', __name__)


def _create_session(session_id=None):
    session_id = session_id or uuid.uuid4().hex[:12]
    state = get_controller().initialize_session(session_id)
    return session_id, state


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Shape3D game server!'})


@main.route('/internal/sessions', methods=['POST'])
def create_session():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    session_id, state = _create_session(data.get('session_id'))
    return jsonify({'session_id': session_id, 'game_state': state.to_dict()}), 201


@main.route('/internal/on-app-install', methods=['POST'])
def on_app_install():
    try:
        session_id, _ = _create_session()
    except Exception as exc:
        current_app.logger.exception(f"[session-init-fail] error={exc}")
        return jsonify({'status': 'error', 'message': 'Failed to create post'}), 400
    return jsonify({'status': 'success', 'message': f'Post created with id {session_id}', 'session_id': session_id})


@main.route('/internal/menu/post-create', methods=['POST'])
def menu_post_create():
    try:
        session_id, _ = _create_session()
    except Exception as exc:
        current_app.logger.exception(f"[session-init-fail] error={exc}")
        return jsonify({'status': 'error', 'message': 'Failed to create post'}), 400
    return jsonify({'navigate_to': f'/?post_id={session_id}', 'session_id': session_id})
