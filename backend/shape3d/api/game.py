from flask import Blueprint, jsonify, request, current_app
from shape3d import get_controller
from shape3d.services.game.controller import ANONYMOUS
from shape3d.services.game.domain import PlacementRequest
from shape3d.services.game.errors import InvalidPlacement, SessionNotFound


game = Blueprint('game', __name__)

# The hosting platform supplies the post id and the acting username; here
# they arrive as request headers (or post_id in the query string / body).
SESSION_HEADER = 'X-Post-Id'
USER_HEADER = 'X-Username'


def _session_id() -> str:
    session_id = request.headers.get(SESSION_HEADER) or request.args.get('post_id')
    if not session_id and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            session_id = body.get('post_id')
    if not session_id:
        raise SessionNotFound('postId is required but missing from context')
    return str(session_id)


def _username() -> str:
    return request.headers.get(USER_HEADER) or ANONYMOUS


@game.errorhandler(SessionNotFound)
def handle_session_not_found(exc):
    return jsonify({'status': 'error', 'message': str(exc)}), 400


@game.route('/init', methods=['GET'])
def init():
    session_id = _session_id()
    state = get_controller().snapshot(session_id)
    return jsonify({
        'type': 'init',
        'post_id': session_id,
        'username': _username(),
        'game_state': state.to_dict(),
    })


@game.route('/join', methods=['POST'])
def join():
    session_id = _session_id()
    result = get_controller().join(session_id, _username())
    return jsonify(result.to_dict())


@game.route('/place', methods=['POST'])
def place():
    session_id = _session_id()
    controller = get_controller()
    try:
        placement = PlacementRequest.from_dict(request.get_json(silent=True))
        result = controller.place_shape(session_id, _username(), placement)
    except InvalidPlacement as exc:
        current_app.logger.info(f"[place-invalid] session={session_id} error={exc}")
        return jsonify({
            'type': 'place',
            'success': False,
            'message': str(exc),
            'game_state': controller.snapshot(session_id).to_dict(),
        }), 400
    return jsonify(result.to_dict())


@game.route('/leaderboard', methods=['GET'])
def leaderboard():
    return jsonify(get_controller().leaderboard(_session_id()))
