from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from naming_things.session import ensure_session, session_token_from_request


players = Blueprint('players', __name__)


@players.route('/session', methods=['POST'])
def create_or_update_session():
    """Registers a session token on first contact; later calls rename the player."""
    data = request.get_json(silent=True) or {}
    player = ensure_session(session_token_from_request(), data.get('display_name'))
    return jsonify(player.to_dict())


@players.route('/me', methods=['GET'])
@login_required
def get_by_session():
    return jsonify(current_user.to_dict())
