from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from werkzeug.exceptions import BadRequest
from naming_things.services.games import consensus, lifecycle, turns
from naming_things.services.games.views import get_game_state as svc_get_game_state


games = Blueprint('games', __name__)


def _body():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise BadRequest('Expected a JSON object')
    return data


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    game = lifecycle.create_game(current_user)
    return jsonify({'code': game.game_code, 'game_id': game.id}), 201


@games.route('/join', methods=['POST'])
@login_required
def join_game():
    game = lifecycle.join_game(current_user, _body().get('code'))
    return jsonify({'code': game.game_code, 'game_id': game.id})


@games.route('/spectate', methods=['POST'])
@login_required
def spectate_game():
    lifecycle.spectate_game(current_user, _body().get('code'))
    return jsonify({'ok': True})


@games.route('/<string:game_code>/state', methods=['GET'])
@login_required
def get_game_state(game_code):
    return jsonify(svc_get_game_state(current_user, game_code))


@games.route('/<int:game_id>/join-as-player', methods=['POST'])
@login_required
def join_as_player(game_id):
    lifecycle.join_as_player(current_user, game_id)
    return jsonify({'ok': True})


@games.route('/<int:game_id>/category', methods=['POST'])
@login_required
def set_category(game_id):
    lifecycle.set_category(current_user, game_id, _body().get('category'))
    return jsonify({'ok': True})


@games.route('/<int:game_id>/timer', methods=['POST'])
@login_required
def set_timer(game_id):
    lifecycle.set_timer(current_user, game_id, _body().get('timer_seconds'))
    return jsonify({'ok': True})


@games.route('/<int:game_id>/turn-timer', methods=['POST'])
@login_required
def set_turn_timer(game_id):
    lifecycle.set_turn_timer(current_user, game_id, _body().get('turn_timer_seconds'))
    return jsonify({'ok': True})


@games.route('/<int:game_id>/mode', methods=['POST'])
@login_required
def set_mode(game_id):
    lifecycle.set_mode(current_user, game_id, _body().get('mode'))
    return jsonify({'ok': True})


@games.route('/<int:game_id>/start', methods=['POST'])
@login_required
def start_round(game_id):
    return jsonify(lifecycle.start_round(current_user, game_id))


@games.route('/<int:game_id>/answers', methods=['POST'])
@login_required
def submit_answer(game_id):
    return jsonify(consensus.submit_answer(current_user, game_id, _body().get('text'))), 201


@games.route('/<int:game_id>/answers/batch', methods=['POST'])
@login_required
def submit_answers_batch(game_id):
    return jsonify(consensus.submit_answers_batch(current_user, game_id, _body().get('answers')))


@games.route('/<int:game_id>/answers', methods=['GET'])
@login_required
def get_all_answers(game_id):
    return jsonify(consensus.get_all_answers(current_user, game_id))


@games.route('/<int:game_id>/answers/mine', methods=['GET'])
@login_required
def get_my_answers(game_id):
    return jsonify(consensus.get_my_answers(current_user, game_id))


@games.route('/<int:game_id>/turn-answer', methods=['POST'])
@login_required
def submit_turn_answer(game_id):
    return jsonify(turns.submit_turn_answer(current_user, game_id, _body().get('text')))


@games.route('/<int:game_id>/timeout-turn', methods=['POST'])
@login_required
def timeout_turn(game_id):
    return jsonify(turns.timeout_turn(current_user, game_id))


@games.route('/<int:game_id>/end-answering', methods=['POST'])
@login_required
def end_answering(game_id):
    lifecycle.end_answering(current_user, game_id)
    return jsonify({'ok': True})


@games.route('/<int:game_id>/pause', methods=['POST'])
@login_required
def pause_game(game_id):
    lifecycle.pause_game(current_user, game_id)
    return jsonify({'ok': True})


@games.route('/<int:game_id>/resume', methods=['POST'])
@login_required
def resume_game(game_id):
    lifecycle.resume_game(current_user, game_id)
    return jsonify({'ok': True})


@games.route('/<int:game_id>/terminate', methods=['POST'])
@login_required
def terminate_game(game_id):
    lifecycle.terminate_game(current_user, game_id)
    return jsonify({'ok': True})


@games.route('/<int:game_id>/finish', methods=['POST'])
@login_required
def finish_game(game_id):
    lifecycle.finish_game(current_user, game_id)
    return jsonify({'ok': True})


@games.route('/<int:game_id>/rematch', methods=['POST'])
@login_required
def create_rematch(game_id):
    rematch = lifecycle.create_rematch(current_user, game_id)
    return jsonify({'code': rematch.game_code, 'game_id': rematch.id})


@games.route('/<int:game_id>/kick', methods=['POST'])
@login_required
def kick_player(game_id):
    target = _body().get('player_id')
    if isinstance(target, bool) or not isinstance(target, int):
        raise BadRequest('player_id is required')
    lifecycle.kick_player(current_user, game_id, target)
    return jsonify({'ok': True})
