from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from naming_things.services.games import consensus


answers = Blueprint('answers', __name__)


@answers.route('/<int:answer_id>/dispute', methods=['POST'])
@login_required
def dispute_answer(answer_id):
    consensus.dispute_answer(current_user, answer_id)
    return jsonify({'ok': True})


@answers.route('/<int:answer_id>/vote', methods=['POST'])
@login_required
def cast_vote(answer_id):
    data = request.get_json(silent=True) or {}
    consensus.cast_vote(current_user, answer_id, data.get('accept'))
    return jsonify({'ok': True})
