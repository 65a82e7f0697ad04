from collections import OrderedDict
from typing import Dict, Iterable, List

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest, Forbidden

from naming_things import db
from naming_things.models import Answer, DisputeVote, Game
from naming_things.notify import notify_game
from . import clock
from .common import atomic, load_answer, load_game, require_member, require_player_member, require_status

MAX_ANSWER_LENGTH = 256


def normalize(text: str) -> str:
    return text.strip().lower()


def clean_text(text) -> str:
    if not isinstance(text, str):
        raise BadRequest('Answer text must be a string')
    text = text.strip()
    if not text:
        raise BadRequest('Answer text is required')
    if len(text) > MAX_ANSWER_LENGTH:
        raise BadRequest(f'Answers are limited to {MAX_ANSWER_LENGTH} characters')
    return text


def group_answers(answers: Iterable) -> List[dict]:
    """Group answers by normalized text, sorted by that text.

    A group is common when at least two distinct players submitted it.
    """
    groups: Dict[str, List] = OrderedDict()
    for answer in answers:
        groups.setdefault(answer.normalized_text, []).append(answer)
    result = []
    for normalized_text in sorted(groups):
        members = groups[normalized_text]
        result.append({
            'normalized_text': normalized_text,
            'is_common': len({a.player_id for a in members}) >= 2,
            'answers': members,
        })
    return result


def resolve_dispute(votes: Iterable) -> str:
    """Rejected only on a strict reject majority; ties stay accepted."""
    accepts = 0
    rejects = 0
    for vote in votes:
        if vote.accept:
            accepts += 1
        else:
            rejects += 1
    return 'rejected' if rejects > accepts else 'accepted'


def tally_scores(answers: Iterable) -> Dict[int, int]:
    scores: Dict[int, int] = {}
    for answer in answers:
        if answer.status == 'accepted':
            scores[answer.player_id] = scores.get(answer.player_id, 0) + 1
    return scores


def resolve_disputes_and_score(game: Game) -> Dict[int, int]:
    """Settle every disputed answer, then write scores to the memberships."""
    answers = game.answers.all()
    for answer in answers:
        if answer.status == 'disputed':
            answer.status = resolve_dispute(answer.votes)
            current_app.logger.info(f"[dispute-resolved] game={game.id} answer={answer.id} status={answer.status}")
    scores = tally_scores(answers)
    for membership in game.rotation():
        membership.score = scores.get(membership.player_id, 0)
    return scores


def dedupe_batch(texts: Iterable[str], existing_normalized) -> List[tuple]:
    """Keep the first of each normalized text not already on record."""
    seen = set(existing_normalized)
    keep = []
    for text in texts:
        normalized = normalize(text)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        keep.append((text.strip(), normalized))
    return keep


def _batch_texts(items) -> List[str]:
    if not isinstance(items, list):
        raise BadRequest('answers must be a list')
    texts = []
    for item in items:
        text = item.get('text') if isinstance(item, dict) else item
        if not isinstance(text, str):
            raise BadRequest('Each answer needs a text')
        if len(text.strip()) > MAX_ANSWER_LENGTH:
            raise BadRequest(f'Answers are limited to {MAX_ANSWER_LENGTH} characters')
        texts.append(text)
    return texts


def _insert_batch(player, game_id, texts) -> int:
    with atomic():
        game = load_game(game_id)
        if game.status not in ('playing', 'reviewing'):
            raise BadRequest('Game is not accepting answers')
        if game.mode != 'classic':
            raise BadRequest('Turns mode answers are submitted one turn at a time')
        require_player_member(game.id, player)
        existing = {
            normalized for (normalized,) in
            db.session.query(Answer.normalized_text).filter_by(game_id=game.id, player_id=player.id)
        }
        to_insert = dedupe_batch(texts, existing)
        for text, normalized in to_insert:
            db.session.add(Answer(game_id=game.id, player_id=player.id, text=text, normalized_text=normalized))
    return len(to_insert)


def submit_answers_batch(player, game_id, items) -> dict:
    """Flush a client's local answer queue; safe to resend overlapping batches."""
    texts = _batch_texts(items)
    if not texts:
        return {'inserted_count': 0}
    try:
        inserted = _insert_batch(player, game_id, texts)
    except IntegrityError:
        # A concurrent flush of the same queue won; whatever it stored is now filtered out
        inserted = _insert_batch(player, game_id, texts)
    game = load_game(game_id, for_update=False)
    current_app.logger.info(f"[answers-batch] game={game.id} player={player.id} inserted={inserted}/{len(texts)}")
    if inserted:
        notify_game(game.game_code)
    return {'inserted_count': inserted}


def submit_answer(player, game_id, text) -> Answer:
    text = clean_text(text)
    with atomic():
        game = load_game(game_id)
        require_status(game, 'playing', message='Game is not in playing state')
        if game.mode != 'classic':
            raise BadRequest('Game is not in classic mode')
        if game.is_paused:
            raise BadRequest('Game is paused')
        if game.ended_at is not None and clock.now() > game.ended_at:
            raise BadRequest("Time's up")
        require_player_member(game.id, player)
        normalized = normalize(text)
        if Answer.query.filter_by(game_id=game.id, player_id=player.id, normalized_text=normalized).first():
            raise BadRequest('You already submitted that answer')
        answer = Answer(game_id=game.id, player_id=player.id, text=text, normalized_text=normalized)
        db.session.add(answer)
        db.session.flush()
        payload = answer.to_dict()
        code = game.game_code
    notify_game(code)
    return payload


def _serialize_answer(answer: Answer) -> dict:
    data = answer.to_dict()
    data['player_display_name'] = answer.player.display_name
    data['voter_accepts'] = [v.to_dict() for v in answer.votes]
    return data


def get_all_answers(player, game_id) -> List[dict]:
    game = load_game(game_id, for_update=False)
    groups = group_answers(game.answers.all())
    for group in groups:
        group['answers'] = [_serialize_answer(a) for a in group['answers']]
    return groups


def get_my_answers(player, game_id) -> List[dict]:
    game = load_game(game_id, for_update=False)
    mine = game.answers.filter_by(player_id=player.id).all()
    return [a.to_dict() for a in mine]


def _require_review(game_id) -> Game:
    game = load_game(game_id)
    require_status(game, 'reviewing', message='Disputes are only open during review')
    return game


def dispute_answer(player, answer_id) -> None:
    answer = load_answer(answer_id)
    require_member(answer.game_id, player)
    with atomic():
        # Game row lock serializes with finish_game
        code = _require_review(answer.game_id).game_code
        # Conditional so two simultaneous disputes flip the status only once
        result = db.session.execute(
            update(Answer)
            .where(Answer.id == answer.id, Answer.status == 'accepted')
            .values(status='disputed')
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise BadRequest('Only accepted answers can be disputed')
    current_app.logger.info(f"[dispute] answer={answer_id} by={player.id}")
    notify_game(code)


def _upsert_vote(game_id, answer_id, voter_id, accept) -> None:
    with atomic():
        _require_review(game_id)
        vote = DisputeVote.query.filter_by(answer_id=answer_id, voter_player_id=voter_id).first()
        if vote:
            vote.accept = accept
        else:
            db.session.add(DisputeVote(answer_id=answer_id, voter_player_id=voter_id, accept=accept))


def cast_vote(player, answer_id, accept) -> None:
    if not isinstance(accept, bool):
        raise BadRequest('accept must be true or false')
    answer = load_answer(answer_id)
    require_member(answer.game_id, player)
    if answer.player_id == player.id:
        raise Forbidden('Cannot vote on your own answer')
    game_id, code = answer.game_id, answer.game.game_code
    try:
        _upsert_vote(game_id, answer.id, player.id, accept)
    except IntegrityError:
        # Double submission raced us to the insert; recast as an update
        _upsert_vote(game_id, answer_id, player.id, accept)
    notify_game(code)
