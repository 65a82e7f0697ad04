from contextlib import contextmanager

from werkzeug.exceptions import BadRequest, Forbidden, NotFound

from naming_things import db
from naming_things.models import Game, GamePlayer, Answer


@contextmanager
def atomic():
    """One operation, one commit. Any exception rolls the whole thing back."""
    try:
        yield
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def load_game(game_id, for_update=True) -> Game:
    query = Game.query.filter_by(id=game_id)
    if for_update:
        # Serializes mutations on one game where the backend supports row locks;
        # the locked read replaces any copy already in the identity map
        query = query.with_for_update().populate_existing()
    game = query.first()
    if not game:
        raise NotFound('Game not found')
    return game


def latest_game_by_code(code) -> Game:
    """Resolve a join code to the newest game carrying it (rematches reuse codes)."""
    code = (code or '').strip().upper()
    if not code:
        raise BadRequest('Game code is required')
    game = Game.query.filter_by(game_code=code).order_by(Game.id.desc()).first()
    if not game:
        raise NotFound('Game not found')
    return game


def load_answer(answer_id) -> Answer:
    answer = Answer.query.filter_by(id=answer_id).first()
    if not answer:
        raise NotFound('Answer not found')
    return answer


def require_host(game: Game, player) -> None:
    if game.host_player_id != player.id:
        raise Forbidden('Only the host can perform this action')


def require_status(game: Game, *statuses, message=None) -> None:
    if game.status not in statuses:
        raise BadRequest(message or f"Game is not in {' or '.join(statuses)} state")


def require_member(game_id, player) -> GamePlayer:
    membership = GamePlayer.query.filter_by(game_id=game_id, player_id=player.id).first()
    if not membership:
        raise Forbidden('You are not a member of this game')
    return membership


def require_player_member(game_id, player) -> GamePlayer:
    membership = require_member(game_id, player)
    if membership.is_spectator:
        raise Forbidden('Spectators cannot submit answers')
    return membership
