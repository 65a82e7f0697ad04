"""Turn rotation for sudden-death ("turns") games.

Rotation order is every non-spectator membership by ascending membership
id. Eliminated players keep their slot in that order and are skipped, so
the cycle stays stable as players drop out. The game ends as soon as one
player (or none) is left alive.
"""

from typing import Optional

from flask import current_app
from sqlalchemy import update
from werkzeug.exceptions import BadRequest

from naming_things import db
from naming_things.models import Game, GamePlayer, Answer
from naming_things.notify import notify_game
from . import clock
from .common import atomic, load_game, require_status
from .consensus import clean_text, normalize


def _turn_payload(game: Game, winner_player_id: Optional[int] = None) -> dict:
    return {
        'next_player_id': game.current_turn_player_id,
        'next_deadline': game.current_turn_deadline,
        'game_finished': game.status == 'finished',
        'winner_player_id': winner_player_id,
    }


def alive_members(game: Game):
    return [m for m in game.rotation() if not m.is_eliminated]


def begin_turns(game: Game, now: float) -> None:
    """Hand the first turn to the earliest-joined alive player."""
    alive = alive_members(game)
    if not alive:
        raise BadRequest('No players available to take a turn')
    game.current_turn_player_id = alive[0].player_id
    game.current_turn_deadline = now + game.turn_timer_seconds


def eliminate(membership: GamePlayer, now: float) -> None:
    membership.is_eliminated = True
    membership.eliminated_at = now


def finish_turns_game(game: Game, now: float) -> None:
    game.status = 'finished'
    game.ended_at = now
    game.current_turn_player_id = None
    game.current_turn_deadline = None
    game.is_paused = False
    game.paused_at = None
    game.paused_time_remaining_ms = None
    game.paused_turn_player_id = None


def advance_turn(game: Game, just_acted_player_id: int, now: Optional[float] = None) -> dict:
    """Move the turn to the next alive player after ``just_acted_player_id``.

    Runs inside the caller's transaction and does not commit. Returns the
    turn payload; ``game_finished`` is set when at most one player is alive.
    """
    if now is None:
        now = clock.now()
    order = game.rotation()
    alive = [m for m in order if not m.is_eliminated]

    if len(alive) <= 1:
        winner_id = alive[0].player_id if alive else None
        finish_turns_game(game, now)
        current_app.logger.info(f"[finish] game={game.id} mode=turns winner={winner_id}")
        return _turn_payload(game, winner_player_id=winner_id)

    ids = [m.player_id for m in order]
    start = ids.index(just_acted_player_id) if just_acted_player_id in ids else -1
    chosen = None
    for step in range(1, len(order) + 1):
        candidate = order[(start + step) % len(order)]
        if candidate.is_eliminated or candidate.player_id == just_acted_player_id:
            continue
        chosen = candidate
        break

    game.current_turn_player_id = chosen.player_id
    game.current_turn_deadline = now + game.turn_timer_seconds
    current_app.logger.info(
        f"[turn] game={game.id} from={just_acted_player_id} to={chosen.player_id} deadline={game.current_turn_deadline}"
    )
    return _turn_payload(game)


def submit_turn_answer(player, game_id, text) -> dict:
    text = clean_text(text)
    with atomic():
        game = load_game(game_id)
        require_status(game, 'playing', message='Game is not in playing state')
        if game.mode != 'turns':
            raise BadRequest('Game is not in turns mode')
        if game.is_paused:
            raise BadRequest('Game is paused')
        if game.current_turn_player_id != player.id:
            raise BadRequest("It's not your turn")
        now = clock.now()
        if game.current_turn_deadline is not None and now > game.current_turn_deadline:
            raise BadRequest('Your turn has expired')

        normalized = normalize(text)
        membership = game.membership_for(player.id)
        already_said = Answer.query.filter_by(game_id=game.id, normalized_text=normalized).first()
        if already_said:
            eliminate(membership, now)
            current_app.logger.info(f"[eliminate] game={game.id} player={player.id} reason=duplicate text={normalized!r}")
            result = {'success': False, 'reason': 'duplicate'}
        else:
            db.session.add(Answer(game_id=game.id, player_id=player.id, text=text, normalized_text=normalized))
            membership.score += 1
            result = {'success': True, 'reason': None}
        result.update(advance_turn(game, player.id, now))
        code = game.game_code
    notify_game(code)
    return result


def claim_expired_turn(game_id, expected_player_id, expected_deadline, now) -> bool:
    """Atomically take ownership of an expired turn.

    A single conditional UPDATE clears the deadline only while the row still
    shows the same player and deadline and that deadline has passed. At most
    one concurrent caller sees a row count of 1.
    """
    result = db.session.execute(
        update(Game)
        .where(
            Game.id == game_id,
            Game.status == 'playing',
            Game.mode == 'turns',
            Game.is_paused.is_(False),
            Game.current_turn_player_id == expected_player_id,
            Game.current_turn_deadline == expected_deadline,
            Game.current_turn_deadline <= now,
        )
        .values(current_turn_deadline=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def timeout_turn(player, game_id) -> dict:
    """Eliminate the current player if their turn deadline has passed.

    Any participant may call this. Losing a race, or calling early, is a
    harmless ``{'success': False}``.
    """
    now = clock.now()
    snapshot = load_game(game_id, for_update=False)
    expired = (
        snapshot.status == 'playing'
        and snapshot.mode == 'turns'
        and not snapshot.is_paused
        and snapshot.current_turn_deadline is not None
        and now >= snapshot.current_turn_deadline
    )
    if not expired:
        return {'success': False}

    expected_player_id = snapshot.current_turn_player_id
    expected_deadline = snapshot.current_turn_deadline
    with atomic():
        if not claim_expired_turn(game_id, expected_player_id, expected_deadline, now):
            current_app.logger.debug(f"[timeout-skip] game={game_id} player={expected_player_id} already handled")
            return {'success': False}
        game = Game.query.filter_by(id=game_id).populate_existing().with_for_update().first()
        membership = game.membership_for(expected_player_id)
        if membership is not None:
            eliminate(membership, now)
        current_app.logger.info(
            f"[timeout] game={game_id} player={expected_player_id} by={player.id} deadline={expected_deadline}"
        )
        result = {'success': True}
        result.update(advance_turn(game, expected_player_id, now))
        code = game.game_code
    notify_game(code)
    return result


def elimination_order(game: Game):
    """Memberships for the final scoreboard: survivors first, then latest eliminated first."""
    return sorted(
        game.rotation(),
        key=lambda m: (m.eliminated_at is not None, -(m.eliminated_at or 0.0), m.id),
    )
