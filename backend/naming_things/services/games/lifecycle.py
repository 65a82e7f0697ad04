"""Game lifecycle: lobby -> playing -> reviewing -> finished.

``playing`` carries an orthogonal pause flag. A finished game can spawn a
rematch, which is a brand-new Game row sharing the join code.

Every operation takes the resolved caller first, checks role and phase,
applies its change in a single transaction and then notifies watchers.
"""

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest, InternalServerError, NotFound

from naming_things import db
from naming_things.models import (
    GAME_MODES, TIMER_RANGE, TURN_TIMER_RANGE, Game, GamePlayer,
)
from naming_things.notify import notify_game
from . import clock, turns
from .common import atomic, latest_game_by_code, load_game, require_host, require_status
from .consensus import resolve_disputes_and_score


def _clear_pause(game: Game) -> None:
    game.is_paused = False
    game.paused_at = None
    game.paused_time_remaining_ms = None
    game.paused_turn_player_id = None


def _int_in_range(value, bounds, label) -> int:
    if isinstance(value, bool):
        raise BadRequest(f'{label} must be a number')
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise BadRequest(f'{label} must be a number')
    if isinstance(value, float) and value != number:
        raise BadRequest(f'{label} must be a whole number of seconds')
    value = number
    low, high = bounds
    if not low <= value <= high:
        raise BadRequest(f'{label} must be between {low} and {high} seconds')
    return value


# ---- creation and membership ----

def create_game(player) -> Game:
    cfg = current_app.config
    with atomic():
        game = Game(
            host_player_id=player.id,
            status='lobby',
            mode='classic',
            timer_seconds=int(cfg.get('DEFAULT_TIMER_SEC', 60)),
            turn_timer_seconds=int(cfg.get('DEFAULT_TURN_TIMER_SEC', 5)),
        )
        # Host is the first member
        game.memberships.append(GamePlayer(player_id=player.id))
        db.session.add(game)
    current_app.logger.info(f"[create] game={game.id} code={game.game_code} host={player.id}")
    return game


def _enroll_once(game_id, player, as_spectator, open_only) -> bool:
    with atomic():
        game = load_game(game_id)
        if open_only:
            require_status(game, 'lobby', 'playing', message='This game is no longer accepting players')
        membership = GamePlayer.query.filter_by(game_id=game_id, player_id=player.id).first()
        if membership:
            if not as_spectator and membership.is_spectator:
                membership.is_spectator = False
                return True
            return False
        db.session.add(GamePlayer(game_id=game_id, player_id=player.id, is_spectator=as_spectator))
        return True


def _enroll(game_id, player, as_spectator, open_only=False) -> bool:
    """Create-or-upgrade a membership. Spectators can be promoted, never the reverse."""
    try:
        return _enroll_once(game_id, player, as_spectator, open_only)
    except IntegrityError:
        # A retried request inserted the row first; apply the upgrade on top of it
        return _enroll_once(game_id, player, as_spectator, open_only)


def join_game(player, code) -> Game:
    game = latest_game_by_code(code)
    if _enroll(game.id, player, as_spectator=False, open_only=True):
        current_app.logger.info(f"[join] game={game.id} player={player.id}")
        notify_game(game.game_code)
    return game


def spectate_game(player, code) -> Game:
    game = latest_game_by_code(code)
    if _enroll(game.id, player, as_spectator=True):
        current_app.logger.info(f"[spectate] game={game.id} player={player.id}")
        notify_game(game.game_code)
    return game


def join_as_player(player, game_id) -> Game:
    game = load_game(game_id, for_update=False)
    if _enroll(game.id, player, as_spectator=False, open_only=True):
        current_app.logger.info(f"[join] game={game.id} player={player.id} from=spectator")
        notify_game(game.game_code)
    return game


def kick_player(player, game_id, target_player_id) -> None:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'lobby', message='Players can only be kicked in the lobby')
        if target_player_id == player.id:
            raise BadRequest('You cannot kick yourself')
        membership = GamePlayer.query.filter_by(game_id=game.id, player_id=target_player_id).first()
        if not membership:
            raise NotFound('Player is not in this game')
        db.session.delete(membership)
        code = game.game_code
    current_app.logger.info(f"[kick] game={game_id} player={target_player_id}")
    notify_game(code)


# ---- lobby settings ----

def _update_lobby_setting(player, game_id, field, value) -> None:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'lobby', message='Settings can only be changed in the lobby')
        setattr(game, field, value)
        code = game.game_code
    notify_game(code)


def set_category(player, game_id, category) -> None:
    if not isinstance(category, str) or not category.strip():
        raise BadRequest('Category is required')
    category = category.strip()
    if len(category) > 256:
        raise BadRequest('Category is limited to 256 characters')
    _update_lobby_setting(player, game_id, 'category', category)


def set_timer(player, game_id, seconds) -> None:
    _update_lobby_setting(player, game_id, 'timer_seconds', _int_in_range(seconds, TIMER_RANGE, 'Timer'))


def set_turn_timer(player, game_id, seconds) -> None:
    _update_lobby_setting(player, game_id, 'turn_timer_seconds', _int_in_range(seconds, TURN_TIMER_RANGE, 'Turn timer'))


def set_mode(player, game_id, mode) -> None:
    if mode not in GAME_MODES:
        raise BadRequest(f"Mode must be one of: {', '.join(GAME_MODES)}")
    _update_lobby_setting(player, game_id, 'mode', mode)


# ---- play ----

def start_round(player, game_id) -> dict:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'lobby', message='Game has already started or is finished')
        if not game.category:
            raise BadRequest('Set a category before starting')
        now = clock.now()
        if game.mode == 'turns':
            min_players = int(current_app.config.get('MIN_TURNS_PLAYERS', 2))
            if len(turns.alive_members(game)) < min_players:
                raise BadRequest(f'At least {min_players} players are required for turns mode')
        game.status = 'playing'
        game.started_at = now
        _clear_pause(game)
        if game.mode == 'classic':
            game.ended_at = now + game.timer_seconds
            game.current_turn_player_id = None
            game.current_turn_deadline = None
        else:
            game.ended_at = None
            turns.begin_turns(game, now)
        payload = {'started_at': game.started_at, 'ended_at': game.ended_at}
        code = game.game_code
    current_app.logger.info(f"[start] game={game_id} mode={game.mode} ended_at={payload['ended_at']}")
    notify_game(code)
    return payload


def end_answering(player, game_id) -> None:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'playing', message='Game is not in playing state')
        if game.mode != 'classic':
            raise BadRequest('Only classic games have an answering phase')
        if game.is_paused:
            raise BadRequest('Game is paused')
        game.status = 'reviewing'
        code = game.game_code
    current_app.logger.info(f"[end-answering] game={game_id}")
    notify_game(code)


def pause_game(player, game_id) -> None:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'playing', message='Game is not in playing state')
        if game.is_paused:
            raise BadRequest('Game is already paused')
        now = clock.now()
        if game.mode == 'classic':
            if game.ended_at is None:
                raise InternalServerError('Classic game is missing its end time')
            remaining = game.ended_at - now
            game.ended_at = None
        else:
            if game.current_turn_deadline is None:
                raise InternalServerError('Turns game is missing its turn deadline')
            remaining = game.current_turn_deadline - now
            game.paused_turn_player_id = game.current_turn_player_id
            game.current_turn_player_id = None
            game.current_turn_deadline = None
        game.is_paused = True
        game.paused_at = now
        game.paused_time_remaining_ms = max(0, int(round(remaining * 1000)))
        code = game.game_code
    current_app.logger.info(f"[pause] game={game_id} remaining_ms={game.paused_time_remaining_ms}")
    notify_game(code)


def resume_game(player, game_id) -> None:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        if not game.is_paused:
            raise BadRequest('Game is not paused')
        now = clock.now()
        # Restore the remaining time captured at pause, counted from now
        deadline = now + (game.paused_time_remaining_ms or 0) / 1000.0
        if game.mode == 'classic':
            game.ended_at = deadline
        else:
            resumed_player_id = game.paused_turn_player_id
            membership = game.membership_for(resumed_player_id) if resumed_player_id else None
            if membership is None or membership.is_eliminated:
                turns.begin_turns(game, now)
            else:
                game.current_turn_player_id = resumed_player_id
            game.current_turn_deadline = deadline
        _clear_pause(game)
        code = game.game_code
    current_app.logger.info(f"[resume] game={game_id} deadline={deadline}")
    notify_game(code)


def terminate_game(player, game_id) -> None:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'playing', message='Game is not in playing state')
        now = clock.now()
        # Classic answers still get reviewed; turns has no review phase
        game.status = 'reviewing' if game.mode == 'classic' else 'finished'
        _clear_pause(game)
        game.current_turn_player_id = None
        game.current_turn_deadline = None
        game.ended_at = now
        status = game.status
        code = game.game_code
    current_app.logger.info(f"[terminate] game={game_id} status={status}")
    notify_game(code)


def finish_game(player, game_id) -> None:
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'reviewing', message='Game is not in reviewing state')
        scores = resolve_disputes_and_score(game)
        game.status = 'finished'
        code = game.game_code
    current_app.logger.info(f"[finish] game={game_id} mode=classic scores={scores}")
    notify_game(code)


def create_rematch(player, game_id) -> Game:
    created = False
    with atomic():
        game = load_game(game_id)
        require_host(game, player)
        require_status(game, 'finished', message='Game is not finished')
        rematch = (
            Game.query
            .filter(Game.game_code == game.game_code, Game.id > game.id)
            .order_by(Game.id.desc())
            .first()
        )
        if rematch is None:
            rematch = Game(
                game_code=game.game_code,
                host_player_id=game.host_player_id,
                status='lobby',
                mode=game.mode,
                turn_timer_seconds=game.turn_timer_seconds,
                timer_seconds=int(current_app.config.get('DEFAULT_TIMER_SEC', 60)),
                category=None,
            )
            for m in game.memberships:
                rematch.memberships.append(GamePlayer(
                    player_id=m.player_id,
                    is_spectator=m.is_spectator,
                    score=0,
                    is_eliminated=False,
                ))
            db.session.add(rematch)
            created = True
    if created:
        current_app.logger.info(f"[rematch] game={game_id} -> game={rematch.id} code={rematch.game_code}")
        notify_game(rematch.game_code)
    return rematch
