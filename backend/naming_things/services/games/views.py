from naming_things.models import Game
from .common import latest_game_by_code
from .turns import elimination_order


def final_standings(game: Game):
    """Final scoreboard order.

    Turns games list the survivor first and then players by most recent
    elimination. Classic games rank by score, earliest joiner first on ties.
    """
    if game.mode == 'turns':
        ordered = elimination_order(game)
    else:
        ordered = sorted(game.rotation(), key=lambda m: (-m.score, m.id))
    return [m.to_dict(game.host_player_id) for m in ordered]


def turns_history(game: Game):
    if game.mode != 'turns' or game.status == 'lobby':
        return []
    return [
        {'text': a.text, 'player_display_name': a.player.display_name}
        for a in game.answers.all()
    ]


def build_game_view(game: Game, player) -> dict:
    """Read projection for polling clients; recomputed from stored state on every call."""
    caller = game.membership_for(player.id)
    payload = game.to_dict()
    payload.update({
        'turns_history': turns_history(game),
        'caller_is_host': game.host_player_id == player.id,
        'caller_is_spectator': bool(caller and caller.is_spectator),
        'caller_is_member': caller is not None,
        'caller_player_id': player.id,
        'players': [m.to_dict(game.host_player_id) for m in game.rotation()],
        'spectators': [
            {'id': m.player_id, 'display_name': m.player.display_name}
            for m in game.memberships if m.is_spectator
        ],
        'standings': final_standings(game) if game.status == 'finished' else None,
        'winner_player_id': None,
    })
    if game.status == 'finished' and game.mode == 'turns':
        survivors = [m for m in game.rotation() if not m.is_eliminated]
        if len(survivors) == 1:
            payload['winner_player_id'] = survivors[0].player_id
    return payload


def get_game_state(player, code) -> dict:
    return build_game_view(latest_game_by_code(code), player)
