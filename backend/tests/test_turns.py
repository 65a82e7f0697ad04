import threading

import pytest

from naming_things import create_app, db
from naming_things.models import Game, GamePlayer
from naming_things.services.games.turns import claim_expired_turn

from conftest import TestConfig


def _start_turns(client, lobby, *names):
    game = lobby(*names, mode='turns')
    res = client.post(f'/api/games/{game.id}/start', headers=game.host.headers)
    assert res.status_code == 200
    return game


def _state(client, game, who=None):
    who = who or game.host
    return client.get(f'/api/games/{game.code}/state', headers=who.headers).get_json()


def _say(client, game, player, text):
    res = client.post(f'/api/games/{game.id}/turn-answer', json={'text': text}, headers=player.headers)
    assert res.status_code == 200, res.get_json()
    return res.get_json()


def test_turns_mode_needs_two_players(client, lobby):
    game = lobby(mode='turns')
    res = client.post(f'/api/games/{game.id}/start', headers=game.host.headers)
    assert res.status_code == 400
    assert 'players' in res.get_json()['error']


def test_start_assigns_first_joined_player(client, lobby, clock):
    game = _start_turns(client, lobby, 'A', 'B')
    state = _state(client, game)
    assert state['status'] == 'playing'
    assert state['current_turn_player_id'] == game.host.id
    assert state['current_turn_deadline'] == clock.current + 5
    assert state['ended_at'] is None


def test_out_of_turn_answer_rejected(client, lobby):
    game = _start_turns(client, lobby, 'A')
    a = game.players[1]
    res = client.post(f'/api/games/{game.id}/turn-answer', json={'text': 'apple'}, headers=a.headers)
    assert res.status_code == 400


def test_turns_elimination_to_completion(client, lobby, clock):
    game = _start_turns(client, lobby, 'B', 'C')
    a, b, c = game.players

    result = _say(client, game, a, 'apple')
    assert result['success'] is True
    assert result['next_player_id'] == b.id

    result = _say(client, game, b, 'Apple')
    assert result == {
        'success': False,
        'reason': 'duplicate',
        'next_player_id': c.id,
        'next_deadline': clock.current + 5,
        'game_finished': False,
        'winner_player_id': None,
    }

    result = _say(client, game, c, 'banana')
    assert result['success'] is True
    assert result['next_player_id'] == a.id

    result = _say(client, game, a, 'cherry')
    assert result['next_player_id'] == c.id

    clock.advance(1)
    result = _say(client, game, c, 'APPLE')
    assert result['success'] is False
    assert result['game_finished'] is True
    assert result['winner_player_id'] == a.id
    assert result['next_player_id'] is None

    state = _state(client, game)
    assert state['status'] == 'finished'
    assert state['current_turn_player_id'] is None
    assert state['current_turn_deadline'] is None
    assert state['winner_player_id'] == a.id
    scores = {p['id']: p['score'] for p in state['players']}
    assert scores == {a.id: 2, b.id: 0, c.id: 1}
    # Winner first, then most recently eliminated
    assert [p['id'] for p in state['standings']] == [a.id, c.id, b.id]
    assert [h['text'] for h in state['turns_history']] == ['apple', 'banana', 'cherry']
    assert state['turns_history'][1]['player_display_name'] == 'C'


def test_rotation_skips_eliminated_player(client, lobby):
    game = _start_turns(client, lobby, 'B', 'C', 'D')
    a, b, c, d = game.players
    _say(client, game, a, 'one')
    _say(client, game, b, 'one')  # B eliminated
    seen = []
    for word in ['two', 'three', 'four', 'five', 'six', 'seven']:
        state = _state(client, game)
        current = state['current_turn_player_id']
        seen.append(current)
        speaker = next(p for p in game.players if p.id == current)
        _say(client, game, speaker, word)
    assert seen == [c.id, d.id, a.id, c.id, d.id, a.id]


def test_timeout_before_deadline_is_noop(client, lobby, clock):
    game = _start_turns(client, lobby, 'B')
    b = game.players[1]
    clock.advance(4)
    res = client.post(f'/api/games/{game.id}/timeout-turn', headers=b.headers)
    assert res.get_json() == {'success': False}
    assert _state(client, game)['current_turn_player_id'] == game.host.id


def test_repeated_timeout_eliminates_exactly_once(flask_app, client, lobby, clock):
    game = _start_turns(client, lobby, 'B', 'C')
    a, b, c = game.players
    clock.advance(5)

    results = [
        client.post(f'/api/games/{game.id}/timeout-turn', headers=p.headers).get_json()
        for p in (b, c, b, a)
    ]
    assert [r['success'] for r in results] == [True, False, False, False]
    assert results[0]['next_player_id'] == b.id

    state = _state(client, game)
    eliminated = [p['id'] for p in state['players'] if p['is_eliminated']]
    assert eliminated == [a.id]
    assert state['current_turn_player_id'] == b.id
    assert state['current_turn_deadline'] == clock.current + 5


def test_expired_turn_cannot_answer(client, lobby, clock):
    game = _start_turns(client, lobby, 'B')
    clock.advance(6)
    res = client.post(f'/api/games/{game.id}/turn-answer', json={'text': 'late'}, headers=game.host.headers)
    assert res.status_code == 400


def test_timeout_of_last_rival_finishes_game(client, lobby, clock):
    game = _start_turns(client, lobby, 'B')
    a, b = game.players
    clock.advance(5)
    result = client.post(f'/api/games/{game.id}/timeout-turn', headers=b.headers).get_json()
    assert result['success'] is True
    assert result['game_finished'] is True
    assert result['winner_player_id'] == b.id
    assert _state(client, game)['status'] == 'finished'


def test_claim_expired_turn_succeeds_once(flask_app, client, lobby, clock):
    game = _start_turns(client, lobby, 'B')
    clock.advance(10)
    with flask_app.app_context():
        row = db.session.get(Game, game.id)
        player_id, deadline = row.current_turn_player_id, row.current_turn_deadline
        assert claim_expired_turn(game.id, player_id, deadline, clock.current) is True
        assert claim_expired_turn(game.id, player_id, deadline, clock.current) is False
        db.session.rollback()
        # Not yet expired: nothing to claim
        assert claim_expired_turn(game.id, player_id, deadline, deadline - 1) is False
        db.session.rollback()


def test_pause_and_resume_keeps_turn_owner(client, lobby, clock):
    game = _start_turns(client, lobby, 'B')
    host = game.host
    clock.advance(2)
    assert client.post(f'/api/games/{game.id}/pause', headers=host.headers).status_code == 200
    state = _state(client, game)
    assert state['is_paused'] is True
    assert state['current_turn_player_id'] is None
    assert state['current_turn_deadline'] is None
    assert state['paused_time_remaining_ms'] == 3000

    # Deadline is frozen while paused
    clock.advance(600)
    assert client.post(f'/api/games/{game.id}/timeout-turn', headers=host.headers).get_json() == {'success': False}
    assert client.post(f'/api/games/{game.id}/turn-answer', json={'text': 'x'}, headers=host.headers).status_code == 400

    assert client.post(f'/api/games/{game.id}/resume', headers=host.headers).status_code == 200
    state = _state(client, game)
    assert state['is_paused'] is False
    assert state['current_turn_player_id'] == host.id
    assert state['current_turn_deadline'] == clock.current + 3
    assert state['paused_time_remaining_ms'] is None


def test_terminate_turns_game_finishes_directly(client, lobby):
    game = _start_turns(client, lobby, 'B')
    _say(client, game, game.host, 'apple')
    assert client.post(f'/api/games/{game.id}/end-answering', headers=game.host.headers).status_code == 400
    assert client.post(f'/api/games/{game.id}/terminate', headers=game.host.headers).status_code == 200
    state = _state(client, game)
    assert state['status'] == 'finished'
    assert state['current_turn_player_id'] is None
    assert state['ended_at'] is not None


def test_spectators_are_not_in_rotation(flask_app, client, lobby, new_player):
    game = lobby('B', mode='turns')
    watcher = new_player('Watcher')
    client.post('/api/games/spectate', json={'code': game.code}, headers=watcher.headers)
    client.post(f'/api/games/{game.id}/start', headers=game.host.headers)
    a, b = game.players
    assert _say(client, game, a, 'apple')['next_player_id'] == b.id
    assert _say(client, game, b, 'pear')['next_player_id'] == a.id
    with flask_app.app_context():
        spectator = GamePlayer.query.filter_by(game_id=game.id, player_id=watcher.id).one()
        assert spectator.is_spectator and not spectator.is_eliminated


@pytest.fixture()
def file_app(tmp_path):
    """App on a file-backed SQLite database so separate threads get separate connections."""

    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'games.db'}"
        NOTIFICATION_SINK = 'none'

    application = create_app(FileConfig)
    with application.app_context():
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_concurrent_timeouts_eliminate_exactly_once(file_app, clock):
    client = file_app.test_client()
    headers = []
    for name in ('A', 'B', 'C'):
        token = f'session-{name.lower()}'
        client.post('/api/players/session', json={'session_token': token, 'display_name': name})
        headers.append({'X-Session-Token': token})
    created = client.post('/api/games/create', headers=headers[0]).get_json()
    game_id = created['game_id']
    for h in headers[1:]:
        client.post('/api/games/join', json={'code': created['code']}, headers=h)
    client.post(f'/api/games/{game_id}/mode', json={'mode': 'turns'}, headers=headers[0])
    client.post(f'/api/games/{game_id}/category', json={'category': 'fruits'}, headers=headers[0])
    assert client.post(f'/api/games/{game_id}/start', headers=headers[0]).status_code == 200
    clock.advance(5)

    callers = headers * 3
    barrier = threading.Barrier(len(callers))
    results, errors = [], []

    def fire(h):
        own_client = file_app.test_client()
        barrier.wait()
        try:
            results.append(own_client.post(f'/api/games/{game_id}/timeout-turn', headers=h).get_json())
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=fire, args=(h,)) for h in callers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert len(results) == len(callers)
    assert sum(1 for r in results if r['success']) == 1

    state = client.get(f"/api/games/{created['code']}/state", headers=headers[0]).get_json()
    eliminated = [p['display_name'] for p in state['players'] if p['is_eliminated']]
    assert eliminated == ['A']
    assert state['current_turn_player_id'] == state['players'][1]['id']
    assert state['current_turn_deadline'] == clock.current + 5
