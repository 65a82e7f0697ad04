from naming_things import db
from flask import current_app
from flask_login import UserMixin
import random
import time

GAME_STATUSES = ('lobby', 'playing', 'reviewing', 'finished')
GAME_MODES = ('classic', 'turns')
ANSWER_STATUSES = ('accepted', 'disputed', 'rejected')

# No I/1/O/0 so codes can be read aloud and typed without confusion
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_LENGTH = 6

TIMER_RANGE = (10, 7200)
TURN_TIMER_RANGE = (3, 30)


class Player(UserMixin, db.Model):
    """A session-scoped identity. Never deleted; display name may change."""
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    session_token = db.Column(db.String(256), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.Float, default=time.time, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'display_name': self.display_name,
        }


def _random_code():
    return ''.join(random.choices(CODE_ALPHABET, k=CODE_LENGTH))


def generate_game_code(attempts=None):
    """Generate a join code not used by any existing game.

    Gives up after a bounded number of attempts and returns the last
    candidate; with 32**6 codes a residual collision is vanishingly rare.
    """
    if attempts is None:
        attempts = int(current_app.config.get('CODE_GENERATION_ATTEMPTS', 10))
    code = _random_code()
    for _ in range(attempts):
        if not Game.query.filter_by(game_code=code).first():
            return code
        code = _random_code()
    return code


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    # Rematches reuse the code, so it is indexed but not unique
    game_code = db.Column(db.String(CODE_LENGTH), nullable=False, index=True)
    host_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    status = db.Column(db.String(16), default='lobby', nullable=False)  # lobby, playing, reviewing, finished
    mode = db.Column(db.String(16), default='classic', nullable=False)  # classic, turns
    category = db.Column(db.String(256), nullable=True)
    timer_seconds = db.Column(db.Integer, default=60, nullable=False)
    turn_timer_seconds = db.Column(db.Integer, default=5, nullable=False)
    current_turn_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    current_turn_deadline = db.Column(db.Float, nullable=True)
    is_paused = db.Column(db.Boolean, default=False, nullable=False)
    paused_at = db.Column(db.Float, nullable=True)
    paused_time_remaining_ms = db.Column(db.Integer, nullable=True)
    paused_turn_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    started_at = db.Column(db.Float, nullable=True)
    ended_at = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.Float, default=time.time, nullable=False)

    host = db.relationship('Player', foreign_keys=[host_player_id])
    memberships = db.relationship('GamePlayer', back_populates='game', order_by='GamePlayer.id',
                                  cascade='all, delete-orphan')
    answers = db.relationship('Answer', back_populates='game', order_by='Answer.id', lazy='dynamic')

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.game_code:
            self.game_code = generate_game_code()

    def membership_for(self, player_id):
        for m in self.memberships:
            if m.player_id == player_id:
                return m
        return None

    def rotation(self):
        """Non-spectator memberships in join order, eliminated ones included."""
        return [m for m in self.memberships if not m.is_spectator]

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.game_code,
            'status': self.status,
            'mode': self.mode,
            'category': self.category,
            'timer_seconds': self.timer_seconds,
            'turn_timer_seconds': self.turn_timer_seconds,
            'current_turn_player_id': self.current_turn_player_id,
            'current_turn_deadline': self.current_turn_deadline,
            'is_paused': self.is_paused,
            'paused_time_remaining_ms': self.paused_time_remaining_ms,
            'started_at': self.started_at,
            'ended_at': self.ended_at,
            'host_player_id': self.host_player_id,
        }


class GamePlayer(db.Model):
    """Membership of a player in one game; carries per-game score and elimination."""
    __tablename__ = 'game_player'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'player_id', name='uq_game_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)
    is_spectator = db.Column(db.Boolean, default=False, nullable=False)
    is_eliminated = db.Column(db.Boolean, default=False, nullable=False)
    eliminated_at = db.Column(db.Float, nullable=True)
    joined_at = db.Column(db.Float, default=time.time, nullable=False)

    game = db.relationship('Game', back_populates='memberships')
    player = db.relationship('Player')

    def to_dict(self, host_player_id=None):
        return {
            'id': self.player_id,
            'display_name': self.player.display_name,
            'score': self.score,
            'is_host': self.player_id == host_player_id,
            'is_eliminated': self.is_eliminated,
            'eliminated_at': self.eliminated_at,
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    # A player never holds the same normalized answer twice in one game
    __table_args__ = (
        db.UniqueConstraint('game_id', 'player_id', 'normalized_text', name='uq_answer_game_player_text'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    text = db.Column(db.String(256), nullable=False)
    normalized_text = db.Column(db.String(256), nullable=False)
    status = db.Column(db.String(16), default='accepted', nullable=False)  # accepted, disputed, rejected
    created_at = db.Column(db.Float, default=time.time, nullable=False)

    game = db.relationship('Game', back_populates='answers')
    player = db.relationship('Player')
    votes = db.relationship('DisputeVote', back_populates='answer', order_by='DisputeVote.id')

    def to_dict(self):
        return {
            'id': self.id,
            'text': self.text,
            'normalized_text': self.normalized_text,
            'player_id': self.player_id,
            'status': self.status,
        }


class DisputeVote(db.Model):
    __tablename__ = 'dispute_vote'
    __table_args__ = (
        db.UniqueConstraint('answer_id', 'voter_player_id', name='uq_dispute_vote'),
    )
    id = db.Column(db.Integer, primary_key=True)
    answer_id = db.Column(db.Integer, db.ForeignKey('answer.id'), nullable=False, index=True)
    voter_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    accept = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.Float, default=time.time, nullable=False)

    answer = db.relationship('Answer', back_populates='votes')

    def to_dict(self):
        return {
            'voter_player_id': self.voter_player_id,
            'accept': self.accept,
        }
