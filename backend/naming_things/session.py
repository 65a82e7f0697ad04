from flask import request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest, Unauthorized
from naming_things import db, login_manager
from naming_things.models import Player

SESSION_HEADER = 'X-Session-Token'


def session_token_from_request():
    """Session token from the header, the JSON body or the query string."""
    token = request.headers.get(SESSION_HEADER)
    if not token:
        data = request.get_json(silent=True) or {}
        token = data.get('session_token') if isinstance(data, dict) else None
    if not token:
        token = request.args.get('session_token')
    return token or None


@login_manager.request_loader
def load_player_from_request(req):
    token = session_token_from_request()
    if not token:
        return None
    return Player.query.filter_by(session_token=token).first()


@login_manager.unauthorized_handler
def unauthorized():
    raise Unauthorized('Player not found for this session')


def ensure_session(session_token, display_name):
    """Create the identity for a session token, or rename the existing one."""
    session_token = (session_token or '').strip()
    display_name = (display_name or '').strip()
    if not session_token:
        raise BadRequest('Session token is required')
    if not display_name or len(display_name) > 100:
        raise BadRequest('Display name must be 1-100 characters')

    player = Player.query.filter_by(session_token=session_token).first()
    if player:
        if player.display_name != display_name:
            player.display_name = display_name
            db.session.commit()
        return player

    player = Player(session_token=session_token, display_name=display_name)
    db.session.add(player)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request created this session first
        db.session.rollback()
        player = Player.query.filter_by(session_token=session_token).one()
    return player
