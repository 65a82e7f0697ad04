"""Invalidation pings for clients watching a game.

The engine never pushes state. After a mutation commits it calls
``notify(code)`` and subscribers re-poll ``/api/games/<code>/state``.
Delivery is best-effort: a failing transport is logged, never raised.
"""

from flask import current_app


class NotificationSink:
    """Fan-out signal keyed by join code."""

    def notify(self, game_code: str) -> None:
        raise NotImplementedError


class NullNotificationSink(NotificationSink):
    """For poll-only deployments."""

    def notify(self, game_code: str) -> None:
        return None


class SocketIONotificationSink(NotificationSink):
    """Emits ``state_update`` to every socket in room ``game:<CODE>`` on ``/ws``."""

    def __init__(self, namespace: str = '/ws'):
        self.namespace = namespace

    def notify(self, game_code: str) -> None:
        from naming_things import socketio
        code = game_code.upper()
        socketio.emit('state_update', {'game_code': code}, to=f"game:{code}", namespace=self.namespace)


def build_notification_sink(kind) -> NotificationSink:
    if kind in (None, '', 'none', 'null'):
        return NullNotificationSink()
    if kind == 'socketio':
        return SocketIONotificationSink()
    raise ValueError(f"Unknown NOTIFICATION_SINK: {kind!r}")


def notify_game(game_code: str) -> None:
    sink = current_app.extensions.get('notification_sink')
    if sink is None:
        return
    try:
        sink.notify(game_code)
    except Exception as exc:
        current_app.logger.warning(f"[notify-failed] code={game_code} error={exc}")
