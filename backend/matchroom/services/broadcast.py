"""Best-effort fan-out of committed state changes over Socket.IO."""

import functools

ROOM_UPDATED = 'room_updated'
ANSWER_SUBMITTED = 'answer_submitted'
JUDGE_RESULT = 'judge_result'
PLAYER_JOINED = 'player_joined'
PLAYER_LEFT = 'player_left'


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


class Broadcaster:
    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def publish(self, event_type: str, payload: dict) -> None:
        self.socketio.emit(event_type, payload, to=room_channel(payload['roomId']), namespace=self.namespace)


def _to_payload(session, result):
    return result.to_dict() if result is not None else None


def broadcasts(event_type, project=_to_payload):
    """Publish ``project(session, result)`` after the wrapped method returns.

    The wrapped method's store writes are already committed when it
    returns, so a publish failure is logged and swallowed. A projection that
    returns None publishes nothing.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            result = method(self, *args, **kwargs)
            try:
                payload = project(self, result)
                if payload is not None:
                    self.broadcaster.publish(event_type, payload)
            except Exception as exc:
                self.logger.warning(f"[broadcast] {method.__name__} -> {event_type} failed: {exc}")
            return result
        return wrapper
    return decorator
