"""Error taxonomy for game-session operations.

Every error carries the HTTP status the blueprint answers with and a short
machine-readable code. Only ``UpstreamFailure`` wraps another exception.
"""


class GameError(Exception):
    status_code = 400
    code = 'game_error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class ValidationError(GameError):
    status_code = 400
    code = 'invalid_request'


class NotFound(GameError):
    status_code = 404
    code = 'not_found'


class Unauthorized(GameError):
    status_code = 403
    code = 'unauthorized'


class InvalidTransition(GameError):
    status_code = 409
    code = 'invalid_transition'


class ConcurrentModification(GameError):
    status_code = 409
    code = 'concurrent_modification'


class UpstreamFailure(GameError):
    """The generation service or the store failed or timed out."""
    status_code = 502
    code = 'upstream_failure'


class PromptPoolExhausted(GameError):
    """No usable prompt is left after replenishment."""
    status_code = 503
    code = 'prompt_pool_exhausted'
