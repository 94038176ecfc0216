"""Error taxonomy for the score engine.

Validation errors are raised before any store access. Store errors carry
the underlying exception as ``__cause__``.
"""


class ScoreServiceError(Exception):
    """Base class for every error raised by the score engine."""

    status_code = 500

    def __init__(self, message: str = ''):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class InvalidIdentity(ScoreServiceError):
    status_code = 400


class InvalidGuessCount(ScoreServiceError):
    status_code = 400


class NotFound(ScoreServiceError):
    """A document is absent. Readers treat this as zero state."""

    status_code = 404

    def __init__(self, collection: str, key: str):
        super().__init__(f'{collection}/{key} not found')
        self.collection = collection
        self.key = key


class StoreUnavailable(ScoreServiceError):
    status_code = 503


class WriteConflict(ScoreServiceError):
    """A document changed between read and commit."""

    status_code = 409


class DeadlineExceeded(ScoreServiceError):
    status_code = 504
