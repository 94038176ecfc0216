"""Document shapes for the ``users`` and ``scores`` collections."""

import enum
from typing import Optional

from dailyscore.errors import InvalidGuessCount
from dailyscore.identity import normalize

USERS = 'users'
SCORES = 'scores'

DEFAULT_DISPLAY_NAME = 'Anonymous'


class EntryState(enum.Enum):
    UNRECORDED = 'unrecorded'
    PENDING = 'pending'
    RECORDED = 'recorded'


def validate_guess_count(guess_count) -> int:
    # bool is an int subclass; True must not count as one guess
    if isinstance(guess_count, bool) or not isinstance(guess_count, int):
        raise InvalidGuessCount(f'guess count must be an integer, got {guess_count!r}')
    if guess_count < 1:
        raise InvalidGuessCount(f'guess count must be at least 1, got {guess_count}')
    return guess_count


def entry_score(daily: Optional[dict], identity: str) -> Optional[int]:
    """Score stored for ``identity`` in a daily document, None when absent."""
    entry = (daily or {}).get(identity)
    if not isinstance(entry, dict):
        return None
    try:
        return int(entry.get('score') or 0)
    except (TypeError, ValueError):
        return 0


def entry_state(daily: Optional[dict], identity: str) -> EntryState:
    score = entry_score(daily, identity)
    if score is None:
        return EntryState.UNRECORDED
    if score > 0:
        return EntryState.RECORDED
    return EntryState.PENDING


class UserRecord:
    def __init__(self, identity, display_name=DEFAULT_DISPLAY_NAME, num_scores=0, total_score=0):
        self.identity = identity
        self.display_name = display_name
        self.num_scores = num_scores
        self.total_score = total_score

    @classmethod
    def from_document(cls, identity, data):
        data = data or {}
        num_scores = int(data.get('numScores') or 0)
        total_score = int(data.get('totalScore') or 0)
        if num_scores == 0:
            total_score = 0
        return cls(
            identity,
            display_name=data.get('displayName') or DEFAULT_DISPLAY_NAME,
            num_scores=num_scores,
            total_score=total_score,
        )

    def with_score(self, guess_count, display_name):
        return UserRecord(
            self.identity,
            display_name=display_name,
            num_scores=self.num_scores + 1,
            total_score=self.total_score + guess_count,
        )

    def to_document(self):
        return {
            'displayName': self.display_name,
            'numScores': self.num_scores,
            'totalScore': self.total_score,
        }

    def to_dict(self):
        payload = self.to_document()
        payload['identity'] = self.identity
        return payload


class CompletionEvent:
    """A finished game for one identity on one calendar day."""

    def __init__(self, identity, date, guess_count, display_name):
        self.identity = normalize(identity)
        self.date = date
        self.guess_count = validate_guess_count(guess_count)
        self.display_name = display_name or DEFAULT_DISPLAY_NAME

    def to_dict(self):
        return {
            'identity': self.identity,
            'date': self.date,
            'guessCount': self.guess_count,
            'displayName': self.display_name,
        }


class CompletionResult:
    def __init__(self, accepted, identity, date, score, state, user=None):
        self.accepted = accepted
        self.identity = identity
        self.date = date
        self.score = score
        self.state = state
        self.user = user

    def to_dict(self):
        return {
            'accepted': self.accepted,
            'identity': self.identity,
            'date': self.date,
            'score': self.score,
            'state': self.state.value,
            'user': self.user.to_dict() if self.user else None,
        }
