import math
from typing import List, Optional

from dailyscore.clock import Clock, Deadline
from dailyscore.services.scores.records import DEFAULT_DISPLAY_NAME, SCORES, USERS, UserRecord
from dailyscore.services.scores.store import DocumentStore


class LeaderboardEntry:
    def __init__(self, name, score):
        self.name = name
        self.score = score

    def to_dict(self):
        return {'name': self.name, 'score': self.score}


def adjusted_score(total_score: int, num_scores: int) -> float:
    """Mean guesses minus log2(plays); lower is better, repeated play is rewarded."""
    return (total_score / num_scores) - math.log2(num_scores)


class LeaderboardQuery:
    """Ranked views over the score documents, best (fewest guesses) first."""

    def __init__(self, store: DocumentStore, clock: Clock, include_pending: bool = True):
        self.store = store
        self.clock = clock
        self.include_pending = include_pending

    def today(self, date: Optional[str] = None, include_pending: Optional[bool] = None,
              timeout: Optional[float] = None) -> List[LeaderboardEntry]:
        deadline = Deadline(self.clock, timeout)
        if include_pending is None:
            include_pending = self.include_pending
        daily = self.store.find(SCORES, date or self.clock.today()) or {}
        deadline.check('today leaderboard')

        rows = []
        for entry in daily.values():
            if not isinstance(entry, dict):
                continue
            try:
                score = int(entry.get('score') or 0)
            except (TypeError, ValueError):
                score = 0
            if score == 0 and not include_pending:
                continue
            rows.append((score, entry.get('displayName') or DEFAULT_DISPLAY_NAME))
        # sorted() is stable: equal scores keep document order
        rows = sorted(rows, key=lambda row: row[0])
        return [LeaderboardEntry(name, str(score)) for score, name in rows]

    def all_time(self, timeout: Optional[float] = None) -> List[LeaderboardEntry]:
        deadline = Deadline(self.clock, timeout)
        documents = self.store.scan(USERS)
        deadline.check('all-time leaderboard')

        rows = []
        for identity, data in documents:
            record = UserRecord.from_document(identity, data)
            if record.num_scores <= 0:
                continue
            rows.append((adjusted_score(record.total_score, record.num_scores), record.display_name))
        rows = sorted(rows, key=lambda row: row[0])
        return [LeaderboardEntry(name, f'{value:.2f}') for value, name in rows]
