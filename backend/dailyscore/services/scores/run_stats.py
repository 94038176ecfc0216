"""Per-device run statistics, persisted as a small JSON file.

This is the player's own history and stays authoritative for it whether or
not the leaderboard sync succeeds. The leaderboard only consumes the day's
guess count, handed out once per completed game via ``take_completion``.
"""

import json
import os
from datetime import date as date_cls, timedelta
from typing import Optional

from dailyscore.services.scores.records import CompletionEvent, validate_guess_count

FIRST_STATS = {
    'gamesWon': 0,
    'lastWin': '1970-01-01',
    'currentStreak': 0,
    'maxStreak': 0,
    'usedGuesses': [],
    'emojiGuesses': '',
    'lastReported': None,
}

# Wins before the game launched are placeholders, not real results
EARLIEST_SHOWN_WIN = '2022-01-01'


def _previous_day(day: str) -> str:
    return (date_cls.fromisoformat(day) - timedelta(days=1)).isoformat()


class RunStatistics:
    def __init__(self, path: str):
        self.path = path
        self.stats = dict(FIRST_STATS, usedGuesses=[])
        if os.path.exists(path):
            with open(path, 'r', encoding='utf-8') as fh:
                stored = json.load(fh)
            self.stats.update(stored or {})

    def save(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = f'{self.path}.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as fh:
            json.dump(self.stats, fh, indent=2)
        os.replace(tmp_path, self.path)

    def record_win(self, guess_count: int, day: str, emoji_guesses: str = '') -> bool:
        """Store a won game for ``day``. A second win on the same day is ignored."""
        guess_count = validate_guess_count(guess_count)
        stats = self.stats
        if stats['lastWin'] == day:
            return False
        if stats['lastWin'] == _previous_day(day):
            stats['currentStreak'] = int(stats['currentStreak']) + 1
        else:
            stats['currentStreak'] = 1
        stats['maxStreak'] = max(int(stats['maxStreak']), stats['currentStreak'])
        stats['gamesWon'] = int(stats['gamesWon']) + 1
        stats['usedGuesses'] = list(stats['usedGuesses']) + [guess_count]
        stats['lastWin'] = day
        stats['emojiGuesses'] = emoji_guesses
        self.save()
        return True

    def get_today_guess_count(self, day: str) -> Optional[int]:
        if self.stats['lastWin'] != day or not self.stats['usedGuesses']:
            return None
        return int(self.stats['usedGuesses'][-1])

    def take_completion(self, identity, display_name, day: str) -> Optional[CompletionEvent]:
        """Completion event for ``day``, returned at most once per device."""
        guess_count = self.get_today_guess_count(day)
        if guess_count is None or self.stats.get('lastReported') == day:
            return None
        event = CompletionEvent(identity, day, guess_count, display_name)
        self.stats['lastReported'] = day
        self.save()
        return event

    def summary(self, day: str) -> dict:
        stats = self.stats
        used = [int(g) for g in stats['usedGuesses']]
        today_guesses = self.get_today_guess_count(day)
        return {
            'lastWin': stats['lastWin'] if stats['lastWin'] >= EARLIEST_SHOWN_WIN else '--',
            'todaysGuesses': today_guesses if today_guesses is not None else '--',
            'gamesWon': int(stats['gamesWon']),
            'currentStreak': int(stats['currentStreak']),
            'maxStreak': int(stats['maxStreak']),
            'avgGuesses': round(sum(used) / len(used), 2) if used else '--',
        }
