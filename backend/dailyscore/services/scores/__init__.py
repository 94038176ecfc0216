"""Score domain services: daily results, aggregates and rankings.

Imported by the HTTP routes, socket handlers and CLI commands, which own
logging and request deadlines. Nothing in here touches Flask's request or
response objects.
"""

from flask import current_app

from dailyscore.services.scores.coordinator import ScoreCoordinator
from dailyscore.services.scores.leaderboard import LeaderboardQuery
from dailyscore.services.scores.store import DocumentStore


def get_clock():
    return current_app.extensions['dailyscore_clock']


def get_coordinator() -> ScoreCoordinator:
    cfg = current_app.config
    return ScoreCoordinator(
        DocumentStore(),
        get_clock(),
        conflict_attempts=int(cfg.get('SCORE_CONFLICT_ATTEMPTS', 3)),
    )


def get_leaderboard() -> LeaderboardQuery:
    cfg = current_app.config
    return LeaderboardQuery(
        DocumentStore(),
        get_clock(),
        include_pending=bool(cfg.get('LEADERBOARD_TODAY_INCLUDE_PENDING', True)),
    )


def request_timeout():
    try:
        timeout = float(current_app.config.get('SCORE_REQUEST_TIMEOUT_SEC', 0))
    except (TypeError, ValueError):
        timeout = 0.0
    return timeout or None
