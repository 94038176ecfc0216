import gc
import threading
from contextlib import contextmanager

import pytest

from dailyscore.errors import (
    DeadlineExceeded,
    InvalidGuessCount,
    InvalidIdentity,
    StoreUnavailable,
    WriteConflict,
)
from dailyscore.services.scores import coordinator as coordinator_module
from dailyscore.services.scores.accounts import sign_up
from dailyscore.services.scores.coordinator import ScoreCoordinator
from dailyscore.services.scores.records import CompletionEvent, EntryState
from dailyscore.services.scores.store import DocumentStore

TODAY = '2024-03-15'


def _user(store, identity):
    return store.get('users', identity)


def _entry(store, identity, date=TODAY):
    return store.get('scores', date)[identity]


def test_first_completion_is_accepted(coordinator, store):
    result = coordinator.complete('Ana@Example.com', 4, display_name='Ana')

    assert result.accepted is True
    assert result.identity == 'ana@example.com'
    assert result.date == TODAY
    assert result.state is EntryState.RECORDED
    assert _user(store, 'ana@example.com') == {'displayName': 'Ana', 'numScores': 1, 'totalScore': 4}
    assert _entry(store, 'ana@example.com') == {'displayName': 'Ana', 'score': 4}


def test_replayed_completion_is_a_no_op(coordinator, store):
    event = CompletionEvent('ana@example.com', TODAY, 4, 'Ana')
    assert coordinator.record_completion(event).accepted is True

    replay = coordinator.record_completion(event)
    different = coordinator.complete(' ANA@example.com ', 2, display_name='Ana B')

    assert replay.accepted is False
    assert different.accepted is False
    assert different.score == 4
    assert different.state is EntryState.RECORDED
    assert _user(store, 'ana@example.com') == {'displayName': 'Ana', 'numScores': 1, 'totalScore': 4}
    assert _entry(store, 'ana@example.com') == {'displayName': 'Ana', 'score': 4}


def test_pending_sentinel_transitions_once(coordinator, store):
    assert coordinator.reserve('ana@example.com', 'Ana') is EntryState.PENDING
    assert _entry(store, 'ana@example.com') == {'displayName': 'Ana', 'score': 0}
    assert coordinator.state_of('ana@example.com') == (EntryState.PENDING, 0)

    assert coordinator.complete('ana@example.com', 4, display_name='Ana').accepted is True
    assert coordinator.complete('ana@example.com', 2, display_name='Ana').accepted is False

    assert _entry(store, 'ana@example.com')['score'] == 4
    assert coordinator.state_of('ana@example.com') == (EntryState.RECORDED, 4)


def test_reserve_never_clobbers_a_recorded_score(coordinator, store):
    coordinator.complete('ana@example.com', 3, display_name='Ana')

    assert coordinator.reserve('ana@example.com', 'Ana') is EntryState.RECORDED
    assert _entry(store, 'ana@example.com')['score'] == 3


def test_reserve_does_not_touch_user_aggregates(coordinator, store):
    coordinator.reserve('ana@example.com', 'Ana')

    assert store.find('users', 'ana@example.com') is None
    assert coordinator.state_of('bob@example.com') == (EntryState.UNRECORDED, None)


def test_aggregates_accumulate_across_days(coordinator, store):
    coordinator.complete('ana@example.com', 3, display_name='Ana', date='2024-03-13')
    coordinator.complete('ana@example.com', 5, display_name='Ana Lee', date='2024-03-14')
    coordinator.complete('ana@example.com', 2, display_name='Ana Lee', date='2024-03-14')

    assert _user(store, 'ana@example.com') == {'displayName': 'Ana Lee', 'numScores': 2, 'totalScore': 8}


def test_other_identities_in_the_same_day_are_preserved(coordinator, store):
    coordinator.reserve('bob@example.com', 'Bob')
    coordinator.complete('ana@example.com', 3, display_name='Ana')
    coordinator.complete('cleo@example.com', 6, display_name='Cleo')

    assert store.get('scores', TODAY) == {
        'bob@example.com': {'displayName': 'Bob', 'score': 0},
        'ana@example.com': {'displayName': 'Ana', 'score': 3},
        'cleo@example.com': {'displayName': 'Cleo', 'score': 6},
    }


def test_missing_display_name_falls_back_to_anonymous(coordinator, store):
    coordinator.complete('ana@example.com', 3)
    assert _entry(store, 'ana@example.com')['displayName'] == 'Anonymous'


@pytest.mark.parametrize('guess_count', [0, -1, 2.5, '3', None, True])
def test_invalid_guess_count_writes_nothing(coordinator, store, guess_count):
    with pytest.raises(InvalidGuessCount):
        coordinator.complete('ana@example.com', guess_count)
    assert store.find('scores', TODAY) is None
    assert store.find('users', 'ana@example.com') is None


def test_invalid_identity_writes_nothing(coordinator, store):
    with pytest.raises(InvalidIdentity):
        coordinator.complete('   ', 3)
    with pytest.raises(InvalidIdentity):
        coordinator.reserve('', 'Nobody')
    assert store.find('scores', TODAY) is None


def test_aggregate_invariant_holds_for_all_users(coordinator, store):
    coordinator.reserve('bob@example.com', 'Bob')
    coordinator.complete('ana@example.com', 3, display_name='Ana')
    coordinator.complete('ana@example.com', 3, display_name='Ana')

    for _, data in store.scan('users'):
        assert (data['numScores'] == 0) == (data['totalScore'] == 0)


class TickingClock:
    """Delegates to a clock but moves monotonic time forward on every read."""

    def __init__(self, clock, step):
        self.clock = clock
        self.step = step
        self.ticks = 0.0

    def today(self):
        return self.clock.today()

    def monotonic(self):
        self.ticks += self.step
        return self.ticks


def test_deadline_expiry_leaves_no_effect(store, clock):
    slow = ScoreCoordinator(store, TickingClock(clock, step=1.0))

    with pytest.raises(DeadlineExceeded):
        slow.complete('ana@example.com', 3, display_name='Ana', timeout=0.5)

    assert store.find('scores', TODAY) is None
    assert store.find('users', 'ana@example.com') is None


def test_generous_deadline_completes(store, clock):
    coordinator = ScoreCoordinator(store, TickingClock(clock, step=1.0))
    assert coordinator.complete('ana@example.com', 3, timeout=60).accepted is True


class ConflictingStore(DocumentStore):
    """Fails the first ``conflicts`` commits as if another writer got there first."""

    def __init__(self, conflicts):
        super().__init__()
        self.conflicts = conflicts
        self.attempts = 0

    @contextmanager
    def transaction(self):
        self.attempts += 1
        with super().transaction() as txn:
            yield txn
            if self.attempts <= self.conflicts:
                raise WriteConflict("version moved")


def test_conflict_is_re_evaluated_from_fresh_reads(clock, flask_app):
    store = ConflictingStore(conflicts=2)
    coordinator = ScoreCoordinator(store, clock, conflict_attempts=3)

    result = coordinator.complete('ana@example.com', 3, display_name='Ana')

    assert result.accepted is True
    assert store.attempts == 3
    assert store.get('users', 'ana@example.com')['numScores'] == 1


def test_conflicts_beyond_the_attempt_budget_propagate(clock, flask_app):
    store = ConflictingStore(conflicts=5)
    coordinator = ScoreCoordinator(store, clock, conflict_attempts=2)

    with pytest.raises(WriteConflict):
        coordinator.complete('ana@example.com', 3, display_name='Ana')
    assert store.attempts == 2
    assert DocumentStore().find('users', 'ana@example.com') is None


class DownStore(DocumentStore):
    def transaction(self):
        raise StoreUnavailable('connection refused')


def test_store_unavailable_propagates_without_retry(clock, flask_app):
    coordinator = ScoreCoordinator(DownStore(), clock)
    with pytest.raises(StoreUnavailable):
        coordinator.complete('ana@example.com', 3)


def test_waiting_on_a_busy_identity_respects_the_deadline(coordinator, store):
    busy = coordinator_module._lock_for('ana@example.com')
    busy.acquire()
    try:
        with pytest.raises(DeadlineExceeded):
            coordinator.complete('Ana@Example.com', 3, display_name='Ana', timeout=0.05)
        with pytest.raises(DeadlineExceeded):
            coordinator.reserve('ana@example.com', 'Ana', timeout=0.05)
    finally:
        busy.release()

    assert store.find('users', 'ana@example.com') is None
    assert store.find('scores', TODAY) is None
    assert coordinator.complete('ana@example.com', 3, timeout=0.05).accepted is True


def test_identity_locks_are_dropped_after_use(coordinator):
    coordinator.complete('ana@example.com', 3)
    coordinator.reserve('ben@example.com', 'Ben')
    gc.collect()

    assert 'ana@example.com' not in coordinator_module._identity_locks
    assert 'ben@example.com' not in coordinator_module._identity_locks


class RacingStore(DocumentStore):
    """Holds its first transaction at commit time until every racer has read.

    Commits then go through one at a time, so the database sees two writers
    that both staged their update from the same document versions.
    """

    def __init__(self, barrier, commits):
        super().__init__()
        self.barrier = barrier
        self.commits = commits
        self.paused = False

    @contextmanager
    def transaction(self):
        holding = False
        try:
            with super().transaction() as txn:
                yield txn
                if not self.paused:
                    self.paused = True
                    self.barrier.wait(timeout=10)
                self.commits.acquire()
                holding = True
        finally:
            if holding:
                self.commits.release()


def test_racing_sessions_record_the_score_once(file_app, clock, monkeypatch):
    sign_up(ScoreCoordinator(DocumentStore(), clock), 'ana@example.com', 'Ana')
    # Separate processes share no identity lock; only the version check stands between them
    monkeypatch.setattr(coordinator_module, '_lock_for', lambda identity: threading.Lock())

    barrier = threading.Barrier(2)
    commits = threading.Lock()
    results, errors = [], []

    def play(guesses):
        with file_app.app_context():
            racer = ScoreCoordinator(RacingStore(barrier, commits), clock)
            try:
                results.append(racer.complete('ana@example.com', guesses, display_name='Ana'))
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=play, args=(guesses,)) for guesses in (3, 5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(result.accepted for result in results) == [False, True]
    winner = next(result for result in results if result.accepted)
    loser = next(result for result in results if not result.accepted)
    assert loser.state is EntryState.RECORDED
    assert loser.score == winner.score

    store = DocumentStore()
    assert store.get('users', 'ana@example.com') == {
        'displayName': 'Ana',
        'numScores': 1,
        'totalScore': winner.score,
    }
    assert _entry(store, 'ana@example.com') == {'displayName': 'Ana', 'score': winner.score}
