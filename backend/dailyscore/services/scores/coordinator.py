"""Score update coordinator.

Turns a completed game into the two writes that make it count: the user's
aggregate (``users/{identity}``) and the day's entry (``scores/{date}``).
A day's score is written at most once per identity. Both writes are staged
in one store transaction whose commit compares document versions, so two
racing completions cannot both pass the "not yet recorded" check.
"""

import threading
import weakref
from contextlib import contextmanager
from typing import Optional

from dailyscore.clock import Clock, Deadline
from dailyscore.errors import DeadlineExceeded, WriteConflict
from dailyscore.identity import normalize
from dailyscore.services.scores.records import (
    DEFAULT_DISPLAY_NAME,
    SCORES,
    USERS,
    CompletionEvent,
    CompletionResult,
    EntryState,
    UserRecord,
    entry_score,
    entry_state,
)
from dailyscore.services.scores.store import DocumentStore


# One writer per identity inside this process; the version check covers other processes.
# Entries drop out once no caller holds or waits on the lock.
_identity_locks: 'weakref.WeakValueDictionary[str, threading.Lock]' = weakref.WeakValueDictionary()
_identity_locks_guard = threading.Lock()


def _lock_for(identity: str) -> threading.Lock:
    with _identity_locks_guard:
        lock = _identity_locks.get(identity)
        if lock is None:
            lock = threading.Lock()
            _identity_locks[identity] = lock
        return lock


@contextmanager
def _writer_slot(identity: str, deadline: Deadline, what: str):
    lock = _lock_for(identity)
    remaining = deadline.remaining()
    if not lock.acquire(timeout=-1 if remaining is None else remaining):
        raise DeadlineExceeded(f'{what} did not finish before its deadline (another update of this identity is running)')
    try:
        yield
    finally:
        lock.release()


class ScoreCoordinator:
    def __init__(self, store: DocumentStore, clock: Clock, conflict_attempts: int = 3):
        self.store = store
        self.clock = clock
        self.conflict_attempts = max(1, int(conflict_attempts))

    def record_completion(self, event: CompletionEvent, timeout: Optional[float] = None) -> CompletionResult:
        """Accept ``event`` unless the identity already has a score for that date.

        Raises StoreUnavailable, DeadlineExceeded, or WriteConflict once the
        optimistic attempts are used up. Nothing is written in those cases.
        """
        deadline = Deadline(self.clock, timeout)
        with _writer_slot(event.identity, deadline, 'score update'):
            return self._run_optimistic(lambda: self._accept(event, deadline))

    def complete(self, identity, guess_count, display_name=None, date=None, timeout=None) -> CompletionResult:
        event = CompletionEvent(identity, date or self.clock.today(), guess_count, display_name)
        return self.record_completion(event, timeout=timeout)

    def reserve(self, identity, display_name=None, date=None, timeout=None) -> EntryState:
        """Sign-in sentinel: mark the identity Pending for ``date`` if it has no entry yet.

        Returns the state of the entry after the call.
        """
        identity = normalize(identity)
        date = date or self.clock.today()
        deadline = Deadline(self.clock, timeout)
        with _writer_slot(identity, deadline, 'sign-in reservation'):
            return self._run_optimistic(
                lambda: self._reserve(identity, display_name or DEFAULT_DISPLAY_NAME, date, deadline)
            )

    def state_of(self, identity, date=None):
        """``(state, score)`` of an identity's entry for ``date``."""
        identity = normalize(identity)
        daily = self.store.find(SCORES, date or self.clock.today())
        return entry_state(daily, identity), entry_score(daily, identity)

    def _run_optimistic(self, attempt):
        last_conflict = None
        for _ in range(self.conflict_attempts):
            try:
                return attempt()
            except WriteConflict as exc:
                last_conflict = exc
        raise last_conflict

    def _accept(self, event: CompletionEvent, deadline: Deadline) -> CompletionResult:
        with self.store.transaction() as txn:
            daily = txn.find(SCORES, event.date)
            state = entry_state(daily, event.identity)
            if state is EntryState.RECORDED:
                return CompletionResult(
                    False,
                    event.identity,
                    event.date,
                    entry_score(daily, event.identity),
                    state,
                )

            user = UserRecord.from_document(event.identity, txn.find(USERS, event.identity))
            updated = user.with_score(event.guess_count, event.display_name)
            deadline.check('score update')
            txn.merge(USERS, event.identity, updated.to_document())
            txn.merge(SCORES, event.date, {
                event.identity: {'displayName': event.display_name, 'score': event.guess_count},
            })
            deadline.check('score update')
        return CompletionResult(True, event.identity, event.date, event.guess_count, EntryState.RECORDED, updated)

    def _reserve(self, identity, display_name, date, deadline: Deadline) -> EntryState:
        with self.store.transaction() as txn:
            state = entry_state(txn.find(SCORES, date), identity)
            if state is not EntryState.UNRECORDED:
                return state
            deadline.check('sign-in reservation')
            txn.merge(SCORES, date, {identity: {'displayName': display_name, 'score': 0}})
        return EntryState.PENDING
