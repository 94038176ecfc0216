"""Sign-up and sign-in against the ``users`` collection.

Credentials are verified elsewhere; an email that resolves to an existing
user document is trusted as that identity.
"""

from dailyscore.errors import InvalidIdentity, NotFound
from dailyscore.identity import normalize
from dailyscore.models import SessionUser
from dailyscore.services.scores.coordinator import ScoreCoordinator
from dailyscore.services.scores.records import USERS, UserRecord


class AlreadyRegistered(InvalidIdentity):
    pass


def sign_up(coordinator: ScoreCoordinator, email, display_name) -> UserRecord:
    """Create the user document with empty aggregates and reserve today's entry."""
    identity = normalize(email)
    display_name = (display_name or '').strip()
    if not display_name:
        raise InvalidIdentity('Please fill in both fields.')

    store = coordinator.store
    with store.transaction() as txn:
        if txn.find(USERS, identity) is not None:
            raise AlreadyRegistered('Email already registered')
        record = UserRecord(identity, display_name=display_name)
        txn.merge(USERS, identity, record.to_document())
    coordinator.reserve(identity, display_name)
    return record


def sign_in(coordinator: ScoreCoordinator, email) -> SessionUser:
    """Resolve an email to its session user and mark today's entry Pending."""
    identity = normalize(email)
    record = load_user(coordinator.store, identity)
    if record is None:
        raise NotFound(USERS, identity)
    coordinator.reserve(identity, record.display_name)
    return SessionUser(identity, record.display_name)


def load_user(store, identity):
    data = store.find(USERS, identity)
    if data is None:
        return None
    return UserRecord.from_document(identity, data)
