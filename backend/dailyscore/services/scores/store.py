"""Document store client over the ``document`` table.

Documents are JSON bodies addressed by ``(collection, key)``. Writes are
merge-writes: nested maps are merged key by key, so writing one identity's
entry never touches the other entries of the same daily document.

``transaction()`` stages reads and writes on one session and commits them
together; every UPDATE is guarded by the document version read in the
transaction, which makes the commit a compare-and-swap.
"""

from contextlib import contextmanager
import copy

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from dailyscore import db
from dailyscore.errors import NotFound, StoreUnavailable, WriteConflict
from dailyscore.models import Document

_UNAVAILABLE = (OperationalError, InterfaceError)


def merge_fields(base, partial):
    """Return ``base`` with ``partial`` merged in; nested dicts merge recursively."""
    merged = copy.deepcopy(base or {})
    for name, value in (partial or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(name), dict):
            merged[name] = merge_fields(merged[name], value)
        else:
            merged[name] = copy.deepcopy(value)
    return merged


class StoreTransaction:
    def __init__(self, session):
        self.session = session
        self._docs = {}

    def _load(self, collection, key):
        cache_key = (collection, key)
        if cache_key not in self._docs:
            stmt = (
                select(Document)
                .filter_by(collection=collection, key=key)
                .execution_options(populate_existing=True)
            )
            self._docs[cache_key] = self.session.execute(stmt).scalar_one_or_none()
        return self._docs[cache_key]

    def get(self, collection, key):
        doc = self._load(collection, key)
        if doc is None:
            raise NotFound(collection, key)
        return copy.deepcopy(doc.data or {})

    def find(self, collection, key):
        try:
            return self.get(collection, key)
        except NotFound:
            return None

    def merge(self, collection, key, fields):
        doc = self._load(collection, key)
        if doc is None:
            doc = Document(collection=collection, key=key, data=merge_fields({}, fields))
            self.session.add(doc)
            self._docs[(collection, key)] = doc
        else:
            # Reassign so the JSON column is marked dirty
            doc.data = merge_fields(doc.data, fields)


class DocumentStore:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _rollback(self):
        try:
            self.session.rollback()
        except _UNAVAILABLE as exc:
            raise StoreUnavailable(str(exc)) from exc

    @contextmanager
    def transaction(self):
        txn = StoreTransaction(self.session)
        try:
            yield txn
            self.session.commit()
        except (StaleDataError, IntegrityError) as exc:
            self._rollback()
            raise WriteConflict(str(exc)) from exc
        except _UNAVAILABLE as exc:
            self._rollback()
            raise StoreUnavailable(str(exc)) from exc
        except BaseException:
            self._rollback()
            raise

    def get(self, collection, key):
        """Document body; raises NotFound when absent."""
        with self.transaction() as txn:
            return txn.get(collection, key)

    def find(self, collection, key):
        with self.transaction() as txn:
            return txn.find(collection, key)

    def merge(self, collection, key, fields):
        """Partial update; creates the document when absent."""
        with self.transaction() as txn:
            txn.merge(collection, key, fields)

    def scan(self, collection):
        """All documents of a collection as ``(key, data)`` pairs in key order."""
        try:
            stmt = select(Document).filter_by(collection=collection).order_by(Document.key)
            rows = self.session.execute(stmt).scalars().all()
            result = [(row.key, copy.deepcopy(row.data or {})) for row in rows]
            self.session.commit()
            return result
        except _UNAVAILABLE as exc:
            self._rollback()
            raise StoreUnavailable(str(exc)) from exc
