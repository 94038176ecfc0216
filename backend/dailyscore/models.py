from dailyscore import db
from flask_login import UserMixin
import copy


class Document(db.Model):
    """One document of the key-value store: ``collection/key -> data``."""

    __tablename__ = 'document'
    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(64), nullable=False, index=True)
    key = db.Column(db.String(320), nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    version = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('collection', 'key', name='uq_document_collection_key'),
    )
    # UPDATEs carry "WHERE version = <read version>"; a mismatch raises StaleDataError
    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        return {
            'collection': self.collection,
            'key': self.key,
            'data': copy.deepcopy(self.data or {}),
            'version': self.version,
        }


class SessionUser(UserMixin):
    """Flask-Login user for a signed-in identity."""

    def __init__(self, identity, display_name):
        self.id = identity
        self.display_name = display_name

    @property
    def identity(self):
        return self.id

    def to_dict(self):
        return {
            'identity': self.id,
            'displayName': self.display_name,
        }
