from dailyscore.errors import InvalidIdentity


def normalize(raw) -> str:
    """Canonical identity key for an email: trimmed and lowercased."""
    if not isinstance(raw, str):
        raise InvalidIdentity('Please enter an email.')
    identity = raw.strip().lower()
    if not identity:
        raise InvalidIdentity('Please enter an email.')
    return identity
