"""Error types raised across the braindump service."""


class BraindumpError(Exception):
    """Base class for braindump errors surfaced to callers."""

    status = 500


class InputError(BraindumpError):
    """Request payload is missing, malformed, or exceeds limits."""

    status = 400


class BraindumpNotFound(BraindumpError):
    """No braindump exists with the requested id."""

    status = 404


class PersistenceError(BraindumpError):
    """A write or read against the storage backend failed."""

    status = 500
