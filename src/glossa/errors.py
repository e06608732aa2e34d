"""Exception hierarchy for Glossa.

Each error carries the HTTP status the API answers with.
"""


class GlossaError(Exception):
    """Base exception for all Glossa errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(GlossaError):
    """Requested gloss or situation does not exist."""

    status_code = 404


class ConflictError(GlossaError):
    """Uniqueness violation on (language, content) or identifier, or deletion
    of a gloss that is still referenced."""

    status_code = 409


class ValidationError(GlossaError):
    """Payload is structurally valid but semantically wrong."""

    status_code = 400


class DanglingReferenceError(GlossaError):
    """A relation points at a gloss that is absent from the store.

    Never fatal: resolution degrades the reference to a stub or drops it.
    """

    status_code = 422

    def __init__(self, source_id: str, target_id: str, kind: str):
        super().__init__(f"Gloss {source_id} has dangling {kind} reference to {target_id}")
        self.source_id = source_id
        self.target_id = target_id
        self.kind = kind


class FetchFailure(GlossaError):
    """Network-level failure while fetching a remote record."""

    status_code = 502

    def __init__(self, message: str, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id
