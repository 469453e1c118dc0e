"""Error kinds raised across the pipeline.

Callers branch on these types rather than on provider-specific
exceptions, so the classification lives in one place
(:func:`classify_provider_error`).
"""

from __future__ import annotations


class RaglineError(Exception):
    """Base class for all pipeline errors."""


class TransientServiceError(RaglineError):
    """The service is busy or rate limiting; retrying later may succeed."""


class AuthorizationError(RaglineError):
    """Credentials were rejected.  Retrying will not help."""


class NeedsIngestionError(RaglineError):
    """The vector index does not exist yet; run ingestion before querying."""

    def __init__(
        self,
        message: str = (
            "You need to perform ingestion before querying so that there are "
            "documents available for context."
        ),
    ) -> None:
        super().__init__(message)


_TRANSIENT_STATUS = {408, 429, 502, 503, 504}
_AUTH_STATUS = {401, 403}


def _status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_provider_error(exc: BaseException) -> BaseException:
    """Map a provider exception onto a pipeline error kind.

    Exceptions that are already :class:`RaglineError` instances, or that
    carry no recognisable HTTP status, are returned unchanged.
    """
    if isinstance(exc, RaglineError):
        return exc

    status = _status_code(exc)
    if status in _AUTH_STATUS:
        err: RaglineError = AuthorizationError(str(exc))
    elif status in _TRANSIENT_STATUS:
        err = TransientServiceError(str(exc))
    else:
        return exc
    err.__cause__ = exc
    return err
