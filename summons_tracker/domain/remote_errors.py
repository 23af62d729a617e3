from __future__ import annotations

from summons_tracker.core.errors import ExternalServiceError, InfraError, TransientExternalError

# Notion's wording when the page id in the URL path is malformed.
_MALFORMED_ID_MARKERS = ("path failed validation", "should be a valid uuid")


class RemoteConfigError(InfraError):
    pass


class RemoteAuthError(ExternalServiceError):
    pass


class RemoteTransportError(ExternalServiceError):
    pass


class RemoteApiError(ExternalServiceError):
    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_not_found(self) -> bool:
        """Missing page, or a 400 that rejects the page identifier itself.

        A 400 about properties (bad option, renamed column) is a schema
        rejection and never counts as not found.
        """
        if self.code == "object_not_found" or self.status_code == 404:
            return True
        if self.status_code != 400 or self.code not in (None, "validation_error"):
            return False
        message = str(self).lower()
        return any(marker in message for marker in _MALFORMED_ID_MARKERS)


class RemoteRateLimitError(TransientExternalError):
    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
