"""Error taxonomy shared by the fetch client, coordinator and HTTP surface."""

from enum import Enum
from typing import Any, Optional

from .models.state import ErrorInfo


class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK_FAILURE = "network_failure"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    SERVER_REJECTED = "server_rejected"
    UNKNOWN = "unknown"


class TopStoriesAPIError(Exception):
    """A failed Top Stories request, with a message fit for display."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.kind = kind
        self.data = data

    @property
    def retryable(self) -> bool:
        # Client errors (4xx) are final; everything else may succeed later.
        return not (self.status is not None and 400 <= self.status < 500)

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(message=self.message, status=self.status, kind=self.kind.value)


class UnknownSectionError(ValueError):
    def __init__(self, section: str) -> None:
        super().__init__(f"Unknown section: {section!r}")
        self.section = section
