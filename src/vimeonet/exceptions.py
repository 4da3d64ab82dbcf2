"""Exception hierarchy for vimeonet.

Every error the request engine can hand to a completion callback derives
from :class:`ClientError` and carries an :class:`ErrorCode` naming its
place in the taxonomy. All exceptions also carry an ``exit_code`` from
:mod:`vimeonet.exit_codes` so that the command line can exit with a
meaningful status.

Subclass hierarchy::

    VimeoNetError                       (exit 1)
    +-- ConfigError                     (exit 1)
    +-- CacheError                      (exit 1)
    +-- ClientError
        +-- UndefinedError              (exit 1)
        +-- CachedResponseNotFoundError (exit 4)
        +-- RequestMalformedError       (exit 2)
        +-- RetryAbortedError           (exit 1)
        +-- InvalidResponseError        (exit 7)
        +-- MappingError                (exit 7)
        +-- TransportError              (exit 3, 5, 6 or 8 by status)
            +-- RequestCancelledError
"""

from __future__ import annotations

import enum
from typing import Any, Mapping, Optional

from vimeonet.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CACHE_MISS,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_RESPONSE_ERROR,
    EXIT_SERVER_ERROR,
    EXIT_SERVICE_UNAVAILABLE,
)

SERVER_ERROR_CODE_HEADER = "Vimeo-Error-Code"
SERVER_ERROR_CODE_KEY = "error_code"


class ErrorCode(str, enum.Enum):
    """Taxonomy of failures reported by the request engine."""

    UNDEFINED = "undefined"
    CANCELLED = "cancelled"
    CACHED_RESPONSE_NOT_FOUND = "cached_response_not_found"
    REQUEST_MALFORMED = "request_malformed"
    INVALID_RESPONSE_DICTIONARY = "invalid_response_dictionary"
    MAPPING_FAILED = "mapping_failed"
    TRANSPORT = "transport"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INVALID_TOKEN = "invalid_token"
    RETRY_ABORTED = "retry_aborted"


class VimeoNetError(Exception):
    """Base exception for all vimeonet errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(VimeoNetError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""


class CacheError(VimeoNetError):
    """Raised when durable cache storage cannot be read or written."""


class ClientError(VimeoNetError):
    """Base class for errors delivered through a request's completion callback."""

    code: ErrorCode = ErrorCode.UNDEFINED


class UndefinedError(ClientError):
    """Stand-in used when a failure arrives without an error object."""


class CachedResponseNotFoundError(ClientError):
    """A cache-only request found no stored response for its cache key."""

    code = ErrorCode.CACHED_RESPONSE_NOT_FOUND
    exit_code = EXIT_CACHE_MISS


class RequestMalformedError(ClientError):
    """The request could not be issued.

    Raised when the HTTP executor returns no task, or when the request
    parameters cannot be encoded (e.g. a value that is not JSON serializable).
    """

    code = ErrorCode.REQUEST_MALFORMED
    exit_code = EXIT_INVALID_USAGE


class RetryAbortedError(ClientError):
    """A scheduled retry will never run.

    Delivered as the final result of a retry chain when the client closed
    before the retry fired, or when the retry could not be dispatched.
    """

    code = ErrorCode.RETRY_ABORTED


class InvalidResponseError(ClientError):
    """The server returned a body that is not a JSON object where a model was expected."""

    code = ErrorCode.INVALID_RESPONSE_DICTIONARY
    exit_code = EXIT_RESPONSE_ERROR


class MappingError(ClientError):
    """The model mapper rejected the raw response.

    Args:
        message: Description of the mapping failure.
        key_path: The dotted key path that was being mapped.
    """

    code = ErrorCode.MAPPING_FAILED
    exit_code = EXIT_RESPONSE_ERROR

    def __init__(self, message: str, key_path: str = ""):
        super().__init__(message)
        self.key_path = key_path


class TransportError(ClientError):
    """A failure reported by the HTTP executor.

    Covers both network-level failures (``status_code`` is ``None``) and
    HTTP error statuses. The originating request headers are kept so that
    the engine can recover the bearer token that was rejected.

    Args:
        message: Human-readable description.
        status_code: HTTP status of the error response, if any.
        response_headers: Headers of the error response.
        response_body: Decoded error body (usually a dict).
        request_headers: Headers sent with the failed request.
    """

    code = ErrorCode.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response_headers: Optional[Mapping[str, str]] = None,
        response_body: Any = None,
        request_headers: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_headers = dict(response_headers or {})
        self.response_body = response_body
        self.request_headers = dict(request_headers or {})

        if status_code is None:
            self.exit_code = EXIT_CONNECTION_ERROR
        elif status_code in (401, 403):
            self.exit_code = EXIT_AUTH_FAILURE
        elif status_code == 503:
            self.exit_code = EXIT_SERVICE_UNAVAILABLE
        else:
            self.exit_code = EXIT_SERVER_ERROR

    @property
    def server_error_code(self) -> Optional[int]:
        """The API's own error code, from the response header or the body."""
        for name, value in self.response_headers.items():
            if name.lower() == SERVER_ERROR_CODE_HEADER.lower():
                try:
                    return int(value)
                except (TypeError, ValueError):
                    break
        if isinstance(self.response_body, Mapping):
            value = self.response_body.get(SERVER_ERROR_CODE_KEY)
            if isinstance(value, int) and not isinstance(value, bool):
                return value
            if isinstance(value, str) and value.isdigit():
                return int(value)
        return None


class RequestCancelledError(TransportError):
    """The in-flight request was cancelled through its token.

    The engine drops these silently; they never reach a completion callback.
    """

    code = ErrorCode.CANCELLED
