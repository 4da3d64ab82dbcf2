"""Classification of request failures into client-wide conditions.

Most failures only concern the caller that issued the request. Two are
relevant to the whole application and are broadcast through the
:class:`~vimeonet.notifications.NotificationCenter`:

* **Service unavailable** -- the API answered HTTP 503.
* **Invalid token** -- the API rejected the bearer token, signalled by
  its error code ``8000`` (``Vimeo-Error-Code`` header or ``error_code``
  body field) or by HTTP 401 on a request that carried a bearer token.
"""

from __future__ import annotations

from typing import Mapping, Optional

from vimeonet.exceptions import ErrorCode, TransportError

SERVICE_UNAVAILABLE_STATUS = 503
UNAUTHORIZED_STATUS = 401
INVALID_TOKEN_ERROR_CODE = 8000

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer "


def bearer_token(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """Extract the bearer token from an ``Authorization`` header, prefix stripped."""
    if not headers:
        return None
    for name, value in headers.items():
        if name.lower() == AUTHORIZATION_HEADER.lower():
            if value.startswith(BEARER_PREFIX):
                return value[len(BEARER_PREFIX):].strip() or None
            return None
    return None


def is_service_unavailable(error: BaseException) -> bool:
    return isinstance(error, TransportError) and error.status_code == SERVICE_UNAVAILABLE_STATUS


def is_invalid_token(error: BaseException) -> bool:
    if not isinstance(error, TransportError):
        return False
    if error.server_error_code == INVALID_TOKEN_ERROR_CODE:
        return True
    return (
        error.status_code == UNAUTHORIZED_STATUS
        and bearer_token(error.request_headers) is not None
    )


def is_cancellation(error: BaseException) -> bool:
    return getattr(error, "code", None) == ErrorCode.CANCELLED


def classify_error(error: BaseException) -> ErrorCode:
    """Return the taxonomy entry for *error*.

    Transport errors are refined into :attr:`ErrorCode.SERVICE_UNAVAILABLE`
    or :attr:`ErrorCode.INVALID_TOKEN` where they qualify. Errors outside the
    vimeonet hierarchy are :attr:`ErrorCode.UNDEFINED`.
    """
    if is_cancellation(error):
        return ErrorCode.CANCELLED
    if is_service_unavailable(error):
        return ErrorCode.SERVICE_UNAVAILABLE
    if is_invalid_token(error):
        return ErrorCode.INVALID_TOKEN
    code = getattr(error, "code", None)
    if isinstance(code, ErrorCode):
        return code
    return ErrorCode.UNDEFINED
