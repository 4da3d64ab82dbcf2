"""Numeric process exit codes for the ``vimeonet`` command line.

Each constant maps to a category of failure and is referenced by the
corresponding :class:`~vimeonet.exceptions.VimeoNetError` subclass, so a
shell script can tell a rejected token from an unreachable service
without parsing stderr.

Example::

    $ vimeonet request /me
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the access token was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""The API rejected the bearer token."""

EXIT_CACHE_MISS = 4
"""A cache-only request found no stored response."""

EXIT_SERVER_ERROR = 5
"""The API answered with an error status (4xx other than auth, or 5xx)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_RESPONSE_ERROR = 7
"""The response body could not be interpreted or mapped to a model."""

EXIT_SERVICE_UNAVAILABLE = 8
"""The API reported that it is temporarily unavailable (HTTP 503)."""
