"""Exception hierarchy for the analytics platform client.

Every error raised by the session, the request pipeline or the resource
wrappers derives from :class:`ApiError`. Network failures raised by httpx
are not wrapped and propagate as ``httpx.HTTPError``.
"""

from typing import Any


class ApiError(Exception):
    """Base class for all client errors."""


class ConfigurationError(ApiError, ValueError):
    """Raised when the client configuration is invalid or incomplete."""


class AuthenticationError(ApiError):
    """Raised when a login attempt fails or yields no session token."""


class TokenRenewalError(AuthenticationError):
    """Raised when the token endpoint does not yield a temporary token."""


class HttpError(ApiError):
    """Raised for a failing HTTP status without a structured error body."""

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(message or f"HTTP Error {status_code}")


class ServerError(HttpError):
    """Raised for a failing HTTP status carrying a structured error body.

    The message is the server template with its ``%s`` placeholders
    replaced by ``parameters`` in order.
    """

    def __init__(self, status_code: int, template: str, parameters: list[Any]):
        self.template = template
        self.parameters = list(parameters)
        super().__init__(status_code, format_template(template, parameters))


class MissingNamespaceError(ApiError):
    """Raised when a response lacks the resource's namespace key."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"No data or invalid namespace: {namespace}")


class ResourceError(ApiError):
    """Raised when a resource operation is missing something it needs."""


class SequenceDeadlockError(ApiError):
    """Raised when a chained step resolves with its own owner."""


def format_template(template: str, parameters: list[Any]) -> str:
    """Substitute ``%s`` placeholders with parameters, left to right.

    Placeholders without a matching parameter are replaced by an empty
    string; surplus parameters are ignored.

    >>> format_template("Error: %s", ["nope"])
    'Error: nope'
    """
    remaining = iter(parameters)
    pieces = template.split("%s")
    out = [pieces[0]]
    for piece in pieces[1:]:
        value = next(remaining, "")
        out.append(str(value))
        out.append(piece)
    return "".join(out)
