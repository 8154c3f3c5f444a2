"""
Error types raised by the LimeSurvey RemoteControl client.

Every error derives from LimeSurveyError so callers can catch the whole family.
HTTP-layer failures (requests.exceptions.*) are not wrapped and propagate as-is.
"""

import requests


class LimeSurveyError(Exception):
    """Base class for all client errors."""


class InvalidEndpointError(LimeSurveyError, ValueError):
    """Raised when the endpoint URI cannot be used for HTTP requests."""


class InvalidResponseError(LimeSurveyError):
    """Raised when the endpoint returns a malformed JSON-RPC response."""


class InvalidCredentialsError(LimeSurveyError):
    """Raised when the username and password combination is rejected."""


class DisconnectedError(LimeSurveyError):
    """Raised when a disconnected client is asked to send a request."""

    def __init__(self, message: str = "Attempting to use a disconnected client to the LimeSurvey API"):
        super().__init__(message)


class ServerError(LimeSurveyError):
    """The endpoint answered with a well-formed JSON-RPC error object.

    Attributes:
        code: Error code reported by the server
        message: Error message reported by the server, unmodified
    """

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"Server error {code}: {message}")


class APIError(LimeSurveyError):
    """A RemoteControl method reported a status the client does not recognize.

    Attributes:
        method: Name of the remote method that was invoked
        status: Raw status string returned by the server
    """

    def __init__(self, method: str, status):
        self.method = method
        self.status = status
        super().__init__(f"LimeSurvey API '{method}' returned a failure status: {status}")


class RetriableResponse(requests.exceptions.RequestException):
    """Signals an HTTP response whose status code is configured as retriable.

    Raised and handled inside the HTTP retry layer; the last response is handed
    back to the caller once retries are exhausted.
    """
