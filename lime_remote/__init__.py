"""
LimeSurvey RemoteControl API client

Two layers:
1. rpc: JSON-RPC 1.0 over HTTP with strict response validation and a retrying
   HTTP layer built on requests
2. client: session-authenticated calls that renew expired session keys and
   translate the server's ``status`` values into results or errors

Telemetry (OpenTelemetry spans and metrics) is recorded for every request.
"""

from importlib import import_module

__version__ = "0.1.0"

__all__ = [
    "LimeSurveyClient",
    "JsonRpcClient",
    "ClientConfig",
    "RetryConfig",
    "LimeSurveyError",
    "InvalidEndpointError",
    "InvalidResponseError",
    "InvalidCredentialsError",
    "DisconnectedError",
    "ServerError",
    "APIError",
]

_ERRORS = {
    "LimeSurveyError",
    "InvalidEndpointError",
    "InvalidResponseError",
    "InvalidCredentialsError",
    "DisconnectedError",
    "ServerError",
    "APIError",
}


def __getattr__(name: str):
    """Lazily import symbols to avoid loading requests and OpenTelemetry at import time."""
    if name == "LimeSurveyClient":
        return import_module(".client", __package__).LimeSurveyClient
    if name == "JsonRpcClient":
        return import_module(".rpc.json_rpc", __package__).JsonRpcClient
    if name in ("ClientConfig", "RetryConfig"):
        return getattr(import_module(".config", __package__), name)
    if name in _ERRORS:
        return getattr(import_module(".errors", __package__), name)
    raise AttributeError(name)
