"""
JSON-RPC 1.0 Implementation Module

Provides the HTTP transport for the RemoteControl API:
- json_rpc: request encoding and strict response validation
- retry: retrying HTTP layer built on requests
"""

from .json_rpc import JsonRpcClient, JSON_RPC_VERSION, validate_endpoint
from .retry import RetryingHTTP, BackoffTimer

__all__ = [
    "JsonRpcClient",
    "JSON_RPC_VERSION",
    "validate_endpoint",
    "RetryingHTTP",
    "BackoffTimer"
]
