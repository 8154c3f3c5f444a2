"""
JSON-RPC 1.0 client over HTTP

Sends one request per invoke() and validates the response strictly: the
response id must echo the request id, both ``result`` and ``error`` keys must be
present, and a non-null error must carry an integer code and a string message.
"""

import json
import logging
import random
import time
from typing import Any, Dict, Optional, Union

import requests

from lime_remote.config import RetryConfig
from lime_remote.errors import InvalidEndpointError, InvalidResponseError, ServerError
from lime_remote.rpc.retry import RetryingHTTP
from lime_remote.telemetry.tracer import create_span, inject_trace_context
from lime_remote.telemetry.metrics import record_latency, increment_counter

JSON_RPC_VERSION = "1.0"

STANDARD_HEADERS = {"Content-Type": "application/json"}

# Arguments of these methods are credentials and never logged
_REDACTED_METHODS = frozenset({"get_session_key"})


def validate_endpoint(endpoint: str) -> str:
    """Check that endpoint is a usable http(s) URI

    Args:
        endpoint: The endpoint URI

    Returns:
        str: The URI as prepared by requests

    Raises:
        InvalidEndpointError: The URI is malformed or not http(s)
    """
    prepared = requests.PreparedRequest()
    try:
        prepared.prepare_url(endpoint, None)
    except (requests.exceptions.RequestException, TypeError, ValueError) as e:
        raise InvalidEndpointError(f"Invalid endpoint URI {endpoint!r}: {e}") from e

    if not prepared.url.lower().startswith(("http://", "https://")):
        raise InvalidEndpointError(f"Invalid endpoint URI {endpoint!r}: scheme must be http or https")
    return prepared.url


class JsonRpcClient:
    """
    JSON-RPC 1.0 client bound to a single HTTP endpoint
    """

    def __init__(self,
                 endpoint: str,
                 retry_options: Union[Dict[str, Any], RetryConfig, None] = None,
                 timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None,
                 logger: Optional[logging.Logger] = None,
                 redact_session_key: bool = False):
        """Initialize the client and its HTTP retry layer

        Args:
            endpoint: The URI of the RemoteControl API
            retry_options: Options for the HTTP retry layer, see RetryConfig
            timeout: Per-attempt request timeout in seconds
            session: requests.Session to send requests with
            logger: Logger for request/response tracing
            redact_session_key: Hide the first parameter of every call in the debug log

        Raises:
            InvalidEndpointError: The endpoint URI is not valid
            ValueError: An unknown retry option was given
        """
        self.uri = validate_endpoint(endpoint)
        self.retry_options = {} if retry_options is None else retry_options
        self.logger = logger or logging.getLogger(__name__)
        self.redact_session_key = redact_session_key
        self.http = RetryingHTTP(
            config=RetryConfig.from_dict(self.retry_options),
            session=session,
            timeout=timeout,
        )

    def close(self):
        """Release the HTTP connection pool"""
        self.http.close()

    def invoke(self, method: str, *args) -> Any:
        """Send the request with the specified method and arguments

        Args:
            method: The remote method to invoke
            *args: Positional parameters of the method

        Returns:
            The ``result`` member of the response, any JSON value

        Raises:
            InvalidResponseError: The response is not a valid JSON-RPC 1.0 response
            ServerError: The response carries a JSON-RPC error object
            requests.exceptions.RequestException: The HTTP request failed
        """
        self.logger.debug(f"invoke({method}, {self._loggable_args(method, args)})")

        request_id = self.make_id()
        post_data = json.dumps({
            "jsonrpc": JSON_RPC_VERSION,
            "method": method,
            "params": list(args),
            "id": request_id,
        }, separators=(",", ":"))

        attributes = {"method": method}
        start_time = time.time()
        with create_span(f"jsonrpc.{method}", {"rpc.system": "jsonrpc", "rpc.method": method}):
            increment_counter("rpc.client.requests", 1, attributes)
            try:
                response = self.http.post(self.uri, post_data, inject_trace_context(STANDARD_HEADERS))
            except requests.exceptions.RequestException as e:
                increment_counter("rpc.client.errors", 1,
                                  {"type": "transport", "error": type(e).__name__, **attributes})
                raise
            finally:
                record_latency("rpc.client.latency", (time.time() - start_time) * 1000, attributes)

            self.logger.debug(f"API response: {response!r}")

            try:
                result = self.process_response(response, request_id)
            except InvalidResponseError:
                increment_counter("rpc.client.errors", 1, {"type": "invalid_response", **attributes})
                raise
            except ServerError as e:
                increment_counter("rpc.client.errors", 1, {"type": "rpc_error", "code": str(e.code), **attributes})
                raise

            increment_counter("rpc.client.success", 1, attributes)
            return result

    def _loggable_args(self, method: str, args: tuple) -> str:
        if method in _REDACTED_METHODS:
            return "<redacted>"
        params = list(args)
        if self.redact_session_key and params:
            params[0] = "<redacted>"
        return repr(params)

    def make_id(self) -> int:
        """Generate a request id in [0, 10**12)"""
        return random.randrange(10 ** 12)

    def process_response(self, response: Optional[requests.Response], request_id: int) -> Any:
        """Validate the HTTP response and extract the result"""
        self.verify_response(response)
        payload = self.payload_from(response)
        self.verify_payload(payload, request_id)
        error = payload["error"]
        if error is not None:
            raise ServerError(error["code"], error["message"])

        return payload["result"]

    def verify_response(self, response: Optional[requests.Response]):
        """Check that the response has a non-empty body"""
        if response is None:
            raise InvalidResponseError("No response received")
        if response.content is None:
            raise InvalidResponseError("Response body is missing")
        if not response.content:
            raise InvalidResponseError("Response body is empty")

    def payload_from(self, response: requests.Response) -> Any:
        """Parse the response body as JSON

        The raw bytes are decoded, so UTF-8 text survives a missing charset.
        """
        try:
            return json.loads(response.content)
        except ValueError as e:
            self.logger.info(f"Failed to parse JSON from:\n{response.text}")
            raise InvalidResponseError(str(e)) from e

    def verify_payload(self, payload: Any, request_id: int):
        """Check the JSON-RPC structure of a decoded response body"""
        if not isinstance(payload, dict):
            raise InvalidResponseError("Response body is not a JSON object")
        if "id" not in payload:
            raise InvalidResponseError("Response body is missing the id")
        if payload["id"] != request_id:
            raise InvalidResponseError(
                f"Response id ({payload['id']}) does not match request id ({request_id})"
            )
        if "error" not in payload or "result" not in payload:
            raise InvalidResponseError("Response body must have a result and an error")

        error = payload["error"]
        if error is None:
            return
        if not isinstance(error, dict):
            raise InvalidResponseError("Response error is not a JSON object")
        if "code" not in error:
            raise InvalidResponseError("Response error is missing the code")
        if not isinstance(error["code"], int) or isinstance(error["code"], bool):
            raise InvalidResponseError("Response error code is not a number")
        if "message" not in error:
            raise InvalidResponseError("Response error is missing the message")
        if not isinstance(error["message"], str):
            raise InvalidResponseError("Response error message is not a string")
