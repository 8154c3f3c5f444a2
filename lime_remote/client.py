"""
LimeSurvey RemoteControl client

Holds a session key for the lifetime of the client and forwards every API
method to call(), which interprets the ``status`` values the server embeds in
otherwise successful results and renews the session when it expires.

A client instance is not thread-safe; share it across threads only with
external locking.
"""

import logging
import re
from typing import Any, Dict, Optional, Union

import requests

from .config import ClientConfig, RetryConfig
from .errors import APIError, DisconnectedError, InvalidCredentialsError
from .rpc.json_rpc import JsonRpcClient
from .telemetry.tracer import setup_tracer

# Local method name -> RemoteControl method name
API_METHODS: Dict[str, str] = {
    "activate_survey": "activate_survey",
    "activate_tokens": "activate_tokens",
    "add_group": "add_group",
    "add_language": "add_language",
    "add_participants": "add_participants",
    "add_response": "add_response",
    "add_survey": "add_survey",
    "copy_survey": "copy_survey",
    "cpd_import_participants": "cpd_importParticipants",
    "delete_group": "delete_group",
    "delete_language": "delete_language",
    "delete_participants": "delete_participants",
    "delete_question": "delete_question",
    "delete_survey": "delete_survey",
    "export_responses": "export_responses",
    "export_responses_by_token": "export_responses_by_token",
    "export_statistics": "export_statistics",
    "export_timeline": "export_timeline",
    "get_group_properties": "get_group_properties",
    "get_language_properties": "get_language_properties",
    "get_participant_properties": "get_participant_properties",
    "get_question_properties": "get_question_properties",
    "get_response_ids": "get_response_ids",
    "get_site_settings": "get_site_settings",
    "get_summary": "get_summary",
    "get_survey_properties": "get_survey_properties",
    "get_uploaded_files": "get_uploaded_files",
    "import_group": "import_group",
    "import_question": "import_question",
    "import_survey": "import_survey",
    "invite_participants": "invite_participants",
    "list_groups": "list_groups",
    "list_participants": "list_participants",
    "list_questions": "list_questions",
    "list_surveys": "list_surveys",
    "list_users": "list_users",
    "mail_registered_participants": "mail_registered_participants",
    "remind_participants": "remind_participants",
    "set_group_properties": "set_group_properties",
    "set_language_properties": "set_language_properties",
    "set_participant_properties": "set_participant_properties",
    "set_question_properties": "set_question_properties",
    "set_quota_properties": "set_quota_properties",
    "set_survey_properties": "set_survey_properties",
    "update_response": "update_response",
    "upload_file": "upload_file",
}

# Status values with a fixed meaning
_STATUS_VALUES = {
    "OK": True,
    "No surveys found": [],
    "No Tokens found": [],
    "No survey participants table": False,
}

_PASS_THROUGH_STATUS = re.compile(r"(left to send)|(No candidate tokens)$")
_INVALID_SURVEY_STATUS = re.compile(r"Invalid surveyid$", re.IGNORECASE)
_INVALID_SESSION_STATUS = re.compile(r"Invalid session key$", re.IGNORECASE)

# Returned by interpret_status when the session must be renewed
SESSION_EXPIRED = object()


def interpret_status(method: str, result: Dict[str, Any]) -> Any:
    """Translate a result carrying a ``status`` value

    Args:
        method: Name of the remote method that produced the result
        result: The result mapping

    Returns:
        The value the status stands for, the result itself for progress reports,
        or SESSION_EXPIRED when the session key was rejected

    Raises:
        APIError: The status is not recognized
    """
    status = result["status"]
    if not isinstance(status, str):
        raise APIError(method, status)

    if status in _STATUS_VALUES:
        value = _STATUS_VALUES[status]
        # fresh list per call
        return list(value) if isinstance(value, list) else value
    if _PASS_THROUGH_STATUS.search(status):
        return result
    if _INVALID_SURVEY_STATUS.search(status):
        return None
    if _INVALID_SESSION_STATUS.search(status):
        return SESSION_EXPIRED
    raise APIError(method, status)


class LimeSurveyClient:
    """
    Client for the LimeSurvey RemoteControl API
    """

    def __init__(self,
                 endpoint: str,
                 username: str,
                 password: str,
                 retry_options: Union[Dict[str, Any], RetryConfig, None] = None,
                 timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None,
                 logger: Optional[logging.Logger] = None,
                 max_session_renewals: Optional[int] = None):
        """Connect to the RemoteControl API and obtain a session key

        Args:
            endpoint: The URI of your account's API
            username: The username for your account
            password: The password for your account
            retry_options: Options for the HTTP retry layer, see RetryConfig
            timeout: Per-attempt request timeout in seconds
            session: requests.Session to send requests with
            logger: Logger used by the client and its transport
            max_session_renewals: Renewals allowed per call when the server keeps
                rejecting the session key; None means no limit

        Raises:
            InvalidEndpointError: The endpoint URI is not valid
            InvalidCredentialsError: The username and password combination is not valid
            ServerError: The endpoint answered with a JSON-RPC error
            InvalidResponseError: The endpoint returned a malformed JSON-RPC response
        """
        self.logger = logger or logging.getLogger(__name__)
        self.max_session_renewals = max_session_renewals
        self._json_rpc: Optional[JsonRpcClient] = JsonRpcClient(
            endpoint,
            retry_options,
            timeout=timeout,
            session=session,
            logger=self.logger,
            redact_session_key=True,
        )
        self._username = username
        self._password = password
        self._session_key: Optional[str] = None
        try:
            self._session_key = self._get_session_key()
        except Exception:
            self._json_rpc.close()
            raise

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> "LimeSurveyClient":
        """Create a connected client from a ClientConfig

        Tracing is set up for the configured service name when enabled.
        """
        if config.enable_tracing:
            setup_tracer(config.service_name)
        return cls(
            config.endpoint,
            config.username,
            config.password,
            retry_options=config.retry,
            timeout=config.timeout,
            **kwargs
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.disconnect()

    def connected(self) -> bool:
        """Is the client ready to send requests to the endpoint?"""
        return self._session_key is not None and self._json_rpc is not None

    def disconnect(self) -> bool:
        """Release the session key at the endpoint and drop the connection

        Returns:
            bool: True if resources were released; False if already disconnected
        """
        if not self.connected():
            return False

        self.call("release_session_key")
        self._json_rpc.close()
        self._json_rpc = None
        self._session_key = None
        self.logger.info("Disconnected from the RemoteControl API")
        return True

    def call(self, method: str, *args) -> Any:
        """Invoke a RemoteControl method with the session key prepended

        Args:
            method: Remote method name
            *args: Arguments following the session key

        Returns:
            The result of the method, with recognized status values translated

        Raises:
            DisconnectedError: The client has been disconnected
            APIError: The server reported an unrecognized status
            InvalidCredentialsError: Renewing an expired session failed
            ServerError: The endpoint answered with a JSON-RPC error
            InvalidResponseError: The endpoint returned a malformed JSON-RPC response
        """
        renewals = 0
        while True:
            if not self.connected():
                raise DisconnectedError()

            result = self._json_rpc.invoke(method, self._session_key, *args)
            if not isinstance(result, dict) or result.get("status") is None:
                return result

            outcome = interpret_status(method, result)
            if outcome is not SESSION_EXPIRED:
                return outcome

            if self.max_session_renewals is not None and renewals >= self.max_session_renewals:
                raise APIError(method, result["status"])
            renewals += 1
            self.logger.info(f"Session key rejected by '{method}', requesting a new one")
            self._session_key = self._get_session_key()

    def _get_session_key(self) -> str:
        """Get a session key from the endpoint

        Raises:
            InvalidCredentialsError: The username and password combination is not valid
        """
        response = self._json_rpc.invoke("get_session_key", self._username, self._password)
        if isinstance(response, dict):
            raise InvalidCredentialsError(response.get("status") or str(response))
        return response


def _define_api_method(name: str, rpc_method: str):
    def api_method(self, *args):
        return self.call(rpc_method, *args)

    api_method.__name__ = name
    api_method.__qualname__ = f"LimeSurveyClient.{name}"
    api_method.__doc__ = f"Invoke the ``{rpc_method}`` RemoteControl method; see call()."
    return api_method


for _name, _rpc_method in API_METHODS.items():
    setattr(LimeSurveyClient, _name, _define_api_method(_name, _rpc_method))
del _name, _rpc_method
