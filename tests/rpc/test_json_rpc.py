"""
JSON-RPC 1.0 transport tests

Verify request encoding, response validation and error mapping of JsonRpcClient.
"""
import json
import logging
from unittest.mock import MagicMock, patch

import pytest
import requests

from lime_remote.errors import InvalidEndpointError, InvalidResponseError, ServerError
from lime_remote.rpc.json_rpc import JSON_RPC_VERSION, JsonRpcClient, validate_endpoint


@pytest.fixture
def session():
    """Mock requests.Session that prepares requests for real"""
    session = MagicMock(spec=requests.Session)
    session.prepare_request.side_effect = lambda request: request.prepare()
    return session


@pytest.fixture
def instance(endpoint, session):
    return JsonRpcClient(endpoint, session=session)


def payload(result=None, error=None, request_id=1):
    return json.dumps({"id": request_id, "result": result, "error": error})


class TestConstruction:
    """Test endpoint validation and option handling"""

    def test_valid_uri(self, endpoint):
        """Test the validated URI is stored"""
        instance = JsonRpcClient(endpoint)
        assert instance.uri == endpoint

    def test_retry_options_default_to_empty(self, endpoint):
        """Test missing retry options default to an empty mapping"""
        assert JsonRpcClient(endpoint).retry_options == {}
        assert JsonRpcClient(endpoint, None).retry_options == {}

    def test_retry_options_forwarded(self, endpoint):
        """Test retry options reach the HTTP layer unmodified"""
        instance = JsonRpcClient(endpoint, {"max": 5, "interval": 0.5})
        assert instance.retry_options == {"max": 5, "interval": 0.5}
        assert instance.http.config.max == 5
        assert instance.http.config.interval == 0.5

    def test_timeout_forwarded(self, endpoint):
        """Test the request timeout reaches the HTTP layer"""
        assert JsonRpcClient(endpoint, timeout=7.5).http.timeout == 7.5

    @pytest.mark.parametrize("bad_endpoint", ["%invalid", "", "ftp://example.com/remotecontrol", "http://"])
    def test_invalid_uri(self, bad_endpoint):
        """Test malformed endpoints are rejected"""
        with pytest.raises(InvalidEndpointError):
            JsonRpcClient(bad_endpoint)

    def test_invalid_endpoint_is_value_error(self):
        """Test InvalidEndpointError can be caught as ValueError"""
        with pytest.raises(ValueError):
            validate_endpoint("%invalid")

    def test_unknown_retry_option(self, endpoint):
        """Test unknown retry options are rejected"""
        with pytest.raises(ValueError, match="Unknown retry options: tries"):
            JsonRpcClient(endpoint, {"tries": 3})


class TestInvoke:
    """Test a full request/response round trip"""

    def test_posts_request_and_returns_result(self, instance, session, endpoint, make_response):
        """Test the request is encoded properly and the result extracted"""
        session.send.return_value = make_response(payload(result="Hello World!"))

        with patch.object(instance, "make_id", return_value=1):
            assert instance.invoke("fetch", 123) == "Hello World!"

        request = session.send.call_args[0][0]
        assert request.method == "POST"
        assert request.url == endpoint
        assert request.headers["Content-Type"] == "application/json"
        data = json.loads(request.body)
        assert data == {"jsonrpc": JSON_RPC_VERSION, "method": "fetch", "params": [123], "id": 1}

    def test_body_is_compact_json(self, instance, session, make_response):
        """Test the request body has no insignificant whitespace"""
        session.send.return_value = make_response(payload(result=True))

        with patch.object(instance, "make_id", return_value=1):
            instance.invoke("fetch", "a", 1)

        body = session.send.call_args[0][0].body
        assert " " not in body

    def test_server_error(self, instance, session, make_response):
        """Test a JSON-RPC error object raises ServerError"""
        session.send.return_value = make_response(payload(error={"code": 3, "message": "my bad ..."}))

        with patch.object(instance, "make_id", return_value=1):
            with pytest.raises(ServerError) as excinfo:
                instance.invoke("fetch")

        assert excinfo.value.code == 3
        assert excinfo.value.message == "my bad ..."
        assert str(excinfo.value) == "Server error 3: my bad ..."

    def test_error_takes_precedence_over_result(self, instance, session, make_response):
        """Test a non-null error wins even when a result is present"""
        session.send.return_value = make_response(
            payload(result="ignored", error={"code": -32000, "message": "boom"})
        )

        with patch.object(instance, "make_id", return_value=1):
            with pytest.raises(ServerError, match="boom"):
                instance.invoke("fetch")

    def test_id_mismatch_beats_error(self, instance, session, make_response):
        """Test an id mismatch is reported even when the payload carries an error"""
        session.send.return_value = make_response(
            payload(error={"code": 3, "message": "my bad ..."}, request_id=2)
        )

        with patch.object(instance, "make_id", return_value=1):
            with pytest.raises(InvalidResponseError, match=r"Response id \(2\) does not match request id \(1\)"):
                instance.invoke("fetch")

    @pytest.mark.parametrize("result", [None, [], [1, 2], {"sid": 1}, 42, "text", False])
    def test_any_result_is_returned(self, instance, session, make_response, result):
        """Test any JSON result value is handed back unchanged"""
        session.send.return_value = make_response(payload(result=result))

        with patch.object(instance, "make_id", return_value=1):
            assert instance.invoke("fetch") == result

    def test_http_failure_propagates(self, instance, session):
        """Test transport exceptions are not wrapped"""
        session.send.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(requests.exceptions.ConnectionError, match="refused"):
            instance.invoke("fetch")

    def test_make_id_range(self, instance):
        """Test generated ids stay in [0, 10**12)"""
        for _ in range(100):
            request_id = instance.make_id()
            assert isinstance(request_id, int)
            assert 0 <= request_id < 10 ** 12

    def test_close(self, instance, session):
        """Test close releases the session"""
        instance.close()
        session.close.assert_called_once()


class TestVerifyResponse:
    """Test validation of the raw HTTP response"""

    def test_none_response(self, instance):
        with pytest.raises(InvalidResponseError, match="No response received"):
            instance.verify_response(None)

    def test_missing_body(self, instance, make_response):
        with pytest.raises(InvalidResponseError, match="Response body is missing"):
            instance.verify_response(make_response(None))

    def test_empty_body(self, instance, make_response):
        with pytest.raises(InvalidResponseError, match="Response body is empty"):
            instance.verify_response(make_response(""))

    def test_non_empty_body(self, instance, make_response):
        instance.verify_response(make_response('{"foo": "bar"}'))


class TestPayloadFrom:
    """Test JSON decoding of the response body"""

    def test_invalid_json(self, instance, make_response, caplog):
        """Test unparsable JSON raises InvalidResponseError and is logged"""
        caplog.set_level(logging.INFO, logger="lime_remote.rpc.json_rpc")

        with pytest.raises(InvalidResponseError, match="Expecting property name"):
            instance.payload_from(make_response('{ foo: "bar" }'))

        assert 'Failed to parse JSON from:\n{ foo: "bar" }' in caplog.text

    def test_valid_json(self, instance, make_response):
        assert instance.payload_from(make_response('{ "foo": "bar" }')) == {"foo": "bar"}

    def test_utf8_without_charset(self, instance, session, make_response):
        """Test raw UTF-8 is decoded when the Content-Type names no charset"""
        headers = {"Content-Type": "text/javascript"}
        response = make_response('{"id":1,"result":"Caf\u00e9","error":null}'.encode("utf-8"), headers=headers)
        response.encoding = requests.utils.get_encoding_from_headers(response.headers)
        session.send.return_value = response

        with patch.object(instance, "make_id", return_value=1):
            assert instance.invoke("fetch") == "Caf\u00e9"


class TestVerifyPayload:
    """Test structural validation of the decoded payload"""

    VALID = {"id": 1, "result": "Hello World!", "error": None}

    def test_valid_payload(self, instance):
        instance.verify_payload(dict(self.VALID), 1)

    def test_null_result_and_error(self, instance):
        instance.verify_payload({"id": 1, "result": None, "error": None}, 1)

    @pytest.mark.parametrize("payload, message", [
        ([], "Response body is not a JSON object"),
        ("text", "Response body is not a JSON object"),
        ({"result": "x", "error": None}, "Response body is missing the id"),
        ({"id": 2, "result": "x", "error": None}, r"Response id \(2\) does not match request id \(1\)"),
        ({"id": 1, "error": None}, "Response body must have a result and an error"),
        ({"id": 1, "result": "x"}, "Response body must have a result and an error"),
        ({"id": 1, "result": None, "error": "bad"}, "Response error is not a JSON object"),
        ({"id": 1, "result": None, "error": {"message": "m"}}, "Response error is missing the code"),
        ({"id": 1, "result": None, "error": {"code": "3", "message": "m"}}, "Response error code is not a number"),
        ({"id": 1, "result": None, "error": {"code": True, "message": "m"}}, "Response error code is not a number"),
        ({"id": 1, "result": None, "error": {"code": 3}}, "Response error is missing the message"),
        ({"id": 1, "result": None, "error": {"code": 3, "message": 5}}, "Response error message is not a string"),
    ])
    def test_invalid_payload(self, instance, payload, message):
        with pytest.raises(InvalidResponseError, match=message):
            instance.verify_payload(payload, 1)


class TestLogging:
    """Test request/response logging"""

    def test_invoke_logged(self, instance, session, make_response, caplog):
        """Test method and arguments are logged at debug level"""
        caplog.set_level(logging.DEBUG, logger="lime_remote.rpc.json_rpc")
        session.send.return_value = make_response(payload(result="ok"))

        with patch.object(instance, "make_id", return_value=1):
            instance.invoke("fetch", 123)

        assert "invoke(fetch, [123])" in caplog.text
        assert "API response:" in caplog.text

    def test_credentials_not_logged(self, instance, session, make_response, caplog):
        """Test get_session_key arguments are redacted"""
        caplog.set_level(logging.DEBUG, logger="lime_remote.rpc.json_rpc")
        session.send.return_value = make_response(payload(result="session"))

        with patch.object(instance, "make_id", return_value=1):
            instance.invoke("get_session_key", "admin", "s3cret")

        assert "s3cret" not in caplog.text
        assert "invoke(get_session_key, <redacted>)" in caplog.text

    def test_injected_logger(self, endpoint, session, make_response):
        """Test an injected logger receives the records"""
        logger = MagicMock(spec=logging.Logger)
        instance = JsonRpcClient(endpoint, session=session, logger=logger)
        session.send.return_value = make_response(payload(result="ok"))

        with patch.object(instance, "make_id", return_value=1):
            instance.invoke("fetch")

        logger.debug.assert_any_call("invoke(fetch, [])")

    def test_session_key_redacted(self, endpoint, session, make_response, caplog):
        """Test the leading session key is hidden when redaction is enabled"""
        caplog.set_level(logging.DEBUG, logger="lime_remote.rpc.json_rpc")
        instance = JsonRpcClient(endpoint, session=session, redact_session_key=True)
        session.send.return_value = make_response(payload(result="ok"))

        with patch.object(instance, "make_id", return_value=1):
            instance.invoke("get_summary", "key-123", 42)

        assert "key-123" not in caplog.text
        assert "invoke(get_summary, ['<redacted>', 42])" in caplog.text


class TestMetrics:
    """Test request metrics recorded by invoke"""

    def test_transport_failure_counted(self, instance, session):
        session.send.side_effect = requests.exceptions.ConnectionError("refused")

        with patch("lime_remote.rpc.json_rpc.increment_counter") as increment_counter, \
                patch("lime_remote.rpc.json_rpc.record_latency") as record_latency:
            with pytest.raises(requests.exceptions.ConnectionError):
                instance.invoke("fetch")

        increment_counter.assert_any_call(
            "rpc.client.errors", 1, {"type": "transport", "error": "ConnectionError", "method": "fetch"}
        )
        record_latency.assert_called_once()
        assert record_latency.call_args.args[0] == "rpc.client.latency"

    def test_success_counted(self, instance, session, make_response):
        session.send.return_value = make_response(payload(result="ok"))

        with patch("lime_remote.rpc.json_rpc.increment_counter") as increment_counter, \
                patch.object(instance, "make_id", return_value=1):
            instance.invoke("fetch")

        increment_counter.assert_any_call("rpc.client.success", 1, {"method": "fetch"})
