"""
Tests for the transport layer – write outcome classification and typed
errors on page fetches.
"""

import unittest
from unittest.mock import MagicMock, patch

import requests
import urllib3

from fixtures import LOGIN_PAGE, SUCCESS_PAGE, VALIDATION_ERROR_PAGE, dm_csv

from prosbc_files.errors import (
    ConnectionRefused,
    NetworkError,
    RequestTimeout,
    ServerError,
    ServiceUnavailable,
    SessionError,
)
from prosbc_files.forms import build_form_request
from prosbc_files.models import Confidence, ErrorKind, Operation, Outcome, Payload, ResourceKind
from prosbc_files.transport import TransportClient, is_session_expired

BASE = "https://sbc.example.net"


def _make_response(status_code=200, text="", headers=None, url=BASE + "/file_dbs/1/edit"):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.text = text
    resp.headers = headers if headers is not None else {"Content-Type": "text/html; charset=utf-8"}
    resp.url = url
    return resp


def _dm_update_request():
    payload = Payload(Operation.UPDATE, filename="routes_dm.csv", content=dm_csv(10), record_id="7")
    return build_form_request(Operation.UPDATE, ResourceKind.DIGIT_MAP_FILE, payload, "tok", record_id="7")


class TestSend(unittest.TestCase):
    def setUp(self):
        self.session = requests.Session()
        self.transport = TransportClient(self.session, BASE, timeout=5)
        self.request = _dm_update_request()

    def _send_with(self, **kwargs):
        with patch.object(self.session, "request", **kwargs) as mock_request:
            result = self.transport.send(self.request)
        return result, mock_request

    def test_request_shape(self):
        resp = _make_response(302, headers={"Location": BASE + "/file_dbs/1/edit"})
        _, mock_request = self._send_with(return_value=resp)
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("POST", BASE + "/file_dbs/1/routesets_digitmaps/7"))
        self.assertFalse(kwargs["allow_redirects"])
        self.assertEqual(kwargs["timeout"], 5)
        files = kwargs["files"]
        self.assertEqual(files["_method"], (None, "put"))
        self.assertEqual(files["authenticity_token"], (None, "tok"))
        self.assertEqual(files["tbgw_routesets_digitmap[file]"][0], "routes_dm.csv")
        self.assertEqual(kwargs["headers"]["Referer"],
                         BASE + "/file_dbs/1/routesets_digitmaps/7/edit")

    def test_302_is_redirect_success(self):
        resp = _make_response(302, headers={"Location": BASE + "/file_dbs/1/edit"})
        result, _ = self._send_with(return_value=resp)
        self.assertTrue(result.success)
        self.assertEqual(result.outcome, Outcome.REDIRECT)
        self.assertEqual(result.confidence, Confidence.CONFIRMED)
        self.assertEqual(result.http_status, 302)
        self.assertEqual(result.redirect_url, BASE + "/file_dbs/1/edit")
        self.assertEqual(result.kind, ResourceKind.DIGIT_MAP_FILE)
        self.assertEqual(result.filename, "routes_dm.csv")

    def test_redirect_to_login_is_session_failure(self):
        resp = _make_response(302, headers={"Location": BASE + "/login"})
        result, _ = self._send_with(return_value=resp)
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.SESSION)
        self.assertIn("redirected to login", result.message)

    def test_failed_to_fetch_type_error_is_opaque_success(self):
        result, _ = self._send_with(side_effect=TypeError("Failed to fetch"))
        self.assertTrue(result.success)
        self.assertEqual(result.outcome, Outcome.OPAQUE_REDIRECT)
        self.assertEqual(result.confidence, Confidence.HEURISTIC)
        self.assertTrue(result.is_heuristic)
        self.assertTrue(result.note)

    def test_cors_connection_error_is_opaque_success(self):
        result, _ = self._send_with(side_effect=requests.ConnectionError("CORS request did not succeed"))
        self.assertTrue(result.success)
        self.assertEqual(result.outcome, Outcome.OPAQUE_REDIRECT)

    def test_unrelated_type_error_propagates(self):
        with self.assertRaises(TypeError):
            self._send_with(side_effect=TypeError("unsupported operand"))

    def test_other_request_errors_are_network_failures(self):
        for raised in (requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead"),
                       requests.exceptions.ContentDecodingError("bad gzip"),
                       requests.exceptions.InvalidURL("bad host")):
            result, _ = self._send_with(side_effect=raised)
            self.assertFalse(result.success)
            self.assertEqual(result.error_kind, ErrorKind.NETWORK)
            self.assertTrue(result.message)

    def test_cors_in_hostname_is_not_an_opaque_redirect(self):
        self.transport = TransportClient(self.session, "https://sbc-cors.example.net", timeout=5)
        refused = requests.ConnectionError(
            "HTTPSConnectionPool(host='sbc-cors.example.net', port=443): Max retries exceeded "
            "with url: /file_dbs/1/routesets_digitmaps/7 (Caused by NewConnectionError("
            "'Failed to establish a new connection: [Errno 111] Connection refused'))")
        result, _ = self._send_with(side_effect=refused)
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.CONNECTION_REFUSED)

        unresolved = requests.ConnectionError(
            "HTTPSConnectionPool(host='sbc-cors.example.net', port=443): Max retries exceeded "
            "with url: /file_dbs/1/routesets_digitmaps/7 (Caused by NameResolutionError("
            "'Failed to resolve sbc-cors.example.net'))")
        result, _ = self._send_with(side_effect=unresolved)
        self.assertFalse(result.success)
        self.assertEqual(result.outcome, Outcome.FAILED)
        self.assertEqual(result.error_kind, ErrorKind.NETWORK)

    def test_opaque_match_uses_innermost_cause(self):
        inner = OSError("NetworkError when attempting to fetch resource")
        wrapped = requests.ConnectionError(
            urllib3.exceptions.MaxRetryError(None, "/file_dbs/1/routesets_digitmaps/7", reason=inner))
        result, _ = self._send_with(side_effect=wrapped)
        self.assertTrue(result.success)
        self.assertEqual(result.outcome, Outcome.OPAQUE_REDIRECT)

    def test_positive_marker(self):
        result, _ = self._send_with(return_value=_make_response(200, SUCCESS_PAGE))
        self.assertTrue(result.success)
        self.assertEqual(result.outcome, Outcome.CONFIRMED)

    def test_login_page_body(self):
        result, _ = self._send_with(return_value=_make_response(200, LOGIN_PAGE))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.SESSION)

    def test_200_with_error_fragments_is_validation_failure(self):
        result, _ = self._send_with(return_value=_make_response(200, VALIDATION_ERROR_PAGE))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)
        self.assertIn("invalid number of columns", result.message)

    def test_200_without_signal_is_unverified(self):
        result, _ = self._send_with(return_value=_make_response(200, "<html><body>File DB</body></html>"))
        self.assertTrue(result.success)
        self.assertEqual(result.outcome, Outcome.UNVERIFIED)
        self.assertEqual(result.confidence, Confidence.HEURISTIC)

    def test_422_with_fragments(self):
        result, _ = self._send_with(return_value=_make_response(422, VALIDATION_ERROR_PAGE))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)
        self.assertIn("invalid number of columns", result.message)
        self.assertIn("HTTP 422", result.message)
        self.assertTrue(result.raw_response_excerpt)

    def test_422_invalid_token_is_session_failure(self):
        body = "<h1>ActionController::InvalidAuthenticityToken</h1>"
        result, _ = self._send_with(return_value=_make_response(422, body))
        self.assertEqual(result.error_kind, ErrorKind.SESSION)

    def test_401(self):
        result, _ = self._send_with(return_value=_make_response(401, "Unauthorized"))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.SESSION)
        self.assertIn("Authentication failed", result.message)

    def test_503(self):
        result, _ = self._send_with(return_value=_make_response(503, ""))
        self.assertEqual(result.error_kind, ErrorKind.SERVICE_UNAVAILABLE)

    def test_500(self):
        result, _ = self._send_with(return_value=_make_response(500, ""))
        self.assertEqual(result.error_kind, ErrorKind.SERVER)

    def test_timeout(self):
        result, _ = self._send_with(side_effect=requests.Timeout("read timed out"))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ErrorKind.TIMEOUT)

    def test_connection_refused(self):
        exc = requests.ConnectionError("[Errno 111] Connection refused")
        result, _ = self._send_with(side_effect=exc)
        self.assertEqual(result.error_kind, ErrorKind.CONNECTION_REFUSED)

    def test_excerpt_is_bounded(self):
        result, _ = self._send_with(return_value=_make_response(500, "x" * 2000))
        self.assertEqual(len(result.raw_response_excerpt), 500)

    def test_delete_is_still_multipart(self):
        payload = Payload(Operation.DELETE, record_id="5")
        request = build_form_request(Operation.DELETE, ResourceKind.DEFINITION_FILE, payload, "tok")
        resp = _make_response(302, headers={"Location": BASE + "/file_dbs/1/edit"})
        with patch.object(self.session, "request", return_value=resp) as mock_request:
            result = self.transport.send(request)
        self.assertTrue(result.success)
        files = mock_request.call_args.kwargs["files"]
        self.assertEqual(files, {"authenticity_token": (None, "tok"), "_method": (None, "delete")})


class TestFetch(unittest.TestCase):
    def setUp(self):
        self.session = requests.Session()
        self.transport = TransportClient(self.session, BASE)

    def test_ok(self):
        with patch.object(self.session, "get", return_value=_make_response(200, "<html>ok</html>")):
            self.assertEqual(self.transport.fetch_page("/file_dbs/1/edit"), "<html>ok</html>")

    def test_login_redirect_raises_session_error(self):
        resp = _make_response(200, LOGIN_PAGE, url=BASE + "/login")
        with patch.object(self.session, "get", return_value=resp):
            with self.assertRaises(SessionError):
                self.transport.fetch_page("/file_dbs/1/edit")

    def test_status_errors(self):
        for status, exc_cls in ((401, SessionError), (500, ServerError), (503, ServiceUnavailable)):
            with patch.object(self.session, "get", return_value=_make_response(status, "")):
                with self.assertRaises(exc_cls) as ctx:
                    self.transport.fetch_page("/file_dbs/1/edit")
            self.assertEqual(ctx.exception.status, status)

    def test_network_errors(self):
        cases = (
            (requests.Timeout("timed out"), RequestTimeout),
            (requests.ConnectionError("Connection refused"), ConnectionRefused),
            (requests.ConnectionError("Name or service not known"), NetworkError),
        )
        for raised, expected in cases:
            with patch.object(self.session, "get", side_effect=raised):
                with self.assertRaises(expected):
                    self.transport.fetch_page("/file_dbs/1/edit")

    def test_other_request_errors_raise_network_error(self):
        for raised in (requests.TooManyRedirects("Exceeded 30 redirects."),
                       requests.exceptions.InvalidURL("bad host"),
                       requests.exceptions.ChunkedEncodingError("Connection broken")):
            with patch.object(self.session, "get", side_effect=raised):
                with self.assertRaises(NetworkError) as ctx:
                    self.transport.fetch_page("/file_dbs/1/edit")
            self.assertIs(ctx.exception.__cause__, raised)


class TestIsSessionExpired(unittest.TestCase):
    def test_login_url(self):
        self.assertTrue(is_session_expired(_make_response(url=BASE + "/login/check")))

    def test_normal_page(self):
        self.assertFalse(is_session_expired(_make_response(text="<html>File DB</html>")))

    def test_csv_mentioning_login_form_is_not_expiry(self):
        resp = _make_response(text="login_form,1\n", headers={"Content-Type": "text/csv"})
        self.assertFalse(is_session_expired(resp))


if __name__ == "__main__":
    unittest.main()
