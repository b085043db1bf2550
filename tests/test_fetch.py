# tests/test_fetch.py
"""Test the resilient fetch wrapper"""

import pytest
import requests
from unittest.mock import Mock

from lyricglow.exceptions import FetchError, FetchTimeoutError
from lyricglow.network.fetch import ResilientFetch, FetchResponse, ConnectionMode, is_trust_error


TRUST_ERROR = requests.exceptions.SSLError(
    "HTTPSConnectionPool(host='lrclib.net', port=443): Max retries exceeded "
    "(Caused by SSLError(SSLCertVerificationError(1, '[SSL: CERTIFICATE_VERIFY_FAILED] "
    "certificate verify failed: self-signed certificate in certificate chain')))"
)


def http_response(status=200, body=b'{"ok": true}'):
    response = requests.Response()
    response.status_code = status
    response._content = body
    response.url = "https://example.com/"
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def client(session):
    return ResilientFetch(session=session, default_timeout=10.0, user_agent="LyricGlow/1.0")


class TestTrustErrorClassification:
    """Test certificate error detection"""

    def test_certificate_verify_failed(self):
        assert is_trust_error(TRUST_ERROR)

    def test_expired_certificate(self):
        assert is_trust_error(requests.exceptions.SSLError("certificate has expired"))

    def test_other_ssl_error(self):
        assert not is_trust_error(requests.exceptions.SSLError("WRONG_VERSION_NUMBER"))

    def test_non_ssl_error_with_matching_text(self):
        assert not is_trust_error(requests.exceptions.ConnectionError("CERTIFICATE_VERIFY_FAILED"))


class TestFetch:
    """Test request sending and the bypass retry"""

    def test_secure_success(self, client, session):
        session.request.return_value = http_response()

        response = client.fetch("https://example.com/", params={'q': 'x'})

        assert response.ok
        assert response.status == 200
        assert response.json() == {'ok': True}
        assert response.insecure is False
        session.request.assert_called_once()
        _, kwargs = session.request.call_args
        assert kwargs['verify'] is True
        assert kwargs['timeout'] == 10.0
        assert kwargs['params'] == {'q': 'x'}
        assert kwargs['headers']['User-Agent'] == "LyricGlow/1.0"
        assert client.get_connection_mode() is ConnectionMode.SECURE

    def test_non_2xx_is_returned(self, client, session):
        session.request.return_value = http_response(status=404, body=b'')
        response = client.fetch("https://example.com/")
        assert not response.ok
        assert response.status == 404

    def test_trust_error_retries_once_without_verification(self, client, session):
        session.request.side_effect = [TRUST_ERROR, http_response(body=b'\x89PNG')]

        response = client.fetch("https://example.com/", timeout=5)

        assert session.request.call_count == 2
        first, second = session.request.call_args_list
        assert first.kwargs['verify'] is True
        assert second.kwargs['verify'] is False
        assert second.kwargs['timeout'] == 5
        assert response.insecure is True
        assert response.buffer() == b'\x89PNG'
        assert client.get_connection_mode() is ConnectionMode.BYPASS

    def test_non_trust_error_is_not_retried(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("Name or service not known")

        with pytest.raises(FetchError) as exc_info:
            client.fetch("https://example.com/")

        assert session.request.call_count == 1
        assert exc_info.value.url == "https://example.com/"
        assert not isinstance(exc_info.value, FetchTimeoutError)
        assert client.get_connection_mode() is ConnectionMode.UNTESTED

    def test_timeout_is_distinct(self, client, session):
        session.request.side_effect = requests.exceptions.ReadTimeout("read timed out")

        with pytest.raises(FetchTimeoutError) as exc_info:
            client.fetch("https://example.com/", timeout=2)

        assert exc_info.value.timeout == 2
        assert session.request.call_count == 1

    def test_bypass_failure_surfaces_fallback_error(self, client, session):
        session.request.side_effect = [TRUST_ERROR, requests.exceptions.ConnectionError("reset by peer")]

        with pytest.raises(FetchError) as exc_info:
            client.fetch("https://example.com/")

        assert "reset by peer" in str(exc_info.value)
        assert session.request.call_count == 2
        assert client.get_connection_mode() is ConnectionMode.UNTESTED

    def test_bypass_timeout(self, client, session):
        session.request.side_effect = [TRUST_ERROR, requests.exceptions.ConnectTimeout("timed out")]

        with pytest.raises(FetchTimeoutError):
            client.fetch("https://example.com/")

    def test_mode_stays_bypass_after_later_secure_success(self, client, session):
        session.request.side_effect = [TRUST_ERROR, http_response(), http_response()]
        client.fetch("https://a.example/")
        client.fetch("https://b.example/")
        assert client.get_connection_mode() is ConnectionMode.BYPASS

    def test_from_settings(self, mock_settings):
        client = ResilientFetch.from_settings(mock_settings)
        assert client.default_timeout == 10.0
        assert client.default_headers['User-Agent'] == "LyricGlow/1.0"

    def test_timeout_is_passed_to_every_attempt(self, client, session):
        session.request.side_effect = [TRUST_ERROR, http_response()]

        client.fetch("https://example.com/", timeout=3)

        assert [c.kwargs['timeout'] for c in session.request.call_args_list] == [3, 3]


class TestFetchResponse:
    """Test the response wrapper handed to adapters"""

    def test_status_boundaries(self):
        assert FetchResponse(http_response(status=204, body=b'')).ok
        assert not FetchResponse(http_response(status=301, body=b'')).ok
        assert not FetchResponse(http_response(status=500, body=b'')).ok

    def test_non_json_body_raises_value_error(self):
        response = FetchResponse(http_response(body=b'<html>captive portal</html>'))
        with pytest.raises(ValueError):
            response.json()
        assert response.buffer() == b'<html>captive portal</html>'

    def test_repr(self):
        response = FetchResponse(http_response(status=404, body=b''), insecure=True)
        assert repr(response) == "FetchResponse(status=404, insecure=True)"
