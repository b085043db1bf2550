"""
HTTP fetching with a transport-trust fallback

Corporate networks often run intercepting proxies that re-sign TLS traffic
with their own certificate authority. Standard certificate validation rejects
those connections, which would leave the application without lyrics or
metadata for such users. ResilientFetch therefore:

1. Sends every request with certificate verification enabled.
2. If, and only if, the failure is a recognized certificate-validation error,
   retries the same request once with verification disabled, under a fresh
   timeout budget.
3. Propagates every other failure immediately, without retrying.

Timeouts surface as FetchTimeoutError and other transport failures as
FetchError, so callers can tell them apart. Whether the bypass path was ever
needed is exposed through get_connection_mode() for diagnostics.
"""

import warnings
from enum import Enum
from typing import Any, Dict, Optional

import requests
from urllib3.exceptions import InsecureRequestWarning

from ..exceptions import FetchError, FetchTimeoutError
from ..utils.logger import get_logger


DEFAULT_TIMEOUT = 10.0

# Certificate-validation failures as reported by OpenSSL through the ssl module
TRUST_ERROR_IDENTIFIERS = (
    'CERTIFICATE_VERIFY_FAILED',
    'self-signed certificate',
    'self signed certificate',
    'unable to get local issuer certificate',
    'unable to get issuer certificate',
    'unable to verify the first certificate',
    'certificate has expired',
    'certificate is not trusted',
)


class ConnectionMode(Enum):
    """How outbound connections have been succeeding so far"""
    UNTESTED = "untested"
    SECURE = "secure"
    BYPASS = "bypass-mode"


def is_trust_error(error: BaseException) -> bool:
    """
    Check whether a request failure is a certificate-validation error

    Only requests' SSLError qualifies, and only when its message carries one
    of the known verification failure identifiers. Handshake failures for
    other reasons (protocol mismatch, hostname mismatch) do not.

    Args:
        error: Exception raised by requests

    Returns:
        True if the failure is a recognized trust-validation error
    """
    if not isinstance(error, requests.exceptions.SSLError):
        return False
    message = str(error)
    return any(identifier in message for identifier in TRUST_ERROR_IDENTIFIERS)


class FetchResponse:
    """
    Minimal response wrapper handed to provider adapters

    Exposes ok/status plus json() and buffer() accessors so adapters do not
    depend on requests directly.
    """

    def __init__(self, response: requests.Response, insecure: bool = False):
        self._response = response
        self.insecure = insecure

    @property
    def ok(self) -> bool:
        return 200 <= self._response.status_code < 300

    @property
    def status(self) -> int:
        return self._response.status_code

    def json(self) -> Any:
        """Decode the body as JSON; raises ValueError when it is not JSON"""
        return self._response.json()

    def buffer(self) -> bytes:
        """Return the raw body bytes"""
        return self._response.content

    def __repr__(self) -> str:
        return f"FetchResponse(status={self.status}, insecure={self.insecure})"


class ResilientFetch:
    """
    HTTP client with timeout handling and a one-shot trust-bypass retry

    Instances are cheap and hold no global state; the application builds one
    and passes it to every provider adapter.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        default_timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None
    ):
        """
        Args:
            session: requests session to send through (injectable for tests)
            default_timeout: Timeout in seconds when the caller gives none
            user_agent: Default User-Agent header
        """
        self.logger = get_logger(__name__)
        self.session = session or requests.Session()
        self.default_timeout = default_timeout
        self.default_headers: Dict[str, str] = {}
        if user_agent:
            self.default_headers['User-Agent'] = user_agent

        self.ssl_bypass_enabled = False
        self.has_tested_connection = False

    @classmethod
    def from_settings(cls, settings) -> 'ResilientFetch':
        """Build a fetcher from the network section of Settings"""
        return cls(
            default_timeout=settings.network.request_timeout,
            user_agent=settings.network.user_agent,
        )

    def fetch(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
        timeout: Optional[float] = None
    ) -> FetchResponse:
        """
        Send a request, retrying once without verification on trust errors

        Non-2xx responses are returned, not raised; check response.ok.

        The timeout is requests' timeout: it bounds the connect and each
        socket read separately, not the request as a whole. A server that
        keeps trickling body bytes can run past it. The bypass retry gets
        a fresh timeout of the same size.

        Args:
            url: URL to request
            method: HTTP method
            headers: Extra request headers
            params: Query string parameters
            data: Form body
            timeout: Timeout in seconds (defaults to default_timeout)

        Returns:
            FetchResponse for the first attempt that produced a response

        Raises:
            FetchTimeoutError: If an attempt timed out
            FetchError: For any other transport failure
        """
        timeout = timeout or self.default_timeout
        request_headers = {**self.default_headers, **(headers or {})}

        try:
            response = self._send(url, method, request_headers, params, data, timeout, verify=True)
        except requests.exceptions.Timeout as e:
            self.logger.error(f"Request timeout after {timeout}s: {url}")
            raise FetchTimeoutError(
                f"Request timeout after {timeout}s",
                url=url, original_error=e, timeout=timeout
            ) from e
        except requests.exceptions.RequestException as e:
            if not is_trust_error(e):
                raise FetchError(f"Request failed: {e}", url=url, original_error=e) from e
            return self._fetch_insecure(url, method, request_headers, params, data, timeout, e)

        if not self.has_tested_connection:
            self.logger.info("Secure connection successful (certificate verification enabled)")
            self.has_tested_connection = True

        return FetchResponse(response)

    def _fetch_insecure(self, url, method, headers, params, data, timeout, trust_error) -> FetchResponse:
        self.logger.warning(
            f"Certificate verification failed, retrying without verification "
            f"(intercepting proxy suspected): {trust_error}"
        )

        try:
            response = self._send(url, method, headers, params, data, timeout, verify=False)
        except requests.exceptions.Timeout as e:
            self.logger.error(f"Request timeout after {timeout}s on verification bypass: {url}")
            raise FetchTimeoutError(
                f"Request timeout after {timeout}s",
                url=url, original_error=e, timeout=timeout
            ) from e
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Both verified and unverified connection attempts failed: {e}")
            raise FetchError(f"Request failed: {e}", url=url, original_error=e) from e

        if not self.ssl_bypass_enabled:
            self.logger.info("Connection successful with verification bypass")
            self.ssl_bypass_enabled = True
        self.has_tested_connection = True

        return FetchResponse(response, insecure=True)

    def _send(self, url, method, headers, params, data, timeout, verify: bool) -> requests.Response:
        if verify:
            return self.session.request(
                method, url, headers=headers, params=params, data=data,
                timeout=timeout, verify=True
            )
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', InsecureRequestWarning)
            return self.session.request(
                method, url, headers=headers, params=params, data=data,
                timeout=timeout, verify=False
            )

    def get_connection_mode(self) -> ConnectionMode:
        """
        Get the connection mode observed so far

        Returns:
            UNTESTED before the first success, BYPASS once verification had
            to be disabled, SECURE otherwise
        """
        if not self.has_tested_connection:
            return ConnectionMode.UNTESTED
        return ConnectionMode.BYPASS if self.ssl_bypass_enabled else ConnectionMode.SECURE
