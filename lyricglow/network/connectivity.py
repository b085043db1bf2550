"""
Network reachability probe for the offline-first cache

The cache only treats an old entry as stale when the network is known to be
reachable; otherwise the old copy is served. Probing on every cache read would
add a network round trip to every lookup, so the prober memoizes its answer.

Unlike a process-lifetime memo, the answer here expires after a cooldown, so
a session that starts offline picks up refreshes once the network returns.
refresh() re-probes immediately and force() pins a state for tests and for
the --offline command line flag.
"""

import time
import threading
from enum import Enum
from typing import Callable, Optional, Union

import requests

from ..utils.logger import get_logger


class ConnectivityState(Enum):
    """Tri-state reachability as last determined by the prober"""
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectivityProber:
    """
    Memoized network reachability check

    Sends a HEAD request to a well-known host with a short timeout. Any HTTP
    response, or a TLS failure (which still proves the host answered), counts
    as online; connection errors and timeouts count as offline.
    """

    def __init__(
        self,
        probe_url: str = "https://www.google.com",
        timeout: float = 3.0,
        cooldown: Optional[float] = 60.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            probe_url: URL to send the HEAD request to
            timeout: Probe timeout in seconds
            cooldown: Seconds a result stays valid; None keeps it for the process lifetime
            session: requests session to probe with (injectable for tests)
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self.logger = get_logger(__name__)
        self.probe_url = probe_url
        self.timeout = timeout
        self.cooldown = cooldown
        self.session = session or requests.Session()
        self._clock = clock

        self._lock = threading.Lock()
        self._state = ConnectivityState.UNKNOWN
        self._checked_at: Optional[float] = None
        self._forced: Optional[ConnectivityState] = None

    @classmethod
    def from_settings(cls, settings) -> 'ConnectivityProber':
        """Build a prober from the network section of Settings"""
        return cls(
            probe_url=settings.network.probe_url,
            timeout=settings.network.probe_timeout,
            cooldown=settings.network.probe_cooldown,
        )

    @property
    def state(self) -> ConnectivityState:
        """Current state without probing (forced state wins)"""
        return self._forced or self._state

    def is_online(self) -> bool:
        """
        Check whether the network is reachable

        Returns the memoized answer while it is fresh, probing otherwise.

        Returns:
            True if the last probe succeeded
        """
        with self._lock:
            if self._forced is not None:
                return self._forced is ConnectivityState.ONLINE

            if self._state is ConnectivityState.UNKNOWN or self._is_expired():
                self._probe()

            return self._state is ConnectivityState.ONLINE

    def refresh(self) -> bool:
        """
        Discard the memoized answer and probe again

        Returns:
            True if the network is reachable now
        """
        with self._lock:
            if self._forced is not None:
                return self._forced is ConnectivityState.ONLINE
            self._probe()
            return self._state is ConnectivityState.ONLINE

    def force(self, state: Union[ConnectivityState, bool, None]) -> None:
        """
        Pin the reported state, or unpin it with None

        Args:
            state: ConnectivityState, True/False for online/offline, or None
        """
        if isinstance(state, bool):
            state = ConnectivityState.ONLINE if state else ConnectivityState.OFFLINE
        with self._lock:
            self._forced = state

    def _is_expired(self) -> bool:
        if self.cooldown is None or self._checked_at is None:
            return False
        return self._clock() - self._checked_at >= self.cooldown

    def _probe(self) -> None:
        previous = self._state
        try:
            self.session.head(self.probe_url, timeout=self.timeout, allow_redirects=False)
            self._state = ConnectivityState.ONLINE
        except requests.exceptions.SSLError:
            # Intercepting proxies break the handshake but the network is up
            self._state = ConnectivityState.ONLINE
        except requests.exceptions.RequestException as e:
            self.logger.debug(f"Connectivity probe failed: {e}")
            self._state = ConnectivityState.OFFLINE

        self._checked_at = self._clock()

        if previous is not self._state:
            self.logger.info(f"Network is {self._state.value}")
