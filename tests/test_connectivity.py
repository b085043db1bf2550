# tests/test_connectivity.py
"""Test the connectivity prober"""

import requests
from unittest.mock import Mock

from lyricglow.network.connectivity import ConnectivityProber, ConnectivityState


class FakeMonotonic:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def make_prober(session, clock=None, cooldown=60.0):
    return ConnectivityProber(
        probe_url="https://probe.example",
        timeout=3.0,
        cooldown=cooldown,
        session=session,
        clock=clock or FakeMonotonic(),
    )


class TestConnectivityProber:
    """Test probing, memoization and forcing"""

    def test_initial_state_unknown(self):
        assert make_prober(Mock()).state is ConnectivityState.UNKNOWN

    def test_successful_probe_is_online(self):
        session = Mock()
        prober = make_prober(session)

        assert prober.is_online() is True
        assert prober.state is ConnectivityState.ONLINE
        session.head.assert_called_once_with("https://probe.example", timeout=3.0, allow_redirects=False)

    def test_connection_error_is_offline(self):
        session = Mock()
        session.head.side_effect = requests.exceptions.ConnectionError("no route")
        prober = make_prober(session)

        assert prober.is_online() is False
        assert prober.state is ConnectivityState.OFFLINE

    def test_timeout_is_offline(self):
        session = Mock()
        session.head.side_effect = requests.exceptions.ConnectTimeout("timed out")
        assert make_prober(session).is_online() is False

    def test_tls_failure_counts_as_online(self):
        session = Mock()
        session.head.side_effect = requests.exceptions.SSLError("CERTIFICATE_VERIFY_FAILED")
        assert make_prober(session).is_online() is True

    def test_result_is_memoized_within_cooldown(self):
        session = Mock()
        clock = FakeMonotonic()
        prober = make_prober(session, clock)

        prober.is_online()
        clock.now += 59
        prober.is_online()

        assert session.head.call_count == 1

    def test_reprobes_after_cooldown(self):
        session = Mock()
        session.head.side_effect = [requests.exceptions.ConnectionError("down"), Mock()]
        clock = FakeMonotonic()
        prober = make_prober(session, clock)

        assert prober.is_online() is False
        clock.now += 60
        assert prober.is_online() is True
        assert session.head.call_count == 2

    def test_no_cooldown_memoizes_for_lifetime(self):
        session = Mock()
        clock = FakeMonotonic()
        prober = make_prober(session, clock, cooldown=None)

        prober.is_online()
        clock.now += 10_000
        prober.is_online()

        assert session.head.call_count == 1

    def test_refresh_probes_immediately(self):
        session = Mock()
        session.head.side_effect = [requests.exceptions.ConnectionError("down"), Mock()]
        prober = make_prober(session)

        assert prober.is_online() is False
        assert prober.refresh() is True
        assert prober.state is ConnectivityState.ONLINE

    def test_force_overrides_probe(self):
        session = Mock()
        prober = make_prober(session)

        prober.force(ConnectivityState.OFFLINE)
        assert prober.is_online() is False
        assert prober.refresh() is False
        assert prober.state is ConnectivityState.OFFLINE
        session.head.assert_not_called()

        prober.force(True)
        assert prober.is_online() is True

        prober.force(None)
        assert prober.is_online() is True
        session.head.assert_called_once()

    def test_from_settings(self, mock_settings):
        prober = ConnectivityProber.from_settings(mock_settings)
        assert prober.probe_url == "https://www.google.com"
        assert prober.timeout == 3.0
        assert prober.cooldown == 60.0
