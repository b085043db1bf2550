"""
Network package: reachability probing and resilient HTTP fetching

- ConnectivityProber: memoized reachability check consulted by the cache
- ResilientFetch: HTTP client with timeout handling and a one-shot
  certificate-verification bypass for intercepting proxies
"""

from .connectivity import ConnectivityProber, ConnectivityState
from .fetch import ResilientFetch, FetchResponse, ConnectionMode, is_trust_error

__all__ = [
    'ConnectivityProber',
    'ConnectivityState',
    'ResilientFetch',
    'FetchResponse',
    'ConnectionMode',
    'is_trust_error',
]
