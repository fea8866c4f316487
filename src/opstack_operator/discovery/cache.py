""" TTL cache of discovered contract addresses.

The cache is an explicit object owned by whoever constructs it; the
network controller receives one at construction time.
"""

import logging
import os
import threading
import time
from datetime import datetime, timezone

from opstack_operator.discovery.strategies import (
    AUTO_ORDER,
    STRATEGIES,
    DiscoveryContext,
    DiscoveryMethod,
)
from opstack_operator.errors import ExternalUnavailable
from opstack_operator.utils.units import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 24 * 3600.0


def get_cache_ttl():
    """ Get the default discovery TTL in seconds from environment.
    """
    return parse_duration(os.getenv("DISCOVERY_CACHE_TTL"), DEFAULT_CACHE_TTL)


class AddressSet:
    """Addresses resolved for one network, plus how and when."""

    def __init__(self, addresses, discovery_method, last_discovery_time, expires_at=None):
        self.addresses = dict(addresses)
        self.discovery_method = discovery_method
        self.last_discovery_time = last_discovery_time
        self.expires_at = expires_at

    def to_status(self):
        """Render as the discoveredContracts status block."""
        return {
            **self.addresses,
            "discoveryMethod": self.discovery_method,
            "lastDiscoveryTime": self.last_discovery_time,
        }


def cache_key(spec):
    return f"{spec.networkName or ''}-{spec.chainID}"


def _method_of(spec, strategy):
    if strategy is None:
        addresses = spec.contractAddresses
        strategy = addresses.discoveryMethod if addresses is not None else DiscoveryMethod.AUTO
    return DiscoveryMethod(strategy)


def _ttl_of(spec, default_ttl):
    addresses = spec.contractAddresses
    if addresses is not None and addresses.cacheTimeout:
        return parse_duration(addresses.cacheTimeout)
    return default_ttl


class DiscoveryCache:
    """ Lock-protected map of network key to AddressSet.

    Entries are recomputed lazily on the first resolve after they expire.
    Discovery itself runs outside the lock, so concurrent misses for one
    key may each recompute; the last writer wins.
    """

    def __init__(self, rpc, default_ttl=None, http_transport=None, clock=time.monotonic):
        self.rpc = rpc
        self.default_ttl = get_cache_ttl() if default_ttl is None else default_ttl
        self.http_transport = http_transport
        self.clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def resolve(self, spec, strategy=None, timeout=None):
        """ Return addresses for a network, discovering them if needed.

        Args:
            spec: OptimismNetworkSpec
            strategy: DiscoveryMethod (or its value); defaults to the
                spec's contractAddresses.discoveryMethod
            timeout: Bound on each outbound call in seconds

        Raises:
            ExternalUnavailable: every applicable strategy failed
            ValueError: unknown strategy or cache timeout
        """
        key = cache_key(spec)
        method = _method_of(spec, strategy)
        ttl = _ttl_of(spec, self.default_ttl)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self.clock() < entry.expires_at:
                logger.debug(f"Discovery cache hit for {key}")
                return entry

        context = DiscoveryContext(spec, self.rpc, self.http_transport, timeout)
        address_set = self._discover(context, method)
        address_set.expires_at = self.clock() + ttl

        with self._lock:
            self._entries[key] = address_set

        logger.info(
            f"Discovered {len(address_set.addresses)} addresses for {key} "
            f"via {address_set.discovery_method}"
        )
        return address_set

    def _discover(self, context, method):
        if method is DiscoveryMethod.AUTO:
            order = AUTO_ORDER
        else:
            order = (method,)

        failures = []
        for candidate in order:
            try:
                addresses = STRATEGIES[candidate](context)
            except ExternalUnavailable as e:
                logger.debug(f"Discovery strategy {candidate.value} failed: {e}")
                failures.append(f"{candidate.value}: {e}")
                continue

            if addresses:
                return AddressSet(
                    addresses,
                    candidate.value,
                    datetime.now(timezone.utc).isoformat(),
                )
            failures.append(f"{candidate.value}: not applicable")

        raise ExternalUnavailable(
            f"unable to discover contract addresses using {method.value} "
            f"({'; '.join(failures)})"
        )

    def invalidate(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()
