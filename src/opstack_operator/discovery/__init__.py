"""Contract address discovery."""

from opstack_operator.discovery.cache import AddressSet, DiscoveryCache, cache_key
from opstack_operator.discovery.strategies import DiscoveryMethod, merge_addresses
from opstack_operator.discovery.wellknown import L2_PREDEPLOYS, lookup_well_known

__all__ = [
    "AddressSet",
    "DiscoveryCache",
    "DiscoveryMethod",
    "L2_PREDEPLOYS",
    "cache_key",
    "lookup_well_known",
    "merge_addresses",
]
