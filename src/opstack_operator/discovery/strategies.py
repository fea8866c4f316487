""" Contract address discovery strategies.

Each strategy takes a DiscoveryContext and returns a dict of addresses keyed
by their status field name. A strategy returns None when it does not apply
to the network and raises ExternalUnavailable when its source failed.
"""

import logging
import os
from enum import Enum

import httpx

from opstack_operator.discovery.wellknown import L2_PREDEPLOYS, lookup_well_known
from opstack_operator.errors import ExternalUnavailable

logger = logging.getLogger(__name__)

L1_ADDRESS_FIELDS = (
    "l2OutputOracleAddr",
    "disputeGameFactoryAddr",
    "optimismPortalAddr",
    "systemConfigAddr",
    "l1CrossDomainMessengerAddr",
    "l1StandardBridgeAddr",
)

# superchain-registry contract name -> status field
REGISTRY_CONTRACTS = {
    "L2OutputOracleProxy": "l2OutputOracleAddr",
    "DisputeGameFactoryProxy": "disputeGameFactoryAddr",
    "OptimismPortalProxy": "optimismPortalAddr",
    "SystemConfigProxy": "systemConfigAddr",
    "L1CrossDomainMessengerProxy": "l1CrossDomainMessengerAddr",
    "L1StandardBridgeProxy": "l1StandardBridgeAddr",
}

REGISTRY_ADDRESSES_PATH = "superchain/extra/addresses/addresses.json"

# SystemConfig getter selectors: first four bytes of keccak256(signature)
SYSTEM_CONFIG_GETTERS = {
    "optimismPortalAddr": "0x0a49cb03",  # optimismPortal()
    "l1CrossDomainMessengerAddr": "0xa7119869",  # l1CrossDomainMessenger()
    "l1StandardBridgeAddr": "0x078f29cf",  # l1StandardBridge()
    "disputeGameFactoryAddr": "0xf2b4e617",  # disputeGameFactory()
    "l2OutputOracleAddr": "0x4d9f1559",  # l2OutputOracle()
}


class DiscoveryMethod(str, Enum):
    AUTO = "auto"
    SYSTEM_CONFIG = "system-config"
    L2_PREDEPLOYS = "l2-predeploys"
    SUPERCHAIN_REGISTRY = "superchain-registry"
    WELL_KNOWN = "well-known"
    MANUAL = "manual"


def get_registry_url():
    """ Get the superchain registry base URL from environment.

    The registry strategy is disabled when this is unset.
    """
    return os.getenv("SUPERCHAIN_REGISTRY_URL", "").rstrip("/") or None


class DiscoveryContext:
    """Everything a strategy may consult for one network."""

    def __init__(self, spec, rpc, http_transport=None, timeout=None):
        self.spec = spec
        self.rpc = rpc
        self.http_transport = http_transport
        self.timeout = timeout

    @property
    def configured(self):
        """Addresses the user set explicitly on the network."""
        addresses = self.spec.contractAddresses
        if addresses is None:
            return {}
        return {
            field: getattr(addresses, field)
            for field in L1_ADDRESS_FIELDS
            if getattr(addresses, field)
        }


def merge_addresses(primary, fallback):
    """ Fill the empty fields of primary from fallback.

    Args:
        primary: Addresses that take precedence
        fallback: Addresses used where primary has none
    """
    merged = dict(primary)
    for field, value in (fallback or {}).items():
        if value and not merged.get(field):
            merged[field] = value
    return merged


def _has_code(code):
    return bool(code) and code not in ("0x", "0x0")


def decode_address(result):
    """ Address held in the first 32-byte word of an eth_call result.

    Returns:
        str or None: The address, or None for the zero address

    Raises:
        ValueError: if the result is not an ABI-encoded word
    """
    if not isinstance(result, str) or not result.startswith("0x") or len(result) < 66:
        raise ValueError(f"not an ABI-encoded address: {result!r}")
    address = "0x" + result[26:66]
    if int(address, 16) == 0:
        return None
    return address


def discover_from_system_config(context):
    """ Read the L1 contract addresses from a user supplied SystemConfig.

    The L1 endpoint must serve contract code at that address. Each getter
    is called with eth_call; getters the deployed version lacks revert and
    are skipped. Explicitly configured addresses take precedence.
    """
    configured = context.configured
    address = configured.get("systemConfigAddr")
    if not address:
        return None

    l1_rpc_url = context.spec.l1RpcUrl
    code = context.rpc.get_code(l1_rpc_url, address, timeout=context.timeout)
    if not _has_code(code):
        raise ExternalUnavailable(f"no contract code at SystemConfig address {address}")

    resolved = {}
    for field, selector in SYSTEM_CONFIG_GETTERS.items():
        try:
            value = decode_address(
                context.rpc.eth_call(l1_rpc_url, address, selector, timeout=context.timeout)
            )
        except (ExternalUnavailable, ValueError) as e:
            logger.debug(f"SystemConfig {address} getter for {field} failed: {e}")
            continue
        if value is not None:
            resolved[field] = value

    if not resolved:
        raise ExternalUnavailable(f"SystemConfig at {address} returned no contract addresses")
    return merge_addresses(merge_addresses(configured, resolved), L2_PREDEPLOYS)


def discover_from_l2_predeploys(context):
    """ Confirm the L2 predeploys are live, then fill L1 addresses from
    the well-known tables.
    """
    l2_rpc_url = context.spec.l2RpcUrl
    if not l2_rpc_url:
        return None

    for field, address in L2_PREDEPLOYS.items():
        code = context.rpc.get_code(l2_rpc_url, address, timeout=context.timeout)
        if not _has_code(code):
            raise ExternalUnavailable(f"predeploy {field} at {address} has no code on L2")

    well_known = lookup_well_known(context.spec.networkName, context.spec.chainID) or {}
    return merge_addresses(dict(L2_PREDEPLOYS), well_known)


def discover_from_superchain_registry(context):
    """ Look the chain up in the superchain registry's address listing.
    """
    base_url = get_registry_url()
    if base_url is None:
        return None

    url = f"{base_url}/{REGISTRY_ADDRESSES_PATH}"
    try:
        with httpx.Client(timeout=context.timeout, transport=context.http_transport) as client:
            logger.debug(f"GET {url}")
            response = client.get(url)
            response.raise_for_status()
            listing = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ExternalUnavailable(f"superchain registry lookup failed: {e}") from e

    contracts = listing.get(str(context.spec.chainID))
    if not contracts:
        return None

    addresses = {
        field: contracts[name] for name, field in REGISTRY_CONTRACTS.items() if contracts.get(name)
    }
    if not addresses:
        return None
    return merge_addresses(addresses, L2_PREDEPLOYS)


def discover_from_well_known(context):
    return lookup_well_known(context.spec.networkName, context.spec.chainID)


def discover_from_manual(context):
    return context.configured or None


STRATEGIES = {
    DiscoveryMethod.SYSTEM_CONFIG: discover_from_system_config,
    DiscoveryMethod.L2_PREDEPLOYS: discover_from_l2_predeploys,
    DiscoveryMethod.SUPERCHAIN_REGISTRY: discover_from_superchain_registry,
    DiscoveryMethod.WELL_KNOWN: discover_from_well_known,
    DiscoveryMethod.MANUAL: discover_from_manual,
}

# Priority order tried by DiscoveryMethod.AUTO
AUTO_ORDER = (
    DiscoveryMethod.SYSTEM_CONFIG,
    DiscoveryMethod.L2_PREDEPLOYS,
    DiscoveryMethod.SUPERCHAIN_REGISTRY,
    DiscoveryMethod.WELL_KNOWN,
    DiscoveryMethod.MANUAL,
)
