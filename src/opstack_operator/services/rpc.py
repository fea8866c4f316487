""" JSON-RPC client for L1/L2 execution endpoints.
"""

import itertools
import logging
import os

import httpx

from opstack_operator.errors import ExternalUnavailable
from opstack_operator.utils.units import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_RPC_TIMEOUT = 10.0


def get_rpc_timeout():
    """ Get default outbound call timeout in seconds from environment.
    """
    return parse_duration(os.environ.get("RPC_TIMEOUT"), DEFAULT_RPC_TIMEOUT)


def get_verify_tls():
    """ Get TLS verification from environment.
    """
    verify_tls = os.environ.get("RPC_VERIFY_TLS", "true").lower()
    return verify_tls in ("true", "1", "yes")


class RPCClient:
    """ Minimal synchronous Ethereum JSON-RPC client.

    Every call is bounded by a timeout and never retried here; callers
    requeue instead.
    """

    def __init__(self, timeout=None, verify_tls=None, transport=None):
        self.timeout = timeout if timeout is not None else get_rpc_timeout()
        self.verify_tls = get_verify_tls() if verify_tls is None else verify_tls
        self.transport = transport
        self._ids = itertools.count(1)

    def call(self, url, method, params=None, timeout=None):
        """ Make a JSON-RPC request and return its result.

        Raises:
            ExternalUnavailable: on transport errors, HTTP errors or RPC errors
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            with httpx.Client(
                verify=self.verify_tls,
                timeout=timeout or self.timeout,
                transport=self.transport,
            ) as client:
                logger.debug(f"POST {url} {method}")
                response = client.post(url, json=payload)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalUnavailable(f"{method} against {url} failed: {e}") from e

        if body.get("error"):
            raise ExternalUnavailable(f"{method} against {url} returned error: {body['error']}")
        return body.get("result")

    def chain_id(self, url, timeout=None):
        """Return the chain ID reported by eth_chainId."""
        result = self.call(url, "eth_chainId", timeout=timeout)
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise ExternalUnavailable(f"eth_chainId returned {result!r}") from e

    def get_code(self, url, address, timeout=None):
        return self.call(url, "eth_getCode", [address, "latest"], timeout=timeout)

    def eth_call(self, url, to, data, timeout=None):
        return self.call(url, "eth_call", [{"to": to, "data": data}, "latest"], timeout=timeout)


def check_chain_id(rpc, url, expected_chain_id, timeout=None):
    """ Confirm an endpoint serves the expected chain.

    Raises:
        ExternalUnavailable: unreachable endpoint or chain ID mismatch
    """
    actual = rpc.chain_id(url, timeout=timeout)
    if actual != expected_chain_id:
        raise ExternalUnavailable(
            f"chain ID mismatch at {url}: expected {expected_chain_id}, got {actual}"
        )
    return actual
