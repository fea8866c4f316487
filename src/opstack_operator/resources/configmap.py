""" Rollup and genesis ConfigMaps published by an OptimismNetwork.

Nodes mount `<network>-rollup-config` regardless of where the document
came from, so inline and referenced documents are copied into the same
ConfigMap that autoDiscover generates.
"""

import json

from opstack_operator.resources.common import object_meta
from opstack_operator.resources.labels import component_labels

ROLLUP_CONFIG_KEY = "rollup.json"
GENESIS_KEY = "genesis.json"

ZERO_HASH = "0x" + "0" * 64

# Pre-Bedrock forks are all active from genesis on an OP Stack L2
GENESIS_FORK_BLOCKS = (
    "homesteadBlock",
    "eip150Block",
    "eip155Block",
    "eip158Block",
    "byzantiumBlock",
    "constantinopleBlock",
    "petersburgBlock",
    "istanbulBlock",
    "muirGlacierBlock",
    "berlinBlock",
    "londonBlock",
    "arrowGlacierBlock",
    "grayGlacierBlock",
    "mergeNetsplitBlock",
    "bedrockBlock",
)


def rollup_config_map_name(network_name):
    return f"{network_name}-rollup-config"


def genesis_config_map_name(network_name):
    return f"{network_name}-genesis"


def rollup_config_document(network, contracts=None):
    """ Generated rollup.json for a network.

    Args:
        network: OptimismNetworkSpec
        contracts: Discovered addresses, if any
    """
    contracts = contracts or {}
    document = {
        "genesis": {
            "l1": {"hash": ZERO_HASH, "number": 0},
            "l2": {"hash": ZERO_HASH, "number": 0},
            "l2_time": 0,
        },
        "block_time": 2,
        "max_sequencer_drift": 600,
        "seq_window_size": 3600,
        "channel_timeout": 300,
        "l1_chain_id": network.l1ChainID,
        "l2_chain_id": network.chainID,
    }
    if contracts.get("optimismPortalAddr"):
        document["deposit_contract_address"] = contracts["optimismPortalAddr"]
    if contracts.get("systemConfigAddr"):
        document["l1_system_config_address"] = contracts["systemConfigAddr"]
    return json.dumps(document, indent=2)


def genesis_document(network):
    """Generated genesis.json for a network."""
    config = {"chainId": network.chainID}
    config.update({fork: 0 for fork in GENESIS_FORK_BLOCKS})
    config.update(
        {
            "regolithTime": 0,
            "canyonTime": 0,
            "optimism": {"eip1559Elasticity": 6, "eip1559Denominator": 50},
        }
    )
    document = {
        "config": config,
        "alloc": {},
        "difficulty": "0x1",
        "gasLimit": "0x1c9c380",
    }
    return json.dumps(document, indent=2)


def build_config_map(name, namespace, network, key, document):
    """ Desired ConfigMap holding one configuration document.

    Args:
        name: ConfigMap name
        namespace: Network namespace
        network: OptimismNetworkSpec
        key: Data key (rollup.json or genesis.json)
        document: Document text
    """
    labels = component_labels("optimismnetwork", name, "config", network.networkName)
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": object_meta(name, namespace, labels),
        "data": {key: document},
    }


def build_rollup_config_map(network_name, namespace, network, document):
    return build_config_map(
        rollup_config_map_name(network_name), namespace, network, ROLLUP_CONFIG_KEY, document
    )


def build_genesis_config_map(network_name, namespace, network, document):
    return build_config_map(
        genesis_config_map_name(network_name), namespace, network, GENESIS_KEY, document
    )
