"""Published contract addresses for public OP Stack chains."""

L2_PREDEPLOYS = {
    "l2CrossDomainMessengerAddr": "0x4200000000000000000000000000000000000007",
    "l2StandardBridgeAddr": "0x4200000000000000000000000000000000000010",
    "l2ToL1MessagePasserAddr": "0x4200000000000000000000000000000000000016",
}

WELL_KNOWN_NETWORKS = {
    "op-mainnet": {
        "chainID": 10,
        "addresses": {
            "l2OutputOracleAddr": "0xdfe97868233d1aa22e815a266982f2cf17685a27",
            "disputeGameFactoryAddr": "0xe5965Ab5962eDc7477C8520243A95517CD252fA9",
            "optimismPortalAddr": "0xbEb5Fc579115071764c7423A4f12eDde41f106Ed",
            "systemConfigAddr": "0x229047fed2591dbec1eF1118d64F7aF3dB9EB290",
            "l1CrossDomainMessengerAddr": "0x25ace71c97B33Cc4729CF772ae268934F7ab5fA1",
            "l1StandardBridgeAddr": "0x99C9fc46f92E8a1c0deC1b1747d010903E884bE1",
        },
    },
    "op-sepolia": {
        "chainID": 11155420,
        "addresses": {
            "l2OutputOracleAddr": "0x90E9c4f8a994a250F6aEfd61CAFb4F2e895D458F",
            "disputeGameFactoryAddr": "0x05F9613aDB30026FFd634f38e5C4dFd30a197Fa1",
            "optimismPortalAddr": "0x16Fc5058F25648194471939df75CF27A2fdC48BC",
            "systemConfigAddr": "0x034edD2A225f7f429A63E0f1D2084B9E0A93b538",
            "l1CrossDomainMessengerAddr": "0x58Cc85b8D04EA49cC6DBd3CbFFd00B4B8D6cb3ef",
            "l1StandardBridgeAddr": "0xFBb0621E0B23b5478B630BD55a5f21f67730B0F1",
        },
    },
    "base-mainnet": {
        "chainID": 8453,
        "addresses": {
            "l2OutputOracleAddr": "0x56315b90c40730925ec5485cf004d835058518A0",
            "disputeGameFactoryAddr": "0x43edB88C4B80fDD2AdFF2412A7BebF9dF42cB40e",
            "optimismPortalAddr": "0x49048044D57e1C92A77f79988d21Fa8fAF74E97e",
            "systemConfigAddr": "0x73a79Fab69143498Ed3712e519A88a918e1f4072",
            "l1CrossDomainMessengerAddr": "0x866E82a600A1414e583f7F13623F1aC5d58b0Afa",
            "l1StandardBridgeAddr": "0x3154Cf16ccdb4C6d922629664174b904d80F2C35",
        },
    },
}


def lookup_well_known(network_name, chain_id):
    """ Addresses for a recognised network, matched by name or chain ID.

    Returns:
        dict or None: L1 addresses plus the L2 predeploys
    """
    for name, entry in WELL_KNOWN_NETWORKS.items():
        if network_name == name or chain_id == entry["chainID"]:
            return {**entry["addresses"], **L2_PREDEPLOYS}
    return None
