""" OptimismNetwork controller.

A network owns no workloads. It validates its configuration, checks that
the L1 (and optional L2) endpoints serve the expected chains, discovers the
L1 contract addresses and publishes the rollup and genesis ConfigMaps the
nodes mount.
"""

import logging

from opstack_operator.controllers.base import (
    REQUEUE_DISCOVERY,
    REQUEUE_EXTERNAL,
    REQUEUE_VALIDATION,
    Reconciler,
    Step,
    StepResult,
)
from opstack_operator.controllers.steps import apply_desired, rpc_timeout
from opstack_operator.discovery import DiscoveryMethod, cache_key
from opstack_operator.errors import ExternalUnavailable, SecretInputError
from opstack_operator.models.network import OptimismNetworkSpec
from opstack_operator.resources.configmap import (
    build_genesis_config_map,
    build_rollup_config_map,
    genesis_document,
    rollup_config_document,
)
from opstack_operator.services.credentials import load_config_map_value, load_secret_value
from opstack_operator.services.resolver import KIND_NETWORK
from opstack_operator.services.rpc import check_chain_id
from opstack_operator.utils.conditions import (
    CONDITION_CONFIGMAPS_READY,
    CONDITION_CONFIGURATION_VALID,
    CONDITION_CONTRACTS_DISCOVERED,
    CONDITION_L1_CONNECTED,
    CONDITION_L2_CONNECTED,
    PHASE_READY,
    REASON_ADDRESSES_RESOLVED,
    REASON_CONFIGMAPS_FAILED,
    REASON_CONFIGMAPS_RECONCILED,
    REASON_DISCOVERY_FAILED,
    REASON_INVALID_CONFIGURATION,
    REASON_RPC_REACHABLE,
    REASON_RPC_UNREACHABLE,
    REASON_VALID_CONFIGURATION,
    derive_phase,
    now_timestamp,
    remove_condition,
)
from opstack_operator.utils.units import parse_duration

logger = logging.getLogger(__name__)

FINALIZER = "optimismnetwork.optimism.io/finalizer"
REQUEUE_READY = 600

REQUIRED_CONDITIONS = (
    CONDITION_CONFIGURATION_VALID,
    CONDITION_L1_CONNECTED,
    CONDITION_CONTRACTS_DISCOVERED,
)


def validate_network_spec(spec):
    """ Static checks on an OptimismNetwork spec.

    Returns:
        list: Problems found, empty when the spec is valid
    """
    problems = []
    if spec.chainID <= 0:
        problems.append("chainID must be set")
    if spec.l1ChainID <= 0:
        problems.append("l1ChainID must be set")
    if not spec.l1RpcUrl:
        problems.append("l1RpcUrl must be set")
    if spec.chainID > 0 and spec.chainID == spec.l1ChainID:
        problems.append("chainID and l1ChainID must differ")

    durations = [("l1RpcTimeout", spec.l1RpcTimeout)]
    addresses = spec.contractAddresses
    if addresses is not None:
        durations.append(("contractAddresses.cacheTimeout", addresses.cacheTimeout))
        methods = {method.value for method in DiscoveryMethod}
        if addresses.discoveryMethod not in methods:
            problems.append(f"unknown discovery method {addresses.discoveryMethod!r}")

    for field, value in durations:
        try:
            parse_duration(value)
        except ValueError:
            problems.append(f"{field} is not a valid duration: {value!r}")

    return problems


def load_config_source(kube, namespace, source, key):
    """ Document text held by a ConfigSource, or None when it is generated
    or unset.

    Raises:
        SecretInputError: the referenced ConfigMap or Secret is missing
    """
    if source is None:
        return None
    if source.inline:
        return source.inline
    if source.configMapRef is not None and source.configMapRef.name:
        ref = source.configMapRef
        return load_config_map_value(kube, namespace, ref.name, ref.key or key)
    if source.secretRef is not None and source.secretRef.name:
        ref = source.secretRef
        return load_secret_value(kube, namespace, ref.name, ref.key or key)
    return None


class NetworkController:
    """Reconciles OptimismNetwork resources."""

    kind = KIND_NETWORK
    finalizer = FINALIZER
    spec_model = OptimismNetworkSpec
    info_key = "networkInfo"
    ready_phase = PHASE_READY
    success_requeue = REQUEUE_READY

    def __init__(self, kube, rpc, discovery):
        self.kube = kube
        self.rpc = rpc
        self.discovery = discovery
        self.reconciler = Reconciler(kube, self)

    def reconcile(self, name, namespace):
        return self.reconciler.reconcile(name, namespace)

    def steps(self):
        return [
            Step(
                "validate",
                self.validate,
                CONDITION_CONFIGURATION_VALID,
                REASON_INVALID_CONFIGURATION,
                REQUEUE_VALIDATION,
            ),
            Step(
                "l1",
                self.check_l1,
                CONDITION_L1_CONNECTED,
                REASON_RPC_UNREACHABLE,
                REQUEUE_EXTERNAL,
            ),
            Step(
                "l2",
                self.check_l2,
                CONDITION_L2_CONNECTED,
                REASON_RPC_UNREACHABLE,
                REQUEUE_EXTERNAL,
            ),
            Step(
                "discovery",
                self.discover,
                CONDITION_CONTRACTS_DISCOVERED,
                REASON_DISCOVERY_FAILED,
                REQUEUE_DISCOVERY,
            ),
            Step(
                "configmaps",
                self.publish_config_maps,
                CONDITION_CONFIGMAPS_READY,
                REASON_CONFIGMAPS_FAILED,
                REQUEUE_EXTERNAL,
            ),
        ]

    def phase(self, ctx, result):
        return derive_phase(ctx.conditions, REQUIRED_CONDITIONS, PHASE_READY)

    def cleanup(self, ctx):
        if ctx.spec is not None:
            self.discovery.invalidate(cache_key(ctx.spec))
        logger.info(f"Cleaned up OptimismNetwork {ctx.namespace}/{ctx.name}")

    def validate(self, ctx):
        spec = ctx.spec
        problems = validate_network_spec(spec)

        documents = {}
        for field, source, key in (
            ("rollupConfig", spec.rollupConfig, "rollup.json"),
            ("l2Genesis", spec.l2Genesis, "genesis.json"),
        ):
            try:
                documents[field] = load_config_source(self.kube, ctx.namespace, source, key)
            except SecretInputError as e:
                problems.append(f"{field}: {e}")

        if problems:
            return ctx.fail(
                CONDITION_CONFIGURATION_VALID,
                REASON_INVALID_CONFIGURATION,
                "; ".join(problems),
                REQUEUE_VALIDATION,
                fatal=True,
            )

        ctx.values["documents"] = documents
        return ctx.succeed(
            CONDITION_CONFIGURATION_VALID,
            REASON_VALID_CONFIGURATION,
            "OptimismNetwork configuration is valid",
        )

    def check_l1(self, ctx):
        spec = ctx.spec
        try:
            check_chain_id(self.rpc, spec.l1RpcUrl, spec.l1ChainID, timeout=rpc_timeout(spec))
        except ExternalUnavailable as e:
            return ctx.fail(
                CONDITION_L1_CONNECTED, REASON_RPC_UNREACHABLE, str(e), REQUEUE_EXTERNAL
            )
        return ctx.succeed(
            CONDITION_L1_CONNECTED, REASON_RPC_REACHABLE, "Connected to L1 RPC endpoint"
        )

    def check_l2(self, ctx):
        spec = ctx.spec
        if not spec.l2RpcUrl:
            remove_condition(ctx.conditions, CONDITION_L2_CONNECTED)
            return StepResult.success()

        try:
            check_chain_id(self.rpc, spec.l2RpcUrl, spec.chainID, timeout=rpc_timeout(spec))
        except ExternalUnavailable as e:
            return ctx.fail(
                CONDITION_L2_CONNECTED, REASON_RPC_UNREACHABLE, str(e), REQUEUE_EXTERNAL
            )
        return ctx.succeed(
            CONDITION_L2_CONNECTED, REASON_RPC_REACHABLE, "Connected to L2 RPC endpoint"
        )

    def discover(self, ctx):
        try:
            address_set = self.discovery.resolve(ctx.spec, timeout=rpc_timeout(ctx.spec))
        except (ExternalUnavailable, ValueError) as e:
            return ctx.fail(
                CONDITION_CONTRACTS_DISCOVERED, REASON_DISCOVERY_FAILED, str(e), REQUEUE_DISCOVERY
            )

        discovered = address_set.to_status()
        if ctx.info.get("discoveredContracts") != discovered:
            ctx.info["discoveredContracts"] = discovered
            ctx.info["lastUpdated"] = now_timestamp()
        ctx.values["contracts"] = address_set.addresses

        return ctx.succeed(
            CONDITION_CONTRACTS_DISCOVERED,
            REASON_ADDRESSES_RESOLVED,
            f"Contract addresses resolved via {address_set.discovery_method}",
        )

    def publish_config_maps(self, ctx):
        spec = ctx.spec
        documents = ctx.values.get("documents") or {}
        desired = []

        rollup = documents.get("rollupConfig")
        if rollup is None and spec.rollupConfig is not None and spec.rollupConfig.autoDiscover:
            rollup = rollup_config_document(spec, ctx.values.get("contracts"))
        if rollup is not None:
            desired.append(build_rollup_config_map(ctx.name, ctx.namespace, spec, rollup))

        genesis = documents.get("l2Genesis")
        if genesis is None and spec.l2Genesis is not None and spec.l2Genesis.autoDiscover:
            genesis = genesis_document(spec)
        if genesis is not None:
            desired.append(build_genesis_config_map(ctx.name, ctx.namespace, spec, genesis))

        for config_map in desired:
            result = apply_desired(
                ctx,
                self.kube,
                config_map,
                CONDITION_CONFIGMAPS_READY,
                REASON_CONFIGMAPS_RECONCILED,
                REASON_CONFIGMAPS_FAILED,
            )
            if not result.ok:
                return result

        return ctx.succeed(
            CONDITION_CONFIGMAPS_READY,
            REASON_CONFIGMAPS_RECONCILED,
            f"{len(desired)} configuration ConfigMap(s) reconciled",
        )
