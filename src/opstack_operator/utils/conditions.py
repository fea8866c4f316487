""" Status conditions and phases for OP Stack resources.

Conditions are kept as plain dicts (the shape they have in the resource
body) so they can be written back to the status subresource unchanged.
"""

from datetime import datetime, timezone

# Condition types
CONDITION_CONFIGURATION_VALID = "ConfigurationValid"
CONDITION_CONTRACTS_DISCOVERED = "ContractsDiscovered"
CONDITION_L1_CONNECTED = "L1Connected"
CONDITION_L2_CONNECTED = "L2Connected"
CONDITION_CONFIGMAPS_READY = "ConfigMapsReady"
CONDITION_NETWORK_REFERENCE = "NetworkReference"
CONDITION_NETWORK_READY = "NetworkReady"
CONDITION_SEQUENCER_REFERENCE = "SequencerReference"
CONDITION_SEQUENCER_READY = "SequencerReady"
CONDITION_PRIVATE_KEY_LOADED = "PrivateKeyLoaded"
CONDITION_SECRETS_READY = "SecretsReady"
CONDITION_STATEFULSET_READY = "StatefulSetReady"
CONDITION_DEPLOYMENT_READY = "DeploymentReady"
CONDITION_SERVICE_READY = "ServiceReady"

# Reasons
REASON_VALID_CONFIGURATION = "ValidConfiguration"
REASON_INVALID_CONFIGURATION = "InvalidConfiguration"
REASON_ADDRESSES_RESOLVED = "AddressesResolved"
REASON_DISCOVERY_FAILED = "DiscoveryFailed"
REASON_RPC_REACHABLE = "RPCEndpointReachable"
REASON_RPC_UNREACHABLE = "RPCEndpointUnreachable"
REASON_NETWORK_NOT_FOUND = "NetworkNotFound"
REASON_NETWORK_FOUND = "NetworkFound"
REASON_NETWORK_NOT_READY = "NetworkNotReady"
REASON_NETWORK_READY = "NetworkReady"
REASON_SEQUENCER_NOT_FOUND = "SequencerNotFound"
REASON_SEQUENCER_FOUND = "SequencerFound"
REASON_INVALID_SEQUENCER = "InvalidSequencer"
REASON_SEQUENCER_NOT_READY = "SequencerNotReady"
REASON_SEQUENCER_READY = "SequencerReady"
REASON_SECRET_NOT_FOUND = "SecretNotFound"
REASON_SECRET_FOUND = "SecretFound"
REASON_INVALID_PRIVATE_KEY = "InvalidPrivateKey"
REASON_SECRETS_CREATED = "SecretsCreated"
REASON_SECRETS_FAILED = "SecretsFailed"
REASON_CONNECTION_FAILED = "ConnectionFailed"
REASON_CONNECTION_ESTABLISHED = "ConnectionEstablished"
REASON_CONFIGMAPS_RECONCILED = "ConfigMapsReconciled"
REASON_CONFIGMAPS_FAILED = "ConfigMapsReconciliationFailed"
REASON_STATEFULSET_RECONCILED = "StatefulSetReconciled"
REASON_STATEFULSET_FAILED = "StatefulSetReconciliationFailed"
REASON_DEPLOYMENT_RECONCILED = "DeploymentReconciled"
REASON_DEPLOYMENT_FAILED = "DeploymentReconciliationFailed"
REASON_SERVICE_RECONCILED = "ServiceReconciled"
REASON_SERVICE_FAILED = "ServiceReconciliationFailed"
REASON_RECONCILE_ERROR = "ReconcileError"

# Phases
PHASE_PENDING = "Pending"
PHASE_INITIALIZING = "Initializing"
PHASE_RUNNING = "Running"
PHASE_READY = "Ready"
PHASE_ERROR = "Error"
PHASE_STOPPED = "Stopped"

STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"


def now_timestamp():
    """RFC3339 timestamp in the form the API server stores."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _status_string(status):
    if isinstance(status, bool):
        return STATUS_TRUE if status else STATUS_FALSE
    return status


def get_condition(conditions, condition_type):
    """Return the condition dict with the given type, or None."""
    for condition in conditions or []:
        if condition.get("type") == condition_type:
            return condition
    return None


def set_condition(
    conditions, condition_type, status, reason, message, observed_generation=None
):
    """ Add or update a condition in place.

    The transition time only moves when the status value changes, and an
    existing observedGeneration is kept unless a new one is given.

    Args:
        conditions: List of condition dicts, mutated in place
        condition_type: Condition type (unique within the list)
        status: True/False/Unknown (bools are accepted)
        reason: Short CamelCase reason
        message: Human readable message
        observed_generation: Generation the condition was computed for
    """
    status = _status_string(status)
    existing = get_condition(conditions, condition_type)

    if existing is None:
        condition = {
            "type": condition_type,
            "status": status,
            "reason": reason,
            "message": message,
            "lastTransitionTime": now_timestamp(),
        }
        if observed_generation is not None:
            condition["observedGeneration"] = observed_generation
        conditions.append(condition)
        return condition

    if existing.get("status") != status:
        existing["lastTransitionTime"] = now_timestamp()
    existing["status"] = status
    existing["reason"] = reason
    existing["message"] = message
    if observed_generation is not None:
        existing["observedGeneration"] = observed_generation
    return existing


def remove_condition(conditions, condition_type):
    """Drop a condition type if present."""
    conditions[:] = [c for c in conditions if c.get("type") != condition_type]


def is_condition_true(conditions, condition_type):
    condition = get_condition(conditions, condition_type)
    return condition is not None and condition.get("status") == STATUS_TRUE


def derive_phase(conditions, required, ready_phase):
    """ Compute a coarse phase from conditions.

    Args:
        conditions: List of condition dicts
        required: Condition types that must all be True for the ready phase
        ready_phase: Phase reported when every required condition is True
    """
    if all(is_condition_true(conditions, t) for t in required):
        return ready_phase
    if any(c.get("status") == STATUS_FALSE for c in conditions or []):
        return PHASE_ERROR
    return PHASE_PENDING
