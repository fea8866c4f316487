"""Exceptions raised by the reconcile machinery."""


class OperatorError(Exception):
    """Base class for all operator errors."""


class ValidationError(OperatorError):
    """The spec violates a static rule and needs a user edit."""


class DependencyNotFound(OperatorError):
    """A referenced resource does not exist."""

    def __init__(self, kind, namespace, name):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} {namespace}/{name} not found")


class WrongKind(OperatorError):
    """A referenced resource exists but cannot play the requested role."""


class DependencyNotReady(OperatorError):
    """A referenced resource exists but has not reached its ready phase."""

    def __init__(self, kind, namespace, name, phase):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.phase = phase
        super().__init__(f"{kind} {namespace}/{name} is not ready (phase: {phase or 'unset'})")


class ExternalUnavailable(OperatorError):
    """An RPC endpoint or discovery source could not be used."""


class ConflictError(OperatorError):
    """Optimistic concurrency retries were exhausted."""


class SecretInputError(OperatorError):
    """An externally provided secret or config map input is missing."""

    def __init__(self, kind, namespace, name, key=None):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.key = key
        if key is None:
            message = f"{kind} {namespace}/{name} not found"
        else:
            message = f"{kind} {namespace}/{name} has no key '{key}'"
        super().__init__(message)
