""" Reconcile skeleton shared by every OP Stack controller.

A controller supplies its kind, finalizer, spec model and an ordered list of
steps. The Reconciler fetches the resource, handles deletion and the
finalizer, runs the steps until one does not succeed, and writes the
resulting conditions, phase and info block in a single status update.
"""

import copy
import logging
from enum import Enum

import pydantic
from kubernetes.client.exceptions import ApiException

from opstack_operator.services.apply import build_owner_ref
from opstack_operator.services.kube import update_with_retry
from opstack_operator.utils.conditions import (
    CONDITION_CONFIGURATION_VALID,
    PHASE_ERROR,
    REASON_INVALID_CONFIGURATION,
    set_condition,
)

logger = logging.getLogger(__name__)

# Requeue intervals in seconds
REQUEUE_NOW = 0
REQUEUE_VALIDATION = 300
REQUEUE_DEPENDENCY_NOT_READY = 60
REQUEUE_DEPENDENCY_ERROR = 120
REQUEUE_EXTERNAL = 120
REQUEUE_DISCOVERY = 300
REQUEUE_APPLY = 60
REQUEUE_SUCCESS = 300


class Outcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class StepResult:
    """What one pipeline step concluded."""

    def __init__(self, outcome, requeue_after=None, phase=None, message=""):
        self.outcome = outcome
        self.requeue_after = requeue_after
        self.phase = phase
        self.message = message

    @property
    def ok(self):
        return self.outcome is Outcome.SUCCESS

    @classmethod
    def success(cls):
        return cls(Outcome.SUCCESS)

    @classmethod
    def retryable(cls, requeue_after, message="", phase=PHASE_ERROR):
        return cls(Outcome.RETRYABLE, requeue_after, phase, message)

    @classmethod
    def fatal(cls, requeue_after, message="", phase=PHASE_ERROR):
        return cls(Outcome.FATAL, requeue_after, phase, message)


class Step:
    """ One named pipeline stage.

    Args:
        name: Short name used in logs
        run: Callable taking a ReconcileContext and returning a StepResult
        condition: Condition set False if run raises unexpectedly
        failure_reason: Reason used for that condition
        requeue_after: Requeue interval after an unexpected failure
    """

    def __init__(self, name, run, condition, failure_reason, requeue_after):
        self.name = name
        self.run = run
        self.condition = condition
        self.failure_reason = failure_reason
        self.requeue_after = requeue_after


class ReconcileContext:
    """State threaded through the steps of one reconcile."""

    def __init__(self, kind, body, spec, info_key):
        metadata = body["metadata"]
        status = body.get("status") or {}

        self.kind = kind
        self.body = body
        self.name = metadata["name"]
        self.namespace = metadata["namespace"]
        self.generation = metadata.get("generation")
        self.spec = spec
        self.owner_ref = build_owner_ref(body)
        self.conditions = copy.deepcopy(status.get("conditions") or [])
        self.previous_phase = status.get("phase")
        self.info_key = info_key
        self.info = copy.deepcopy(status.get(info_key) or {}) if info_key else {}
        # Values handed from one step to the next (resolved network, etc.)
        self.values = {}

    def succeed(self, condition, reason, message):
        set_condition(self.conditions, condition, True, reason, message, self.generation)
        return StepResult.success()

    def mark(self, condition, reason, message):
        """Record a True condition without ending the step."""
        set_condition(self.conditions, condition, True, reason, message, self.generation)

    def fail(self, condition, reason, message, requeue_after, phase=PHASE_ERROR, fatal=False):
        set_condition(self.conditions, condition, False, reason, message, self.generation)
        if fatal:
            return StepResult.fatal(requeue_after, message, phase)
        return StepResult.retryable(requeue_after, message, phase)


class ReconcileResult:
    """What the kopf wiring needs to know after a reconcile."""

    def __init__(
        self, requeue_after=None, phase=None, previous_phase=None, message="", deleted=False
    ):
        self.requeue_after = requeue_after
        self.phase = phase
        self.previous_phase = previous_phase
        self.message = message
        self.deleted = deleted

    @property
    def phase_changed(self):
        return self.phase is not None and self.phase != self.previous_phase

    def __repr__(self):
        return (
            f"ReconcileResult(phase={self.phase!r}, requeue_after={self.requeue_after!r}, "
            f"deleted={self.deleted!r})"
        )


class Reconciler:
    """ Drives one controller's pipeline against the cluster.

    The controller must provide: kind, finalizer, spec_model, info_key,
    ready_phase, success_requeue, steps(), and may provide cleanup(ctx)
    and phase(ctx) to override the defaults.
    """

    def __init__(self, kube, controller):
        self.kube = kube
        self.controller = controller

    @property
    def kind(self):
        return self.controller.kind

    def reconcile(self, name, namespace):
        """ Converge one resource toward its spec.

        Never raises for reconcile outcomes; every failure ends up as a
        condition and a requeue interval.
        """
        try:
            body = self.kube.get_resource(self.kind, namespace, name)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"{self.kind} {namespace}/{name} not found, nothing to do")
                return ReconcileResult()
            raise

        metadata = body["metadata"]
        if metadata.get("deletionTimestamp"):
            return self._handle_deletion(body)

        if self.controller.finalizer not in (metadata.get("finalizers") or []):
            self._add_finalizer(namespace, name)
            return ReconcileResult(requeue_after=REQUEUE_NOW)

        try:
            spec = self.controller.spec_model.model_validate(body.get("spec") or {})
        except pydantic.ValidationError as e:
            ctx = ReconcileContext(self.kind, body, None, self.controller.info_key)
            result = ctx.fail(
                CONDITION_CONFIGURATION_VALID,
                REASON_INVALID_CONFIGURATION,
                f"spec does not match the {self.kind} schema: {e.error_count()} error(s)",
                REQUEUE_VALIDATION,
                fatal=True,
            )
            return self._finish(ctx, result)

        ctx = ReconcileContext(self.kind, body, spec, self.controller.info_key)
        return self._finish(ctx, self._run_steps(ctx))

    def _run_steps(self, ctx):
        for step in self.controller.steps():
            try:
                result = step.run(ctx)
            except Exception as e:
                logger.exception(
                    f"{self.kind} {ctx.namespace}/{ctx.name}: step {step.name} failed"
                )
                result = ctx.fail(step.condition, step.failure_reason, str(e), step.requeue_after)

            if not result.ok:
                logger.info(
                    f"{self.kind} {ctx.namespace}/{ctx.name}: step {step.name} "
                    f"{result.outcome.value}: {result.message}"
                )
                return result
        return StepResult.success()

    def _finish(self, ctx, result):
        phase_hook = getattr(self.controller, "phase", None)
        if phase_hook is not None:
            phase = phase_hook(ctx, result)
        elif result.ok:
            phase = self.controller.ready_phase
        else:
            phase = result.phase or PHASE_ERROR

        requeue_after = self.controller.success_requeue if result.ok else result.requeue_after
        self._write_status(ctx, phase)

        return ReconcileResult(
            requeue_after=requeue_after,
            phase=phase,
            previous_phase=ctx.previous_phase,
            message=result.message,
        )

    def _desired_status(self, ctx, phase):
        status = {
            "phase": phase,
            "conditions": ctx.conditions,
            "observedGeneration": ctx.generation,
        }
        if ctx.info_key and ctx.info:
            status[ctx.info_key] = ctx.info
        return status

    def _write_status(self, ctx, phase):
        owned = self._desired_status(ctx, phase)

        def mutate(current):
            status = current.get("status") or {}
            if all(status.get(key) == value for key, value in owned.items()):
                return None
            status.update(owned)
            current["status"] = status
            return current

        update_with_retry(
            read=lambda: self.kube.get_resource(self.kind, ctx.namespace, ctx.name),
            mutate=mutate,
            write=lambda body: self.kube.replace_status(
                self.kind, ctx.namespace, ctx.name, body
            ),
        )

    def _add_finalizer(self, namespace, name):
        finalizer = self.controller.finalizer

        def mutate(current):
            finalizers = current["metadata"].setdefault("finalizers", [])
            if finalizer in finalizers:
                return None
            finalizers.append(finalizer)
            return current

        update_with_retry(
            read=lambda: self.kube.get_resource(self.kind, namespace, name),
            mutate=mutate,
            write=lambda body: self.kube.replace_resource(self.kind, namespace, name, body),
        )
        logger.info(f"Added finalizer to {self.kind} {namespace}/{name}")

    def _handle_deletion(self, body):
        metadata = body["metadata"]
        namespace, name = metadata["namespace"], metadata["name"]
        finalizer = self.controller.finalizer

        if finalizer not in (metadata.get("finalizers") or []):
            return ReconcileResult(deleted=True)

        cleanup = getattr(self.controller, "cleanup", None)
        if cleanup is not None:
            try:
                spec = self.controller.spec_model.model_validate(body.get("spec") or {})
            except pydantic.ValidationError:
                spec = None
            cleanup(ReconcileContext(self.kind, body, spec, self.controller.info_key))

        def mutate(current):
            finalizers = current["metadata"].get("finalizers") or []
            if finalizer not in finalizers:
                return None
            current["metadata"]["finalizers"] = [f for f in finalizers if f != finalizer]
            return current

        try:
            update_with_retry(
                read=lambda: self.kube.get_resource(self.kind, namespace, name),
                mutate=mutate,
                write=lambda current: self.kube.replace_resource(
                    self.kind, namespace, name, current
                ),
            )
        except ApiException as e:
            if e.status != 404:
                raise

        logger.info(f"Removed finalizer from {self.kind} {namespace}/{name}")
        return ReconcileResult(deleted=True)
