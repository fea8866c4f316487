""" kopf handlers that drive the controllers.

Create, update, resume and delete events all call the same reconcile. A
timer per resource re-runs it once the requeue interval the controller
asked for has elapsed, and changes to owned workloads bring the owner's
next reconcile forward.
"""

import logging

import kopf

from opstack_operator.handlers.requeue import get_requeue_tick
from opstack_operator.models.common import API_GROUP, API_VERSION
from opstack_operator.resources.labels import MANAGED_BY
from opstack_operator.services.kube import plural_for
from opstack_operator.utils.conditions import PHASE_ERROR, PHASE_PENDING

logger = logging.getLogger(__name__)

ERROR_REQUEUE = 60


def run_reconcile(controller, tracker, gate, body, name, namespace):
    """ Reconcile one resource under its gate and record the requeue.

    Args:
        controller: Controller exposing kind and reconcile(name, namespace)
        tracker: RequeueTracker
        gate: ReconcileGate
        body: Resource body as delivered by kopf (used for events)
        name: Resource name
        namespace: Resource namespace
    """
    key = (controller.kind, namespace, name)
    lock = gate.lock_for(key)
    if not lock.acquire(blocking=False):
        logger.debug(f"{controller.kind} {namespace}/{name} already reconciling, deferring")
        tracker.schedule(key, 0)
        return None

    try:
        result = controller.reconcile(name, namespace)
    except Exception as e:
        logger.exception(f"Reconcile of {controller.kind} {namespace}/{name} failed")
        kopf.exception(body, reason="ReconcileError", message=str(e))
        tracker.schedule(key, ERROR_REQUEUE)
        return None
    finally:
        lock.release()

    if result.deleted:
        tracker.forget(key)
        gate.discard(key)
        kopf.info(body, reason="Deleted", message=f"{controller.kind} {name} cleaned up")
        return result

    tracker.schedule(key, result.requeue_after)
    if result.phase_changed:
        message = f"{controller.kind} {name} is {result.phase}"
        if result.phase in (PHASE_ERROR, PHASE_PENDING) and result.message:
            kopf.warn(body, reason=result.phase, message=f"{message}: {result.message}")
        else:
            kopf.info(body, reason=result.phase, message=message)

    logger.debug(f"Reconciled {controller.kind} {namespace}/{name}: {result}")
    return result


def register_controller(controller, tracker, gate):
    """ Register kopf handlers for one controller's kind.
    """
    plural = plural_for(controller.kind)
    resource = (API_GROUP, API_VERSION, plural)

    def reconcile_handler(body, name, namespace, **kwargs):
        run_reconcile(controller, tracker, gate, body, name, namespace)

    def requeue_timer(body, name, namespace, **kwargs):
        if tracker.is_due((controller.kind, namespace, name)):
            run_reconcile(controller, tracker, gate, body, name, namespace)

    kopf.on.create(*resource, id=f"{plural}-create")(reconcile_handler)
    kopf.on.update(*resource, id=f"{plural}-update")(reconcile_handler)
    kopf.on.resume(*resource, id=f"{plural}-resume")(reconcile_handler)
    kopf.on.delete(*resource, id=f"{plural}-delete", optional=True)(reconcile_handler)
    kopf.timer(*resource, id=f"{plural}-requeue", interval=get_requeue_tick())(requeue_timer)

    logger.info(f"Registered handlers for {controller.kind} ({plural})")


def register_child_watch(group, version, plural, tracker):
    """ Bring the owner's reconcile forward when a managed workload changes.
    """

    def child_changed(meta, **kwargs):
        for owner in meta.get("ownerReferences") or []:
            if owner.get("controller") and owner.get("apiVersion") == f"{API_GROUP}/{API_VERSION}":
                tracker.schedule((owner["kind"], meta["namespace"], owner["name"]), 0)

    kopf.on.update(
        group,
        version,
        plural,
        id=f"{plural}-owner-requeue",
        labels={"app.kubernetes.io/managed-by": MANAGED_BY},
    )(child_changed)
    logger.info(f"Watching {plural} for owner requeues")
