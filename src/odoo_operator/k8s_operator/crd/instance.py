import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Optional, Tuple

import kopf
import pykube
from pykube.objects import APIObject

from odoo_operator.exception import ReconcileError
from odoo_operator.k8s_operator import OperatorContext
from odoo_operator.k8s_operator.components.registry import ComponentRegistry
from odoo_operator.k8s_operator.constants import LABEL_PARENT_KIND, LABEL_PARENT_NAME, LABEL_PARENT_NAMESPACE
from odoo_operator.k8s_operator.context import ComponentContext, ReconcileResult
from odoo_operator.k8s_operator.resources import OdooInstance, group_version_plural


class _InstanceLocks:
    """Serializes reconciliation passes per instance.

    Events of an instance and of its dependant objects are processed by different kopf
    workers, so kopf's own per-object serialization is not enough. An entry lives only
    as long as some pass holds or waits for it.
    """

    class _Entry:

        def __init__(self) -> None:
            self.lock = threading.Lock()
            self.users = 0

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, str], '_InstanceLocks._Entry'] = {}

    @contextmanager
    def hold(self, namespace: str, name: str):
        key = (namespace, name)
        with self._lock:
            entry = self._entries.setdefault(key, self._Entry())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


instance_locks = _InstanceLocks()


def _raise_for_result(result: ReconcileResult, requeue_delay: float) -> None:
    if result.requeue:
        raise kopf.TemporaryError('Requeue requested.', delay=requeue_delay)


def reconcile_instance(*, namespace: str, name: str, logger, dependant: Optional[APIObject] = None) -> None:
    if OperatorContext.config is None:
        raise RuntimeError('Operator configuration has not been loaded.')

    config = OperatorContext.config
    requeue_delay = config.get('requeueDelay', types=int)

    with instance_locks.hold(namespace, name):
        context = ComponentContext.with_timeout(timeout=config.get('reconcileTimeout', types=int),
                                                store=OperatorContext.store,
                                                renderer=OperatorContext.renderer,
                                                logger=logger)
        components = OperatorContext.components

        try:
            # Level triggered: always work on what is in the store now, not on what the event carried.
            try:
                context.instance = context.store.get(context, OdooInstance, namespace=namespace, name=name)
            except pykube.exceptions.ObjectDoesNotExist:
                logger.debug(f'{OdooInstance.kind} {namespace}/{name} has gone away, skipping reconciliation.')
                return

            results = [ComponentRegistry.reconcile(context, components)]
            if dependant is not None:
                results.append(ComponentRegistry.reconcile_dependant(context, dependant, components))
            result = ReconcileResult.combine(results)
        except ReconcileError as exception:
            if exception.requeue:
                raise kopf.TemporaryError(str(exception), delay=requeue_delay) from exception
            raise kopf.PermanentError(str(exception)) from exception

    _raise_for_result(result, requeue_delay)


@kopf.on.startup()
def odoo_operator_startup(settings: kopf.OperatorSettings, logger, **_) -> None:
    if OperatorContext.config is None:
        raise RuntimeError('Operator configuration has not been loaded.')

    # Only warnings and errors are worth a Kubernetes event
    settings.posting.level = logging.WARNING
    logger.info(f'Registered components: {", ".join(type(c).__name__ for c in OperatorContext.components)}.')


@kopf.on.resume(*OdooInstance.group_version_plural())
@kopf.on.create(*OdooInstance.group_version_plural())
@kopf.on.update(*OdooInstance.group_version_plural())
def odoo_instance_reconcile(name: str, namespace: str, logger, **_) -> Optional[Dict[str, Any]]:
    reconcile_instance(namespace=namespace, name=name, logger=logger)


def odoo_instance_dependant_changed(name: str, namespace: str, meta: Dict[str, Any], body: Dict[str, Any], logger,
                                    **_) -> Optional[Dict[str, Any]]:
    labels = meta.get('labels', {})
    if LABEL_PARENT_NAME not in labels:
        logger.warning(f'{body["kind"]} {namespace}/{name} is one of ours but has no parent name label, ignoring it.')
        return

    parent_name = labels[LABEL_PARENT_NAME]
    parent_namespace = labels.get(LABEL_PARENT_NAMESPACE, namespace)

    for watch_type in ComponentRegistry.watch_types():
        if watch_type.kind == body['kind']:
            dependant = watch_type(None, copy.deepcopy(dict(body)))
            break
    else:
        return

    reconcile_instance(namespace=parent_namespace, name=parent_name, logger=logger, dependant=dependant)


# Dependant objects trigger a reconciliation of their owning instance whenever their status changes
for _watch_type in ComponentRegistry.watch_types():
    kopf.on.field(*group_version_plural(_watch_type), field='status',
                  labels={LABEL_PARENT_KIND: OdooInstance.kind})(odoo_instance_dependant_changed)
