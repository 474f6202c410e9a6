from typing import Any, Dict, List, Optional, Type

import kopf
import pykube
import requests
from pykube.objects import APIObject

from odoo_operator.config import Config
from odoo_operator.exception import ConflictingParent, ParentNotFound, TemplateError
from odoo_operator.k8s_operator.components.interface import ComponentInterface
from odoo_operator.k8s_operator.components.registry import ComponentRegistry
from odoo_operator.k8s_operator.constants import LABEL_CLUSTER_NAME, LABEL_INSTANCE_HOSTNAME, LABEL_PARENT_KIND, \
    LABEL_PARENT_NAME, LABEL_PARENT_NAMESPACE, LABEL_COMPONENT, INSTANCE_CONDITION_TYPE_CREATED, \
    PROPAGATION_POLICY_BACKGROUND
from odoo_operator.k8s_operator.context import ComponentContext, ReconcileResult
from odoo_operator.k8s_operator.resources import OdooInstance, http_status, job_counters

COPIER_COMPONENT = 'copier'

# Keys of the extra data map handed to the job template
TEMPLATE_EXTRA_FROM_DATABASE = 'FromDatabase'
TEMPLATE_EXTRA_CLUSTER_NAME = 'ClusterName'

_API_ERRORS = (pykube.exceptions.KubernetesError, requests.RequestException)


@ComponentRegistry.register(order=20)
class Copier(ComponentInterface):
    """Clones the database of the parent instance into a freshly created child instance.

    The copy is done by a one-shot Job rendered from ``template_path``. The Job and its
    counters are the only record of the copy's progress. A succeeded Job is deleted
    after the instance's ``Created`` condition has been set, a failed Job is left in
    place for inspection.
    """

    def __init__(self, *, template_path: str) -> None:
        self.template_path = template_path

    @classmethod
    def from_config(cls, config: Config) -> 'Copier':
        return cls(template_path=config.get('copier.jobTemplate', types=str))

    @classmethod
    def watch_types(cls) -> List[Type[APIObject]]:
        return [pykube.Job]

    def is_reconcilable(self, context: ComponentContext) -> bool:
        instance = context.instance
        if instance.parent_hostname is None:
            # Root instances are the seed of a cluster, there is nothing to copy from
            return False
        if instance.get_status_condition(INSTANCE_CONDITION_TYPE_CREATED) is not None:
            # The instance is already created (or creating)
            return False
        return True

    def _find_parent(self, context: ComponentContext) -> OdooInstance:
        instance = context.instance
        selector = {
            LABEL_CLUSTER_NAME: instance.cluster_name or '',
            LABEL_INSTANCE_HOSTNAME: instance.parent_hostname,
        }
        parents = context.store.list(context, OdooInstance, namespace=instance.namespace, selector=selector)

        if len(parents) > 1:
            raise ConflictingParent(f'More than one parent instance with hostname {instance.parent_hostname} found: '
                                    f'{", ".join(parent.name for parent in parents)}.')
        elif len(parents) < 1:
            context.logger.info(f'Did not find parent OdooInstance with hostname {instance.parent_hostname}.')
            raise ParentNotFound(f'No parent instance with hostname {instance.parent_hostname} found.')

        return parents[0]

    def _template_data(self, context: ComponentContext, parent: OdooInstance) -> Dict[str, Any]:
        instance = context.instance
        return {
            'instance': instance.obj,
            'extra': {
                TEMPLATE_EXTRA_FROM_DATABASE: parent.hostname or parent.labels.get(LABEL_INSTANCE_HOSTNAME),
                TEMPLATE_EXTRA_CLUSTER_NAME: instance.cluster_name or '',
            },
        }

    def _render_job(self, context: ComponentContext, parent: OdooInstance) -> pykube.Job:
        instance = context.instance
        job = context.renderer.render(self.template_path, self._template_data(context, parent))

        metadata = job.obj['metadata']
        metadata.setdefault('namespace', instance.namespace)
        if metadata['namespace'] != instance.namespace:
            # Owner references cannot cross namespaces
            raise TemplateError(f'Template {self.template_path} placed the copier job into namespace '
                                f'{metadata["namespace"]}, expected {instance.namespace}.')

        # Label it so we can filter incoming events correctly
        labels = metadata.get('labels') or {}
        labels.update({
            LABEL_PARENT_KIND: instance.kind,
            LABEL_PARENT_NAME: instance.name,
            LABEL_PARENT_NAMESPACE: instance.namespace,
            LABEL_COMPONENT: COPIER_COMPONENT,
        })
        metadata['labels'] = labels

        return job

    def render_job(self, context: ComponentContext) -> pykube.Job:
        """Renders the copier job for ``context.instance`` without touching the cluster beyond the parent lookup."""
        return self._render_job(context, self._find_parent(context))

    def _create_job(self, context: ComponentContext, job: pykube.Job) -> ReconcileResult:
        instance = context.instance
        context.logger.info(f'Creating copier job {job.namespace}/{job.name}.')

        kopf.append_owner_reference(job.obj, owner=instance.obj)
        try:
            context.store.create(context, job)
        except _API_ERRORS as exception:
            if http_status(exception) == 409:
                # Someone else started a copier job between the lookup and here, look again on the next pass.
                context.logger.info(f'Copier job {job.namespace}/{job.name} already exists, requeuing.')
                return ReconcileResult(requeue=True)
            raise

        # The job exists now, so a lost status update is healed by the next pass finding it running.
        instance.set_status_condition_copy_job_creation_created()
        context.store.update_status(context, instance)
        return ReconcileResult()

    @staticmethod
    def _delete_job(context: ComponentContext, job: pykube.Job) -> ReconcileResult:
        try:
            context.store.delete(context, job, propagation_policy=PROPAGATION_POLICY_BACKGROUND)
        except pykube.exceptions.ObjectDoesNotExist:
            pass
        except _API_ERRORS as exception:
            if http_status(exception) != 404:
                context.logger.warning(f'Deleting copier job {job.namespace}/{job.name} failed, requeuing: '
                                       f'{exception}')
                return ReconcileResult(requeue=True)
        return ReconcileResult()

    def _finish_job(self, context: ComponentContext, job: pykube.Job) -> ReconcileResult:
        instance = context.instance
        context.logger.info('Copier job succeeded, setting condition "Created" to "True".')

        instance.set_status_condition_copy_job_success_created()
        context.store.update_status(context, instance)

        context.logger.debug(f'Deleting copier job {job.namespace}/{job.name}.')
        return self._delete_job(context, job)

    def reconcile(self, context: ComponentContext) -> ReconcileResult:
        instance = context.instance
        if instance.is_copy_succeeded():
            context.logger.debug('Copy already succeeded, nothing to do.')
            return ReconcileResult()

        job = self.render_job(context)

        try:
            existing = context.store.get(context, pykube.Job, namespace=job.namespace, name=job.name)
        except pykube.exceptions.ObjectDoesNotExist:
            return self._create_job(context, job)

        # If we get this far, the job previously started at some point and might be done.
        succeeded, failed = job_counters(existing)
        if succeeded > 0:
            return self._finish_job(context, existing)

        if failed > 0:
            context.logger.error(f'Copier job failed, leaving job {existing.namespace}/{existing.name} '
                                 'for debugging purposes.')
            return ReconcileResult()

        if instance.get_status_condition(INSTANCE_CONDITION_TYPE_CREATED) is None:
            # The job was created by an earlier pass whose status update got lost
            instance.set_status_condition_copy_job_creation_created()
            context.store.update_status(context, instance)

        # Job is still running, will get reconciled when it finishes.
        return ReconcileResult()

    def reconcile_dependant(self, context: ComponentContext, obj: APIObject) -> Optional[ReconcileResult]:
        # The instance stops being reconcilable once the copy is initiated, so completion is
        # picked up from the status events of the copier job.
        if not isinstance(obj, pykube.Job) or obj.labels.get(LABEL_COMPONENT) != COPIER_COMPONENT:
            return None
        instance = context.instance
        if instance.parent_hostname is None:
            return None

        try:
            job = context.store.get(context, pykube.Job, namespace=obj.namespace, name=obj.name)
        except pykube.exceptions.ObjectDoesNotExist:
            return ReconcileResult()

        succeeded, failed = job_counters(job)
        if succeeded > 0:
            if instance.is_copy_succeeded():
                # Left behind by a pass whose delete failed
                context.logger.info(f'Deleting leftover copier job {job.namespace}/{job.name}.')
                return self._delete_job(context, job)
            return self._finish_job(context, job)

        if failed > 0:
            context.logger.error(f'Copier job failed, leaving job {job.namespace}/{job.name} '
                                 'for debugging purposes.')
        return ReconcileResult()
