import datetime
from typing import Dict, Any, List, Optional, Tuple, Type

import pykube
import requests
from pykube.objects import APIObject as pykube_APIObject, NamespacedAPIObject as pykube_NamespacedAPIObject

from odoo_operator.k8s_operator.constants import API_GROUP, API_VERSION, LABEL_CLUSTER_NAME, \
    INSTANCE_SPEC_HOSTNAME, INSTANCE_SPEC_PARENT_HOSTNAME, INSTANCE_STATUS_CONDITIONS, CONDITION_TYPE, \
    CONDITION_STATUS, CONDITION_REASON, CONDITION_MESSAGE, CONDITION_LAST_TRANSITION_TIME, \
    INSTANCE_CONDITION_TYPE_CREATED, CONDITION_STATUS_UNKNOWN, CONDITION_STATUS_TRUE, \
    CONDITION_REASON_COPY_JOB_CREATED, CONDITION_REASON_COPY_JOB_SUCCEEDED, JOB_STATUS_SUCCEEDED, JOB_STATUS_FAILED


def group_version_plural(cls: Type[pykube_APIObject]) -> Tuple[str, str, str]:
    if '/' in cls.version:
        group, version = cls.version.split('/')
    else:
        # Core API objects like v1/Pod have an empty group
        group, version = '', cls.version
    return group, version, cls.endpoint


def http_status(exception: BaseException) -> Optional[int]:
    # pykube-ng reports API errors with its own exception, raw transport errors come from requests
    if isinstance(exception, pykube.exceptions.HTTPError):
        return exception.code
    if isinstance(exception, requests.HTTPError) and exception.response is not None:
        return exception.response.status_code
    return None


def job_counters(job: pykube.Job) -> Tuple[int, int]:
    """Returns the (succeeded, failed) pod counters of a Job, zero when not reported yet."""
    status = job.obj.get('status') or {}
    return status.get(JOB_STATUS_SUCCEEDED) or 0, status.get(JOB_STATUS_FAILED) or 0


class NamespacedAPIObject(pykube_NamespacedAPIObject):

    @classmethod
    def group_version_plural(cls) -> Tuple[str, str, str]:
        return group_version_plural(cls)

    def __hash__(self):
        return hash((self.namespace, self.name))


class OdooInstance(NamespacedAPIObject):
    """One deployed Odoo environment.

    Root instances have no parent hostname. Derived instances name the hostname of
    the instance whose database they are cloned from in ``spec.parentHostname``.
    """

    version = f'{API_GROUP}/{API_VERSION}'
    endpoint = 'odooinstances'
    kind = 'OdooInstance'

    @property
    def spec(self) -> Dict[str, Any]:
        return self.obj.get('spec') or {}

    @property
    def hostname(self) -> Optional[str]:
        return self.spec.get(INSTANCE_SPEC_HOSTNAME)

    @property
    def parent_hostname(self) -> Optional[str]:
        return self.spec.get(INSTANCE_SPEC_PARENT_HOSTNAME)

    @property
    def cluster_name(self) -> Optional[str]:
        return self.labels.get(LABEL_CLUSTER_NAME)

    @property
    def status_conditions(self) -> List[Dict[str, Any]]:
        return list((self.obj.get('status') or {}).get(INSTANCE_STATUS_CONDITIONS) or [])

    def get_status_condition(self, condition_type: str) -> Optional[Dict[str, Any]]:
        for condition in self.status_conditions:
            if condition.get(CONDITION_TYPE) == condition_type:
                return condition
        return None

    def set_status_condition(self, condition_type: str, status: str, reason: str, message: str = '') -> None:
        conditions = self.status_conditions
        previous = self.get_status_condition(condition_type)

        if previous is not None and previous.get(CONDITION_STATUS) == status:
            transition_time = previous.get(CONDITION_LAST_TRANSITION_TIME)
        else:
            transition_time = datetime.datetime.now(datetime.timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')

        condition = {
            CONDITION_TYPE: condition_type,
            CONDITION_STATUS: status,
            CONDITION_REASON: reason,
            CONDITION_MESSAGE: message,
            CONDITION_LAST_TRANSITION_TIME: transition_time,
        }

        conditions = [c for c in conditions if c.get(CONDITION_TYPE) != condition_type]
        conditions.append(condition)
        conditions.sort(key=lambda c: c.get(CONDITION_TYPE, ''))

        status_section = self.obj.get('status') or {}
        status_section[INSTANCE_STATUS_CONDITIONS] = conditions
        self.obj['status'] = status_section

    def set_status_condition_copy_job_creation_created(self) -> None:
        self.set_status_condition(INSTANCE_CONDITION_TYPE_CREATED, CONDITION_STATUS_UNKNOWN,
                                  CONDITION_REASON_COPY_JOB_CREATED, 'Copy job creation initiated.')

    def set_status_condition_copy_job_success_created(self) -> None:
        self.set_status_condition(INSTANCE_CONDITION_TYPE_CREATED, CONDITION_STATUS_TRUE,
                                  CONDITION_REASON_COPY_JOB_SUCCEEDED, 'Copy job succeeded.')

    def is_copy_succeeded(self) -> bool:
        condition = self.get_status_condition(INSTANCE_CONDITION_TYPE_CREATED)
        return condition is not None and condition.get(CONDITION_STATUS) == CONDITION_STATUS_TRUE
