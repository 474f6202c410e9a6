import copy
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, List, Type, TypeVar

import pykube
import requests
from pykube import HTTPClient
from pykube.objects import APIObject

from odoo_operator.exception import ReconcileCancelled
from odoo_operator.k8s_operator.constants import PROPAGATION_POLICY_BACKGROUND
from odoo_operator.k8s_operator.context import ComponentContext
from odoo_operator.k8s_operator.utils import format_selector

T = TypeVar('T', bound=APIObject)

module_logger = logging.getLogger(__name__)


class ResourceStore(ABC):
    """Access to the declarative object store the components reconcile against.

    ``get`` raises ``pykube.exceptions.ObjectDoesNotExist`` when the object is absent.
    Every other failure is raised as reported by the API client.
    """

    @abstractmethod
    def list(self, context: ComponentContext, kind: Type[T], *, namespace: str, selector: Dict[str, str]) -> List[T]:
        raise NotImplementedError

    @abstractmethod
    def get(self, context: ComponentContext, kind: Type[T], *, namespace: str, name: str) -> T:
        raise NotImplementedError

    @abstractmethod
    def create(self, context: ComponentContext, obj: APIObject) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, context: ComponentContext, obj: APIObject, *,
               propagation_policy: str = PROPAGATION_POLICY_BACKGROUND) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_status(self, context: ComponentContext, obj: APIObject) -> None:
        raise NotImplementedError


class PykubeResourceStore(ResourceStore):
    """``ResourceStore`` on top of pykube-ng.

    pykube applies ``HTTPClient.timeout`` to every request, so a call is issued through a
    shallow copy of the client whose timeout is cut down to the time left in the pass.
    """

    def __init__(self, api: HTTPClient) -> None:
        self.api = api

    def _client(self, context: ComponentContext) -> HTTPClient:
        remaining = context.remaining()
        if remaining is None or remaining >= self.api.timeout:
            return self.api
        api = copy.copy(self.api)
        api.timeout = remaining
        return api

    @contextmanager
    def _request(self, context: ComponentContext):
        context.check_deadline()
        try:
            yield self._client(context)
        except requests.Timeout as exception:
            remaining = context.remaining()
            if remaining is not None and remaining <= 0:
                raise ReconcileCancelled('Reconciliation exceeded its deadline while waiting for the API server.') \
                    from exception
            raise
        context.check_deadline()

    @staticmethod
    def _bind(api: HTTPClient, obj: APIObject) -> APIObject:
        # Objects handed in may have been built without a client (e.g. rendered from a template)
        return type(obj)(api, obj.obj)

    def list(self, context: ComponentContext, kind: Type[T], *, namespace: str, selector: Dict[str, str]) -> List[T]:
        module_logger.debug(f'Listing {kind.kind} in namespace {namespace} with selector {format_selector(selector)}.')
        with self._request(context) as api:
            return list(kind.objects(api).filter(namespace=namespace, selector=selector))

    def get(self, context: ComponentContext, kind: Type[T], *, namespace: str, name: str) -> T:
        module_logger.debug(f'Getting {kind.kind} {namespace}/{name}.')
        with self._request(context) as api:
            return kind.objects(api).filter(namespace=namespace).get_by_name(name)

    def create(self, context: ComponentContext, obj: APIObject) -> None:
        module_logger.debug(f'Creating {obj.kind} {obj.namespace}/{obj.name}.')
        with self._request(context) as api:
            bound_obj = self._bind(api, obj)
            bound_obj.create()
        obj.set_obj(bound_obj.obj)

    def delete(self, context: ComponentContext, obj: APIObject, *,
               propagation_policy: str = PROPAGATION_POLICY_BACKGROUND) -> None:
        module_logger.debug(f'Deleting {obj.kind} {obj.namespace}/{obj.name} (propagation policy {propagation_policy}).')
        with self._request(context) as api:
            self._bind(api, obj).delete(propagation_policy=propagation_policy)

    def update_status(self, context: ComponentContext, obj: APIObject) -> None:
        module_logger.debug(f'Updating status of {obj.kind} {obj.namespace}/{obj.name}.')
        with self._request(context) as api:
            bound_obj = self._bind(api, obj)
            bound_obj.patch({'status': obj.obj.get('status', {})}, subresource='status')
        obj.set_obj(bound_obj.obj)


def kubernetes_client() -> HTTPClient:
    return pykube.HTTPClient(pykube.KubeConfig.from_env())
