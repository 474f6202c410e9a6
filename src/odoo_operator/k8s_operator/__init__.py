from typing import Optional, List

from pykube import HTTPClient

from odoo_operator.config import Config


class _OperatorContext:

    def __init__(self):
        self.config: Optional[Config] = None
        self._kubernetes_client: Optional[HTTPClient] = None
        self._store = None
        self._renderer = None
        self._components: Optional[List] = None

    def configure(self, config: Config) -> None:
        self.config = config
        self._renderer = None
        self._components = None

    def _require_config(self) -> Config:
        if self.config is None:
            raise RuntimeError('Operator configuration has not been loaded.')
        return self.config

    @property
    def kubernetes_client(self) -> HTTPClient:
        if self._kubernetes_client is None:
            from odoo_operator.k8s_operator.store import kubernetes_client
            self._kubernetes_client = kubernetes_client()
        return self._kubernetes_client

    @property
    def store(self):
        if self._store is None:
            from odoo_operator.k8s_operator.store import PykubeResourceStore
            self._store = PykubeResourceStore(self.kubernetes_client)
        return self._store

    @store.setter
    def store(self, store) -> None:
        self._store = store

    @property
    def renderer(self):
        if self._renderer is None:
            from odoo_operator.k8s_operator.template import JobTemplateRenderer
            self._renderer = JobTemplateRenderer(self._require_config().get('templateDirectory', types=str))
        return self._renderer

    @renderer.setter
    def renderer(self, renderer) -> None:
        self._renderer = renderer

    @property
    def components(self) -> List:
        if self._components is None:
            from odoo_operator.k8s_operator.components.registry import ComponentRegistry
            self._components = ComponentRegistry.components(self._require_config())
        return self._components


OperatorContext = _OperatorContext()

# These ensure that our components and handlers are registered
from .components import copier
from .crd import instance
