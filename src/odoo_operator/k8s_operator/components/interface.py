from abc import ABC, abstractmethod
from typing import List, Optional, Type

from pykube.objects import APIObject

from odoo_operator.config import Config
from odoo_operator.k8s_operator.context import ComponentContext, ReconcileResult


class ComponentInterface(ABC):

    @classmethod
    @abstractmethod
    def from_config(cls, config: Config) -> 'ComponentInterface':
        raise NotImplementedError

    @classmethod
    def watch_types(cls) -> List[Type[APIObject]]:
        """Kinds of dependant objects whose changes must trigger a reconciliation of their owner"""
        return []

    @abstractmethod
    def is_reconcilable(self, context: ComponentContext) -> bool:
        raise NotImplementedError

    @abstractmethod
    def reconcile(self, context: ComponentContext) -> ReconcileResult:
        raise NotImplementedError

    def reconcile_dependant(self, context: ComponentContext, obj: APIObject) -> Optional[ReconcileResult]:
        """Handles a change of a dependant object, returns ``None`` when the object isn't ours"""
        return None
