import logging
from typing import Callable, List, NamedTuple, Sequence, Type

from pykube.objects import APIObject

from odoo_operator.config import Config
from odoo_operator.k8s_operator.components.interface import ComponentInterface
from odoo_operator.k8s_operator.context import ComponentContext, ReconcileResult

module_logger = logging.getLogger(__name__)


class _RegistryEntry(NamedTuple):
    order: int
    cls: Type[ComponentInterface]


class ComponentRegistry:

    _registry: List[_RegistryEntry] = []

    @classmethod
    def register(cls, order: int) -> Callable:

        def func(wrapped_class) -> Callable:
            nonlocal order
            cls._registry.append(_RegistryEntry(order=order, cls=wrapped_class))
            return wrapped_class

        return func

    @classmethod
    def _sorted_registry(cls) -> List[_RegistryEntry]:
        return sorted(cls._registry, key=lambda entry: entry.order)

    @classmethod
    def components(cls, config: Config) -> List[ComponentInterface]:
        components = []
        for entry in cls._sorted_registry():
            module_logger.debug(f'Instantiating component {entry.cls.__name__} (order = {entry.order}).')
            components.append(entry.cls.from_config(config))
        return components

    @classmethod
    def watch_types(cls) -> List[Type[APIObject]]:
        watch_types = []
        for entry in cls._sorted_registry():
            for watch_type in entry.cls.watch_types():
                if watch_type not in watch_types:
                    watch_types.append(watch_type)
        return watch_types

    @staticmethod
    def reconcile(context: ComponentContext, components: Sequence[ComponentInterface]) -> ReconcileResult:
        results = []
        for component in components:
            if not component.is_reconcilable(context):
                continue
            context.logger.debug(f'Reconciling component {type(component).__name__}.')
            results.append(component.reconcile(context))

        return ReconcileResult.combine(results)

    @staticmethod
    def reconcile_dependant(context: ComponentContext, obj: APIObject,
                            components: Sequence[ComponentInterface]) -> ReconcileResult:
        for component in components:
            result = component.reconcile_dependant(context, obj)
            if result is not None:
                context.logger.debug(f'{obj.kind} {obj.namespace}/{obj.name} handled by component '
                                     f'{type(component).__name__}.')
                return result
        return ReconcileResult()
