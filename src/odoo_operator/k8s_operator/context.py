import logging
import time
from typing import NamedTuple, Optional, Iterable

from odoo_operator.exception import ReconcileCancelled
from odoo_operator.k8s_operator.resources import OdooInstance


class ReconcileResult(NamedTuple):
    requeue: bool = False

    @classmethod
    def combine(cls, results: Iterable['ReconcileResult']) -> 'ReconcileResult':
        return cls(requeue=any(result.requeue for result in results))


class ComponentContext:
    """State borrowed by the components for the duration of one reconciliation pass.

    ``deadline`` is an absolute ``time.monotonic()`` value. Every store call checks it
    before and after talking to the API server and no single request may outlive it.
    """

    def __init__(self,
                 *,
                 instance: OdooInstance = None,
                 store,
                 renderer,
                 logger: logging.Logger = None,
                 deadline: float = None) -> None:
        self.instance = instance
        self.store = store
        self.renderer = renderer
        self.logger = logger if logger else logging.getLogger(__name__)
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, *, timeout: Optional[float], **kwargs) -> 'ComponentContext':
        deadline = time.monotonic() + timeout if timeout is not None else None
        return cls(deadline=deadline, **kwargs)

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, ``None`` without a deadline."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def check_deadline(self) -> None:
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise ReconcileCancelled('Reconciliation exceeded its deadline.')
