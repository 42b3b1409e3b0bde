"""
Compensation chain: ordered, best-effort undo of an order's side effects.

Each step reverses one forward step and is skipped when that forward step
never happened. A failing step is logged and recorded; the remaining steps
still run. The chain never changes the order.

A forward call still in flight when the order is canceled answers after
the chain ran. ``reverse`` runs just the steps undoing that port, against
the order as the late answer would have left it.

Example:
    >>> chain = CompensationChain.default(services, step_timeout=10.0)
    >>> report = await chain.run(order)
    >>> report.failed
    ()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from ordersaga.adapters.ports import SagaServices
from ordersaga.observability import ATTR_COMPENSATION_STEP, ATTR_ORDER_NO, Tracer, create_tracer
from ordersaga.state import OrderState

logger = logging.getLogger(__name__)

StepAction = Callable[[OrderState], Awaitable[Any]]
StepPredicate = Callable[[OrderState], bool]


def _always(order: OrderState) -> bool:
    return True


@dataclass(frozen=True)
class CompensationStep:
    """
    One reversal.

    ``applies`` tells whether its forward step happened; ``reverses`` names
    the adapter port of that forward step.
    """

    name: str
    action: StepAction
    applies: StepPredicate = _always
    reverses: str | None = None


class StepStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StepOutcome:
    step: str
    status: StepStatus
    result: Any = None
    error: BaseException | None = None


@dataclass(frozen=True)
class CompensationReport:
    """Per-step outcome of one compensation run."""

    order_no: UUID
    outcomes: tuple[StepOutcome, ...]
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def steps(self) -> tuple[str, ...]:
        return tuple(outcome.step for outcome in self.outcomes)

    @property
    def completed(self) -> tuple[str, ...]:
        return self._with_status(StepStatus.COMPLETED)

    @property
    def skipped(self) -> tuple[str, ...]:
        return self._with_status(StepStatus.SKIPPED)

    @property
    def failed(self) -> tuple[str, ...]:
        return self._with_status(StepStatus.FAILED)

    @property
    def succeeded(self) -> bool:
        """True if no step failed."""
        return not self.failed

    def outcome(self, step: str) -> StepOutcome:
        for outcome in self.outcomes:
            if outcome.step == step:
                return outcome
        raise KeyError(step)

    def merge(self, later: "CompensationReport") -> "CompensationReport":
        """
        Fold a later run into this report.

        A later outcome replaces the earlier one for the same step unless
        it is a skip; steps new to this report are appended.
        """
        outcomes = {o.step: o for o in self.outcomes}
        for outcome in later.outcomes:
            if outcome.step not in outcomes or outcome.status != StepStatus.SKIPPED:
                outcomes[outcome.step] = outcome
        return CompensationReport(self.order_no, tuple(outcomes.values()), later.finished_at)

    def _with_status(self, status: StepStatus) -> tuple[str, ...]:
        return tuple(o.step for o in self.outcomes if o.status == status)


class CompensationChain:
    """
    Ordered list of compensation steps.

    Steps run one after the other in registration order, each bounded by
    ``step_timeout`` seconds (None = no limit).
    """

    def __init__(
        self,
        steps: Iterable[CompensationStep] = (),
        *,
        step_timeout: float | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._steps: list[CompensationStep] = list(steps)
        self._step_timeout = step_timeout
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @classmethod
    def default(
        cls,
        services: SagaServices,
        *,
        step_timeout: float | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> "CompensationChain":
        """
        The standard chain: cancel payment, return shipment, cancel
        delivery, return inventory.
        """
        payment, shipping, inventory = services.payment, services.shipping, services.inventory

        async def cancel_payment(order: OrderState) -> Any:
            assert order.payment_authorization is not None
            return await payment.cancel_payment(order.order_no, order.payment_authorization)

        async def return_shipment(order: OrderState) -> Any:
            assert order.shipment_id is not None
            return await shipping.return_shipment(order.order_no, order.shipment_id)

        async def cancel_delivery(order: OrderState) -> Any:
            assert order.shipment_id is not None
            return await shipping.cancel_delivery(order.order_no, order.shipment_id)

        async def return_inventory(order: OrderState) -> Any:
            return await inventory.return_inventory(order.order_no, order.order_items)

        return cls(
            [
                CompensationStep(
                    "cancel_payment",
                    cancel_payment,
                    lambda order: order.payment_authorization is not None,
                    reverses="authorize_payment",
                ),
                CompensationStep(
                    "return_shipment",
                    return_shipment,
                    lambda order: order.shipment_id is not None,
                    reverses="ship_order",
                ),
                CompensationStep(
                    "cancel_delivery",
                    cancel_delivery,
                    lambda order: order.shipment_id is not None and order.proof_of_delivery is None,
                    reverses="ship_order",
                ),
                CompensationStep(
                    "return_inventory",
                    return_inventory,
                    lambda order: order.pickup_address is not None,
                    reverses="pick_order",
                ),
            ],
            step_timeout=step_timeout,
            tracer=tracer,
            enable_tracing=enable_tracing,
        )

    @property
    def steps(self) -> tuple[CompensationStep, ...]:
        return tuple(self._steps)

    def add(self, step: CompensationStep) -> None:
        """Append a step to the end of the chain."""
        self._steps.append(step)

    async def run(self, order: OrderState) -> CompensationReport:
        """Run every step against ``order``; never raises for a failed step."""
        return await self._run(self._steps, order)

    async def reverse(self, port: str, order: OrderState) -> CompensationReport:
        """
        Run only the steps that undo ``port``.

        Returns an empty report if no step reverses the port.
        """
        return await self._run([step for step in self._steps if step.reverses == port], order)

    async def _run(self, steps: list[CompensationStep], order: OrderState) -> CompensationReport:
        outcomes = [await self._run_step(step, order) for step in steps]
        report = CompensationReport(order_no=order.order_no, outcomes=tuple(outcomes))

        log = logger.warning if report.failed else logger.info
        log(
            "Compensation for order %s finished: %d completed, %d skipped, %d failed",
            order.order_no,
            len(report.completed),
            len(report.skipped),
            len(report.failed),
            extra={"order_no": str(order.order_no), "failed_steps": list(report.failed)},
        )
        return report

    async def _run_step(self, step: CompensationStep, order: OrderState) -> StepOutcome:
        extra = {"order_no": str(order.order_no), "step": step.name}

        if not step.applies(order):
            logger.debug("Skipping compensation step %s for order %s", step.name, order.order_no, extra=extra)
            return StepOutcome(step.name, StepStatus.SKIPPED)

        with self._tracer.span(
            "ordersaga.compensation.step",
            {ATTR_ORDER_NO: str(order.order_no), ATTR_COMPENSATION_STEP: step.name},
        ):
            try:
                result = await asyncio.wait_for(step.action(order), self._step_timeout)
            except Exception as e:
                logger.error(
                    "Compensation step %s failed for order %s: %s",
                    step.name,
                    order.order_no,
                    e,
                    exc_info=True,
                    extra=extra,
                )
                return StepOutcome(step.name, StepStatus.FAILED, error=e)

        logger.info("Compensation step %s completed for order %s", step.name, order.order_no, extra=extra)
        return StepOutcome(step.name, StepStatus.COMPLETED, result=result)


__all__ = [
    "CompensationChain",
    "CompensationReport",
    "CompensationStep",
    "StepOutcome",
    "StepStatus",
]
