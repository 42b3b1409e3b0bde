"""
Guards applied to every proposed order update before it is committed.

A guard is a pure function ``(previous, change) -> change``: it receives the
previous snapshot (``None`` on the first write) and the proposed field
values, and either returns the change (unchanged, with fields stripped or
with derived fields added) or raises an ``OrderValidationError``.

``GuardPipeline`` runs guards left to right and stops at the first error,
so a rejected update never partially applies.

Example:
    >>> pipeline = default_guards(signature_threshold=999.99)
    >>> pipeline.add(my_custom_guard)
    >>> change = pipeline.apply(order.state, {"shipping_address": "1 Main St"})
"""

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from ordersaga.state import (
    ORDER_FIELDS,
    OrderState,
    calc_total,
    changed_fields,
    check_items,
    totals_match,
)
from ordersaga.exceptions import (
    DeleteNotAllowedError,
    FrozenFieldError,
    OrderTotalError,
    OrderValidationError,
    RequiredFieldError,
    StatusTransitionError,
    UnknownFieldError,
)
from ordersaga.types import ALLOWED_TRANSITIONS, OrderStatus

Change = dict[str, Any]
Guard = Callable[[OrderState | None, Change], Change]

# Fields tied to the original order; frozen once it leaves PENDING
COMMERCIAL_FIELDS = (
    "customer_info",
    "order_items",
    "order_total",
    "billing_address",
    "shipping_address",
    "credit_card_number",
    "payment_authorization",
)

# Fields only the factory sets
IMMUTABLE_FIELDS = ("order_no", "created_at")

MUTABLE_FIELDS = tuple(sorted(ORDER_FIELDS - set(IMMUTABLE_FIELDS)))

DEFAULT_SIGNATURE_THRESHOLD = 999.99


class GuardPipeline:
    """
    Ordered list of guards applied to a proposed change.

    The list is open for extension: ``add()`` appends a guard without
    touching the dispatcher or the aggregate.
    """

    def __init__(self, guards: Iterable[Guard] = ()) -> None:
        self._guards: list[Guard] = list(guards)

    def add(self, guard: Guard) -> None:
        """Append a guard to the end of the pipeline."""
        self._guards.append(guard)

    def apply(self, previous: OrderState | None, change: Mapping[str, Any]) -> Change:
        """
        Run every guard in order.

        Returns:
            The change as transformed by the guards

        Raises:
            OrderValidationError: From the first guard that rejects the change
        """
        result = dict(change)
        for guard in self._guards:
            result = guard(previous, result)
        return result

    def __iter__(self) -> Iterator[Guard]:
        return iter(self._guards)

    def __len__(self) -> int:
        return len(self._guards)

    def __repr__(self) -> str:
        names = ", ".join(getattr(g, "__name__", repr(g)) for g in self._guards)
        return f"GuardPipeline([{names}])"


# =============================================================================
# Field guards
# =============================================================================


def normalize_change(previous: OrderState | None, change: Change) -> Change:
    """Reject unknown or immutable fields and coerce status and item values."""
    unknown = set(change) - ORDER_FIELDS
    if unknown:
        raise UnknownFieldError(unknown)
    immutable = set(change) & set(IMMUTABLE_FIELDS)
    if immutable and previous is not None:
        if changed_fields(previous, {k: change[k] for k in immutable}):
            raise FrozenFieldError(immutable, previous.order_status)

    result = dict(change)
    if "order_status" in result:
        try:
            result["order_status"] = OrderStatus(result["order_status"])
        except ValueError as e:
            raise OrderValidationError(
                f"unknown order status: {result['order_status']!r}", field="order_status"
            ) from e
    if "order_items" in result:
        result["order_items"] = check_items(result["order_items"])
    return result


def strip_unchanged(previous: OrderState | None, change: Change) -> Change:
    """Drop fields whose proposed value equals the previous value."""
    if previous is None:
        return change
    keep = changed_fields(previous, change)
    return {name: value for name, value in change.items() if name in keep}


def freeze_on_approval(*fields: str) -> Guard:
    """No changes to ``fields`` once the order has left PENDING."""
    frozen = frozenset(fields)

    def guard(previous: OrderState | None, change: Change) -> Change:
        if previous is None or previous.order_status == OrderStatus.PENDING:
            return change
        blocked = frozen & set(change)
        if blocked:
            raise FrozenFieldError(blocked, previous.order_status)
        return change

    guard.__name__ = "freeze_on_approval"
    return guard


def freeze_on_completion(*fields: str) -> Guard:
    """No changes to ``fields`` once the order is COMPLETE or CANCELED."""
    frozen = frozenset(fields)

    def guard(previous: OrderState | None, change: Change) -> Change:
        if previous is None or not previous.order_status.is_terminal:
            return change
        blocked = frozen & set(change)
        if blocked:
            raise FrozenFieldError(blocked, previous.order_status)
        return change

    guard.__name__ = "freeze_on_completion"
    return guard


def required_for_completion(*fields: str) -> Guard:
    """``fields`` must be present when the update moves the order to COMPLETE."""

    def guard(previous: OrderState | None, change: Change) -> Change:
        if change.get("order_status") != OrderStatus.COMPLETE:
            return change
        for field in fields:
            if change.get(field):
                continue
            if previous is not None and getattr(previous, field):
                continue
            raise RequiredFieldError(field, OrderStatus.COMPLETE)
        return change

    guard.__name__ = "required_for_completion"
    return guard


def status_change_valid(previous: OrderState | None, change: Change) -> Change:
    """Reject status changes that are not allowed edges."""
    if "order_status" not in change or previous is None:
        return change
    current = previous.order_status
    target = change["order_status"]
    if target != current and target not in ALLOWED_TRANSITIONS[current]:
        raise StatusTransitionError(current, target)
    return change


def order_total_valid(previous: OrderState | None, change: Change) -> Change:
    """A caller-supplied total must match the total of the items."""
    if "order_total" not in change:
        return change
    items = change.get("order_items", previous.order_items if previous else None)
    expected = calc_total(items)
    if not totals_match(expected, change["order_total"]):
        raise OrderTotalError(expected, change["order_total"])
    return change


def recalc_total(previous: OrderState | None, change: Change) -> Change:
    """Recalculate ``order_total`` whenever the items change."""
    if "order_items" not in change:
        return change
    return {**change, "order_total": calc_total(change["order_items"])}


def update_signature(threshold: float = DEFAULT_SIGNATURE_THRESHOLD) -> Guard:
    """
    Recompute ``signature_required`` when the items or the flag change.

    The flag is OR-ed with its previous value, so once required it stays
    required for the life of the order.
    """

    def guard(previous: OrderState | None, change: Change) -> Change:
        if "order_items" not in change and "signature_required" not in change:
            return change
        items = change.get("order_items", previous.order_items if previous else None)
        required = (
            bool(change.get("signature_required"))
            or calc_total(items) > threshold
            or (previous is not None and previous.signature_required)
        )
        return {**change, "signature_required": required}

    guard.__name__ = "update_signature"
    return guard


def ready_to_delete(state: OrderState) -> OrderState:
    """
    Don't delete orders before they're complete or canceled.

    Raises:
        DeleteNotAllowedError: If the order is not in a terminal status
    """
    if not state.order_status.is_terminal:
        raise DeleteNotAllowedError(state.order_no, state.order_status)
    return state


def default_guards(signature_threshold: float = DEFAULT_SIGNATURE_THRESHOLD) -> GuardPipeline:
    """Build the guard pipeline every order update runs through."""
    return GuardPipeline(
        [
            normalize_change,
            strip_unchanged,
            status_change_valid,
            freeze_on_completion(*MUTABLE_FIELDS),
            freeze_on_approval(*COMMERCIAL_FIELDS),
            order_total_valid,
            recalc_total,
            update_signature(signature_threshold),
            required_for_completion("proof_of_delivery"),
        ]
    )


__all__ = [
    "COMMERCIAL_FIELDS",
    "Change",
    "DEFAULT_SIGNATURE_THRESHOLD",
    "Guard",
    "GuardPipeline",
    "IMMUTABLE_FIELDS",
    "MUTABLE_FIELDS",
    "default_guards",
    "freeze_on_approval",
    "freeze_on_completion",
    "normalize_change",
    "order_total_valid",
    "ready_to_delete",
    "recalc_total",
    "required_for_completion",
    "status_change_valid",
    "strip_unchanged",
    "update_signature",
]
