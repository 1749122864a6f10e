"""
Order Lifecycle Service (``groupbuy_modules.orders.service``).

Responsibility
--------------
Orchestrates the order lifecycle -- creation with procurement lines,
shipping, settlement, edits, auto-fill and deletion -- by validating input,
asking the workflows whether an action is legal, delegating arithmetic to
``groupbuy_engines`` and persisting through a ``WriteSequence``.

Architecture position
---------------------
**Modules layer** -- ``OrderLifecycleService`` is the sole public entry
point for order writes.  It composes the stateless ``AggregationEngine``
and ``SettlementAllocator`` with the kernel ``RecordStore``,
``OrderLockRegistry`` and ``WriteSequence``.

Invariants enforced
-------------------
* Validation and transition errors are raised before any write.
* ``fee_amount`` is always recomputed; it is never taken from input.
* ``rico_receive`` / ``dorothy_receive`` are written only by creation (the
  deposit) and by settlement.
* ``procurement_amount`` is computed once, at creation.
* One lifecycle action per order at a time (``OrderBusyError``).
* A cancel token is honoured only before the first write.

Failure modes
-------------
* ``ValidationError`` / ``TransitionError`` / ``RecordNotFoundError`` --
  nothing written.
* ``StoreWriteError`` -- write failed, nothing kept.
* ``PartialWriteError`` -- a later step failed after earlier ones; see
  ``rolled_back``.

Usage::

    service = OrderLifecycleService(store, clock=clock)
    created = service.create_order(
        {"project_id": project.id, "amount_total": "1000", "exchange_rate": "0.05"},
        [LineItem(product_id=product.id, quantity=2)],
    )
    service.ship(created.order_id)
    settled = service.settle(created.order_id, correction_payer="Rico")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from groupbuy_engines.aggregation import AggregationEngine
from groupbuy_engines.settlement import SettlementAllocator, SettlementResult
from groupbuy_kernel.domain.cancel import CancelToken
from groupbuy_kernel.domain.clock import Clock, SystemClock
from groupbuy_kernel.domain.values import ZERO, to_decimal
from groupbuy_kernel.exceptions import (
    GroupBuyError,
    RecordNotFoundError,
    ValidationError,
)
from groupbuy_kernel.logging_config import LogContext, get_logger
from groupbuy_kernel.services.order_lock import OrderLockRegistry
from groupbuy_kernel.services.write_sequence import WriteSequence
from groupbuy_kernel.store.contract import Filter, Page, RecordStore, Sort
from groupbuy_modules.orders.config import OrdersConfig
from groupbuy_modules.orders.models import (
    CreateOrderResult,
    LineItem,
    OPEN_ORDER_STATUSES,
    OPEN_PROCUREMENT_STATUSES,
    Order,
    OrderStatus,
    Payer,
    ProcurementLine,
    ProcurementStatus,
    SettleResult,
    ShipResult,
)
from groupbuy_modules.orders.workflows import on_order_ship, require_action

logger = get_logger("modules.orders.service")

_ORDER_EDITABLE = frozenset({
    "project_id",
    "order_date",
    "order_name",
    "order_no",
    "is_xianyu",
    "status",
    "amount_total",
    "exchange_rate",
    "deposit_amount",
    "postage_amount",
    "cost_correction",
    "cost_correction_name",
    "high_fee_flag",
    "notes",
})
_ORDER_DERIVED = frozenset({"fee_amount", "rico_receive", "dorothy_receive"})
_ORDER_MONEY = ("amount_total", "deposit_amount", "postage_amount", "cost_correction")

_PROCUREMENT_EDITABLE = frozenset({
    "quantity_needed",
    "quantity_purchased",
    "status",
    "payer",
    "pay_amount",
    "notes",
})


def _decimal_field(values: Mapping[str, Any], name: str) -> Decimal:
    try:
        return to_decimal(values.get(name), field=name)
    except ValueError as exc:
        raise ValidationError(name, str(exc)) from exc


def _int_field(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(name, "must be an integer")
    try:
        number = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(name, f"not a number: {value!r}") from None
    if number != number.to_integral_value():
        raise ValidationError(name, "must be a whole number")
    return int(number)


def _status_values(enum: type[Enum], statuses: Any) -> list[str]:
    """Normalise one status or an iterable of them to their stored values."""
    if isinstance(statuses, (str, Enum)):
        statuses = (statuses,)
    values = set()
    for status in statuses:
        try:
            values.add(enum(status).value)
        except ValueError:
            raise ValidationError("status", f"unknown status {status!r}") from None
    return sorted(values)


def _date_field(value: Any) -> date | None:
    if value is None or value == "" or isinstance(value, date):
        return value or None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("order_date", f"not an ISO date: {value!r}") from None


class OrderLifecycleService:
    """
    Order lifecycle operations.

    Contract:
        Each public method validates first, then issues all of its writes
        through one ``WriteSequence``, then returns a frozen result.
    """

    def __init__(
        self,
        store: RecordStore,
        config: OrdersConfig | None = None,
        clock: Clock | None = None,
        locks: OrderLockRegistry | None = None,
    ):
        self._store = store
        self._config = config or OrdersConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._locks = locks or OrderLockRegistry()
        self._aggregation = AggregationEngine(self._config.fee_schedule)
        self._allocator = SettlementAllocator(self._config.settlement_policy)

    @property
    def config(self) -> OrdersConfig:
        return self._config

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _order_record(self, order_id: UUID) -> dict[str, Any]:
        record = self._store.get("orders", order_id)
        if record is None:
            raise RecordNotFoundError("order", order_id)
        return record

    def get_order(self, order_id: UUID) -> Order:
        return Order.from_record(self._order_record(order_id))

    def get_procurements(self, order_id: UUID) -> tuple[ProcurementLine, ...]:
        records = self._store.list(
            "procurements",
            [Filter.eq("order_id", order_id)],
            (Sort("created_at"),),
        )
        return tuple(ProcurementLine.from_record(r) for r in records)

    def list_orders(
        self,
        project_id: UUID | None = None,
        statuses: OrderStatus | str | Iterable[OrderStatus | str] | None = OPEN_ORDER_STATUSES,
        order_no_contains: str | None = None,
        page: Page | None = None,
    ) -> list[Order]:
        """
        Orders, newest first.  ``statuses`` defaults to the open states;
        pass ``None`` for every state.
        """
        filters: list[Filter] = []
        if project_id is not None:
            filters.append(Filter.eq("project_id", project_id))
        if statuses is not None:
            filters.append(Filter.in_("status", _status_values(OrderStatus, statuses)))
        if order_no_contains:
            filters.append(Filter.contains("order_no", order_no_contains))
        records = self._store.list(
            "orders", filters, (Sort("order_date", "desc"), Sort("order_no")), page,
        )
        return [Order.from_record(r) for r in records]

    def list_procurements(
        self,
        project_id: UUID | None = None,
        statuses: ProcurementStatus | str | Iterable[ProcurementStatus | str] | None = (
            OPEN_PROCUREMENT_STATUSES
        ),
        order_no_contains: str | None = None,
        page: Page | None = None,
    ) -> list[ProcurementLine]:
        """
        Procurement worklist across orders.

        ``order_no_contains`` matches the parent order's number.  Lines are
        grouped by status (descending) with the newest first in each group.
        """
        filters: list[Filter] = []
        if project_id is not None:
            filters.append(Filter.eq("project_id", project_id))
        if statuses is not None:
            filters.append(
                Filter.in_("status", _status_values(ProcurementStatus, statuses)),
            )
        if order_no_contains:
            order_ids = [
                r["id"] for r in self._store.list(
                    "orders", [Filter.contains("order_no", order_no_contains)],
                )
            ]
            if not order_ids:
                return []
            filters.append(Filter.in_("order_id", order_ids))
        records = self._store.list(
            "procurements",
            filters,
            (Sort("status", "desc"), Sort("created_at", "desc")),
            page,
        )
        return [ProcurementLine.from_record(r) for r in records]

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_order_no_free(
        self, order_no: str, is_xianyu: bool, exclude: UUID | None = None,
    ) -> None:
        clashes = [
            r for r in self._store.list(
                "orders",
                [Filter.eq("order_no", order_no), Filter.eq("is_xianyu", is_xianyu)],
            )
            if r["id"] != exclude
        ]
        if clashes:
            raise ValidationError("order_no", f"'{order_no}' is already used on this channel")

    def _normalise_order(self, values: dict[str, Any]) -> dict[str, Any]:
        """Validate merged order values and fill in the derived fields."""
        if not values.get("project_id"):
            raise ValidationError("project_id", "required")
        if self._store.get("projects", values["project_id"]) is None:
            raise RecordNotFoundError("project", values["project_id"])

        if values.get("exchange_rate") in (None, ""):
            raise ValidationError("exchange_rate", "required")
        rate = _decimal_field(values, "exchange_rate")
        if rate <= ZERO:
            raise ValidationError("exchange_rate", "must be > 0")
        values["exchange_rate"] = rate

        if values.get("amount_total") in (None, ""):
            raise ValidationError("amount_total", "required")
        for name in _ORDER_MONEY:
            values[name] = _decimal_field(values, name)
        if values["amount_total"] < ZERO:
            raise ValidationError("amount_total", "must be >= 0")

        try:
            status = OrderStatus(values.get("status") or OrderStatus.UNPAID)
        except ValueError:
            raise ValidationError("status", f"unknown order status {values['status']!r}") from None
        values["status"] = status.value

        order_no = str(values.get("order_no") or "").strip()
        if not order_no:
            raise ValidationError("order_no", "required")
        values["order_no"] = order_no
        values["is_xianyu"] = bool(values.get("is_xianyu"))
        values["high_fee_flag"] = bool(values.get("high_fee_flag"))
        values["order_date"] = _date_field(values.get("order_date"))

        if status is OrderStatus.PAID_NO_DEPOSIT:
            values["deposit_amount"] = ZERO
        values["fee_amount"] = self._aggregation.fee_amount(
            values["amount_total"], values["is_xianyu"], values["high_fee_flag"],
        )
        return values

    @staticmethod
    def _reject_fields(fields: Mapping[str, Any], allowed: frozenset[str], entity: str) -> None:
        for name in fields:
            if name in _ORDER_DERIVED and entity == "order":
                raise ValidationError(name, "derived field; it cannot be set directly")
            if name not in allowed:
                raise ValidationError(name, f"not an editable {entity} field")

    def _generate_order_no(self) -> str:
        return f"{self._config.order_no_prefix}{self._clock.now():%Y%m%d%H%M%S}"

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(
        self,
        order_fields: Mapping[str, Any],
        line_items: Sequence[LineItem | Mapping[str, Any]],
        cancel_token: CancelToken | None = None,
    ) -> CreateOrderResult:
        """
        Create an order together with one procurement line per line item.

        Preconditions:
            - At least one line item, each with a quantity > 0 and a product
              of the order's project.
            - ``exchange_rate > 0``.
        Postconditions:
            - Order stored with computed ``fee_amount``; the deposit is
              credited to the second stakeholder (``dorothy_receive``).
            - Lines stored as ``not_ordered`` with ``procurement_amount =
              quantity * price_jpy``.
        Raises:
            ValidationError, RecordNotFoundError: before any write.
            StoreWriteError, PartialWriteError: write failures.
        """
        self._reject_fields(order_fields, _ORDER_EDITABLE, "order")
        if not line_items:
            raise ValidationError("line_items", "at least one line item is required")

        values = dict(order_fields)
        values.setdefault("order_no", None)
        if not values["order_no"]:
            values["order_no"] = self._generate_order_no()
        if not values.get("order_date"):
            values["order_date"] = self._clock.today()
        values = self._normalise_order(values)
        self._check_order_no_free(values["order_no"], values["is_xianyu"])

        values["dorothy_receive"] = values["deposit_amount"]
        values["rico_receive"] = ZERO

        order_id = uuid4()
        values["id"] = order_id
        lines = self._build_lines(order_id, values["project_id"], line_items)

        with LogContext.bind(
            order_id=order_id, project_id=values["project_id"], operation="create_order",
        ):
            logger.info(
                "order_create_started",
                extra={
                    "order_no": values["order_no"],
                    "line_count": len(lines),
                    "amount_total": str(values["amount_total"]),
                    "fee_amount": str(values["fee_amount"]),
                },
            )

            def remove_order(_: Any) -> None:
                self._store.delete_where("procurements", [Filter.eq("order_id", order_id)])
                self._store.delete("orders", order_id)

            def insert_lines(_: Any) -> list[dict[str, Any]]:
                # Clear any rows a failed first attempt left behind.
                self._store.delete_where("procurements", [Filter.eq("order_id", order_id)])
                return [self._store.create("procurements", line) for line in lines]

            seq = WriteSequence(self._store, "create_order", cancel_token)
            seq.add("insert_order", lambda _: self._store.create("orders", values), remove_order)
            seq.add(
                "insert_procurements",
                insert_lines,
                lambda _: self._store.delete_where(
                    "procurements", [Filter.eq("order_id", order_id)],
                ),
            )
            self._run(seq)

            result = CreateOrderResult(
                order_id=order_id,
                procurement_ids=tuple(line["id"] for line in lines),
            )
            logger.info(
                "order_created",
                extra={"procurement_ids": [str(i) for i in result.procurement_ids]},
            )
            return result

    def _build_lines(
        self,
        order_id: UUID,
        project_id: UUID,
        line_items: Sequence[LineItem | Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        lines: list[dict[str, Any]] = []
        for item in line_items:
            if isinstance(item, Mapping):
                if "product_id" not in item:
                    raise ValidationError("product_id", "required on every line item")
                item = LineItem(product_id=item["product_id"], quantity=item.get("quantity", 0))
            quantity = _int_field(item.quantity, "quantity")
            if quantity <= 0:
                raise ValidationError("quantity", "must be > 0")
            product = self._store.get("products", item.product_id)
            if product is None:
                raise RecordNotFoundError("product", item.product_id)
            if product["project_id"] != project_id:
                raise ValidationError(
                    "product_id", f"product {item.product_id} belongs to another project",
                )
            price = to_decimal(product.get("price_jpy"), field="price_jpy")
            lines.append({
                "id": uuid4(),
                "order_id": order_id,
                "project_id": project_id,
                "product_id": item.product_id,
                "quantity_needed": quantity,
                "quantity_purchased": 0,
                "procurement_amount": price * quantity,
                "status": ProcurementStatus.NOT_ORDERED.value,
                "payer": None,
                "pay_amount": ZERO,
            })
        return lines

    # ------------------------------------------------------------------
    # Ship / settle
    # ------------------------------------------------------------------

    def ship(self, order_id: UUID, cancel_token: CancelToken | None = None) -> ShipResult:
        """
        Ship an order and every one of its procurement lines.

        Lines that have not arrived in China produce warnings, not errors.
        An order with no lines still ships.

        Raises:
            TransitionError: order is not ``paid_has_deposit``/``paid_no_deposit``.
            OrderBusyError: another action on this order is running.
        """
        with self._locks.hold(order_id), LogContext.bind(order_id=order_id, operation="ship"):
            order = self.get_order(order_id)
            lines = self.get_procurements(order_id)
            try:
                plan = on_order_ship(order, lines)
            except GroupBuyError as exc:
                logger.warning("order_ship_rejected", extra={"error_code": exc.code})
                raise
            for warning in plan.warnings:
                logger.warning("order_ship_line_not_arrived", extra={"detail": warning})

            seq = WriteSequence(self._store, "ship", cancel_token)
            seq.add(
                "update_order",
                lambda _: self._store.update(
                    "orders", order_id, {"status": plan.order_status.value},
                ),
                lambda _: self._store.update("orders", order_id, {"status": order.status.value}),
            )
            if plan.procurement_updates:
                seq.add(
                    "update_procurements",
                    lambda _: self._store.update_where(
                        "procurements",
                        [Filter.eq("order_id", order_id)],
                        {"status": ProcurementStatus.SHIPPED.value},
                    ),
                    lambda _: self._restore_line_statuses(lines),
                )
            self._run(seq)

            result = ShipResult(
                order_id=order_id,
                order_status=plan.order_status,
                procurement_statuses=tuple(status for _, status in plan.procurement_updates),
                warnings=plan.warnings,
            )
            logger.info(
                "order_shipped",
                extra={
                    "from_status": order.status.value,
                    "procurement_count": len(lines),
                    "warning_count": len(plan.warnings),
                },
            )
            return result

    def _restore_line_statuses(self, lines: Sequence[ProcurementLine]) -> None:
        for line in lines:
            self._store.update("procurements", line.id, {"status": line.status.value})

    def _correction_payer(self, correction_payer: Payer | str | None) -> str:
        policy = self._config.settlement_policy
        if correction_payer is None or correction_payer == "":
            return policy.default_correction_payer
        payer = correction_payer.value if isinstance(correction_payer, Payer) else str(correction_payer)
        if payer not in policy.stakeholders:
            raise ValidationError(
                "correction_payer", f"must be one of {', '.join(policy.stakeholders)}",
            )
        return payer

    def preview_settlement(
        self, order_id: UUID, correction_payer: Payer | str | None = None,
    ) -> SettlementResult:
        """Compute the settlement for an order without writing anything."""
        order = self.get_order(order_id)
        lines = self.get_procurements(order_id)
        return self._allocate(order, lines, self._correction_payer(correction_payer))

    def _allocate(
        self, order: Order, lines: Sequence[ProcurementLine], payer: str,
    ) -> SettlementResult:
        fee = self._aggregation.fee_amount(
            order.amount_total, order.is_xianyu, order.high_fee_flag,
        )
        return self._allocator.allocate(
            settlement=order.settlement_input(tuple(lines), fee),
            correction_payer=payer,
        )

    def settle(
        self,
        order_id: UUID,
        correction_payer: Payer | str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> SettleResult:
        """
        Settle an order between the two stakeholders.

        The platform fee is recomputed, the allocator splits the net income
        and the two receivables, the fresh fee and the ``settled`` status
        are written together.

        Raises:
            TransitionError: order is not shipped, confirmed or
                partial-refund pending.
            ValidationError: unknown correction payer.
        """
        with self._locks.hold(order_id), LogContext.bind(order_id=order_id, operation="settle"):
            order = self.get_order(order_id)
            try:
                transition = require_action(order, "settle")
                payer = self._correction_payer(correction_payer)
            except GroupBuyError as exc:
                logger.warning("order_settle_rejected", extra={"error_code": exc.code})
                raise
            lines = self.get_procurements(order_id)
            allocation = self._allocate(order, lines, payer)

            changes = {
                "status": transition.to_state,
                "fee_amount": self._aggregation.fee_amount(
                    order.amount_total, order.is_xianyu, order.high_fee_flag,
                ),
                "rico_receive": allocation.rico_receivable,
                "dorothy_receive": allocation.dorothy_receivable,
            }
            previous = {
                "status": order.status.value,
                "fee_amount": order.fee_amount,
                "rico_receive": order.rico_receive,
                "dorothy_receive": order.dorothy_receive,
            }
            seq = WriteSequence(self._store, "settle", cancel_token)
            seq.add(
                "update_order",
                lambda _: self._store.update("orders", order_id, changes),
                lambda _: self._store.update("orders", order_id, previous),
            )
            self._run(seq)

            result = SettleResult(
                order_id=order_id,
                rico_receivable=allocation.rico_receivable,
                dorothy_receivable=allocation.dorothy_receivable,
                order_status=OrderStatus(transition.to_state),
                correction_payer=payer,
            )
            logger.info(
                "order_settled",
                extra={
                    "from_status": order.status.value,
                    "correction_payer": payer,
                    "rico_receivable": str(result.rico_receivable),
                    "dorothy_receivable": str(result.dorothy_receivable),
                },
            )
            return result

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update_order(self, order_id: UUID, fields: Mapping[str, Any]) -> Order:
        """
        Edit order fields, including a manual status change from any state.

        ``fee_amount`` is recomputed and ``deposit_amount`` forced to 0 for
        ``paid_no_deposit``.
        """
        self._reject_fields(fields, _ORDER_EDITABLE, "order")
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, operation="update_order",
        ):
            current = self._order_record(order_id)
            merged = {k: current.get(k) for k in _ORDER_EDITABLE}
            merged.update(fields)
            merged = self._normalise_order(merged)
            if (
                merged["order_no"] != current["order_no"]
                or merged["is_xianyu"] != bool(current["is_xianyu"])
            ):
                self._check_order_no_free(merged["order_no"], merged["is_xianyu"], exclude=order_id)

            changes = {
                k: v for k, v in merged.items()
                if k in _ORDER_EDITABLE | {"fee_amount"} and v != current.get(k)
            }
            if not changes:
                return Order.from_record(current)
            if "status" in changes:
                logger.info(
                    "order_status_edited",
                    extra={"from_status": current["status"], "to_status": changes["status"]},
                )
            record = self._store.update("orders", order_id, changes)
            logger.info("order_updated", extra={"fields": sorted(changes)})
            return Order.from_record(record)

    def _procurement_record(self, procurement_id: UUID) -> dict[str, Any]:
        record = self._store.get("procurements", procurement_id)
        if record is None:
            raise RecordNotFoundError("procurement", procurement_id)
        return record

    def update_procurement(
        self, procurement_id: UUID, fields: Mapping[str, Any],
    ) -> ProcurementLine:
        """
        Edit a procurement line directly.

        ``procurement_amount`` is never recomputed.  Buying more than needed
        is logged as a warning unless the config makes it an error.
        """
        self._reject_fields(fields, _PROCUREMENT_EDITABLE, "procurement")
        current = self._procurement_record(procurement_id)
        changes: dict[str, Any] = {}

        if "quantity_needed" in fields:
            changes["quantity_needed"] = _int_field(fields["quantity_needed"], "quantity_needed")
            if changes["quantity_needed"] <= 0:
                raise ValidationError("quantity_needed", "must be > 0")
        if "quantity_purchased" in fields:
            changes["quantity_purchased"] = _int_field(
                fields["quantity_purchased"] or 0, "quantity_purchased",
            )
            if changes["quantity_purchased"] < 0:
                raise ValidationError("quantity_purchased", "must be >= 0")
        if "pay_amount" in fields:
            changes["pay_amount"] = _decimal_field(fields, "pay_amount")
            if changes["pay_amount"] < ZERO:
                raise ValidationError("pay_amount", "must be >= 0")
        if "status" in fields:
            try:
                changes["status"] = ProcurementStatus(fields["status"]).value
            except ValueError:
                raise ValidationError(
                    "status", f"unknown procurement status {fields['status']!r}",
                ) from None
        if "payer" in fields:
            payer = fields["payer"]
            if payer in (None, ""):
                changes["payer"] = None
            else:
                try:
                    changes["payer"] = Payer(payer).value
                except ValueError:
                    raise ValidationError("payer", f"unknown payer {payer!r}") from None
        if "notes" in fields:
            changes["notes"] = fields["notes"]

        needed = changes.get("quantity_needed", current["quantity_needed"])
        purchased = changes.get("quantity_purchased", current.get("quantity_purchased") or 0)
        if purchased > needed:
            if not self._config.warn_on_over_purchase:
                raise ValidationError(
                    "quantity_purchased", f"{purchased} exceeds quantity_needed {needed}",
                )
            logger.warning(
                "procurement_over_purchased",
                extra={
                    "procurement_id": str(procurement_id),
                    "quantity_needed": needed,
                    "quantity_purchased": purchased,
                },
            )

        order_id = current["order_id"]
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, operation="update_procurement",
        ):
            record = self._store.update("procurements", procurement_id, changes)
            logger.info(
                "procurement_updated",
                extra={"procurement_id": str(procurement_id), "fields": sorted(changes)},
            )
            return ProcurementLine.from_record(record)

    def auto_fill_procurement(self, procurement_id: UUID) -> ProcurementLine:
        """Mark a line fully ordered, paid by the first stakeholder in full."""
        current = ProcurementLine.from_record(self._procurement_record(procurement_id))
        changes = {
            "quantity_purchased": current.quantity_needed,
            "status": ProcurementStatus.ORDERED_FULL.value,
            "payer": self._config.settlement_policy.first,
            "pay_amount": current.procurement_amount,
        }
        with self._locks.hold(current.order_id), LogContext.bind(
            order_id=current.order_id, operation="auto_fill_procurement",
        ):
            record = self._store.update("procurements", procurement_id, changes)
            logger.info(
                "procurement_auto_filled",
                extra={
                    "procurement_id": str(procurement_id),
                    "pay_amount": str(current.procurement_amount),
                },
            )
            return ProcurementLine.from_record(record)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_order(self, order_id: UUID, cancel_token: CancelToken | None = None) -> None:
        """Delete an order and its procurement lines."""
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, operation="delete_order",
        ):
            order_record = self._order_record(order_id)
            line_records = self._store.list("procurements", [Filter.eq("order_id", order_id)])

            seq = WriteSequence(self._store, "delete_order", cancel_token)
            seq.add(
                "delete_procurements",
                lambda _: self._store.delete_where(
                    "procurements", [Filter.eq("order_id", order_id)],
                ),
                lambda _: [self._store.create("procurements", r) for r in line_records],
            )
            seq.add(
                "delete_order",
                lambda _: self._store.delete("orders", order_id),
                lambda _: self._store.create("orders", order_record),
            )
            self._run(seq)
            logger.info("order_deleted", extra={"procurement_count": len(line_records)})

    # ------------------------------------------------------------------

    def _run(self, seq: WriteSequence) -> dict[str, Any]:
        try:
            return seq.run()
        except GroupBuyError as exc:
            logger.warning(
                "order_write_failed",
                extra={"error_code": exc.code, "steps": list(seq.step_names)},
            )
            raise
