"""
Orders ORM Models (``groupbuy_modules.orders.orm``).

Responsibility
--------------
SQLAlchemy persistence models for orders and their procurement lines.
Maps the frozen dataclasses of ``models.py`` to the ``orders`` and
``procurements`` tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``groupbuy_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``groupbuy_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupbuy_kernel.db.base import TrackedBase


class OrderModel(TrackedBase):
    """
    ORM model for customer orders.

    Guarantees:
        - order_no is unique per sales channel (uq_orders_channel_order_no).
        - Deleting an order deletes its procurement lines.
        - status stored as the ``OrderStatus`` string value.
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("is_xianyu", "order_no", name="uq_orders_channel_order_no"),
        Index("idx_orders_project_id", "project_id"),
        Index("idx_orders_status", "status"),
    )

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id"), nullable=False,
    )
    order_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    order_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    order_no: Mapped[str] = mapped_column(String(100), nullable=False)
    is_xianyu: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="unpaid", nullable=False)
    amount_total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    fee_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    exchange_rate: Mapped[Decimal]
    deposit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    postage_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cost_correction: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cost_correction_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    high_fee_flag: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    rico_receive: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    dorothy_receive: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    procurements: Mapped[list["ProcurementModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from groupbuy_modules.orders.models import Order, OrderStatus

        return Order(
            id=self.id,
            project_id=self.project_id,
            order_no=self.order_no,
            status=OrderStatus(self.status),
            amount_total=self.amount_total,
            exchange_rate=self.exchange_rate,
            order_date=self.order_date,
            order_name=self.order_name,
            is_xianyu=self.is_xianyu,
            high_fee_flag=self.high_fee_flag,
            fee_amount=self.fee_amount,
            deposit_amount=self.deposit_amount,
            postage_amount=self.postage_amount,
            cost_correction=self.cost_correction,
            cost_correction_name=self.cost_correction_name,
            rico_receive=self.rico_receive,
            dorothy_receive=self.dorothy_receive,
            notes=self.notes,
        )


class ProcurementModel(TrackedBase):
    """
    ORM model for procurement lines.

    Guarantees:
        - order_id FK to orders.id, deleted with the order.
        - product_id FK to products.id; a referenced product cannot be
          deleted.
        - procurement_amount is written on insert and never recomputed.
    """

    __tablename__ = "procurements"

    __table_args__ = (
        Index("idx_procurements_order_id", "order_id"),
        Index("idx_procurements_product_id", "product_id"),
        Index("idx_procurements_status", "status"),
    )

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True,
    )
    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id"), nullable=False,
    )
    quantity_needed: Mapped[int] = mapped_column(nullable=False)
    quantity_purchased: Mapped[int] = mapped_column(default=0, nullable=False)
    procurement_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="not_ordered", nullable=False)
    payer: Mapped[str | None] = mapped_column(String(50), nullable=True)
    pay_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    order: Mapped[OrderModel] = relationship(back_populates="procurements")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from groupbuy_modules.orders.models import Payer, ProcurementLine, ProcurementStatus

        return ProcurementLine(
            id=self.id,
            order_id=self.order_id,
            project_id=self.project_id,
            product_id=self.product_id,
            quantity_needed=self.quantity_needed,
            quantity_purchased=self.quantity_purchased,
            procurement_amount=self.procurement_amount,
            status=ProcurementStatus(self.status),
            payer=Payer(self.payer) if self.payer else None,
            pay_amount=self.pay_amount,
            notes=self.notes,
        )
