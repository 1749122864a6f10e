"""
Module: groupbuy_engines.settlement
Responsibility:
    Split an order's takings between the two stakeholders.  Each party is
    reimbursed for what they actually paid and then receives its share of
    the remaining profit (or absorbs its share of the loss).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Formulas:
    first_proc_paid   = sum(pay_amount where payer = first)  * exchange_rate
    second_proc_paid  = sum(pay_amount where payer = second) * exchange_rate
    first_total       = first_proc_paid  + correction if first pays it
    second_total      = second_proc_paid + correction if second pays it
                        + postage (postage payer, the second party by default)
    net_income        = amount_total - fee_amount
    profit            = net_income - (first_total + second_total)
    first_receivable  = first_total  + profit * share
    second_receivable = second_total + profit * (1 - share)

Invariants enforced:
    - first_receivable + second_receivable == net_income exactly, after
      rounding: the first receivable is rounded to 2 dp and the second is
      the remainder.
    - Idempotent: identical inputs give identical receivables.
    - Payments with an unset payer are ignored.
    - Receivables are looked up by stakeholder name, so reordering the
      policy pair never swaps who is owed what.

Failure modes:
    - ValueError from ``SettlementPolicy`` for a share outside [0, 1] or a
      payer that is not one of the stakeholders.
    - ValueError from ``allocate`` for an unknown correction payer.
    - ValueError from ``SettlementResult.receivable_for`` for a name that is
      not one of the stakeholders.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from groupbuy_engines.tracer import traced_engine
from groupbuy_kernel.domain.values import ZERO, jpy_to_cny, round_money, to_decimal
from groupbuy_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")

FIRST_STAKEHOLDER = "Rico"
SECOND_STAKEHOLDER = "Dorothy"


@dataclass(frozen=True)
class SettlementPolicy:
    """
    Business rules of the two-party split.

    Contract:
        ``stakeholders`` is an ordered pair; the first is the default
        correction payer unless ``default_correction_payer`` says otherwise.
    """

    stakeholders: tuple[str, str] = (FIRST_STAKEHOLDER, SECOND_STAKEHOLDER)
    first_profit_share: Decimal = Decimal("0.5")
    postage_payer: str = SECOND_STAKEHOLDER
    default_correction_payer: str = FIRST_STAKEHOLDER

    def __post_init__(self) -> None:
        if len(self.stakeholders) != 2 or self.stakeholders[0] == self.stakeholders[1]:
            raise ValueError("stakeholders must be two distinct names")
        share = to_decimal(self.first_profit_share, field="first_profit_share")
        if share < ZERO or share > Decimal("1"):
            raise ValueError(f"first_profit_share must be in [0, 1], got {share}")
        object.__setattr__(self, "first_profit_share", share)
        object.__setattr__(self, "stakeholders", tuple(self.stakeholders))
        for name in ("postage_payer", "default_correction_payer"):
            if getattr(self, name) not in self.stakeholders:
                raise ValueError(
                    f"{name} must be one of {self.stakeholders}, got {getattr(self, name)!r}"
                )

    @property
    def first(self) -> str:
        return self.stakeholders[0]

    @property
    def second(self) -> str:
        return self.stakeholders[1]


@dataclass(frozen=True)
class Payment:
    """A procurement payment: who fronted it and how much, in JPY."""
    payer: str | None
    amount_jpy: Decimal


@dataclass(frozen=True)
class SettlementInput:
    amount_total: Decimal
    fee_amount: Decimal
    exchange_rate: Decimal
    postage_amount: Decimal
    cost_correction: Decimal
    payments: tuple[Payment, ...] = ()


@dataclass(frozen=True)
class SettlementResult:
    """
    Allocation outcome.  Intermediate figures are unrounded; receivables
    are at 2 dp and sum to ``net_income``.
    """
    first_proc_paid: Decimal
    second_proc_paid: Decimal
    first_total: Decimal
    second_total: Decimal
    net_income: Decimal
    total_paid: Decimal
    profit: Decimal
    first_receivable: Decimal
    second_receivable: Decimal
    correction_payer: str
    stakeholders: tuple[str, str] = (FIRST_STAKEHOLDER, SECOND_STAKEHOLDER)

    def receivable_for(self, name: str) -> Decimal:
        """Receivable of the named stakeholder, whatever its policy position."""
        if name == self.stakeholders[0]:
            return self.first_receivable
        if name == self.stakeholders[1]:
            return self.second_receivable
        raise ValueError(f"{name!r} is not one of {self.stakeholders}")

    @property
    def rico_receivable(self) -> Decimal:
        return self.receivable_for(FIRST_STAKEHOLDER)

    @property
    def dorothy_receivable(self) -> Decimal:
        return self.receivable_for(SECOND_STAKEHOLDER)


class SettlementAllocator:
    """Two-party settlement calculator."""

    def __init__(self, policy: SettlementPolicy | None = None):
        self._policy = policy or SettlementPolicy()

    @property
    def policy(self) -> SettlementPolicy:
        return self._policy

    def _paid_by(self, payer: str, payments: Sequence[Payment], rate: Decimal) -> Decimal:
        total_jpy = sum(
            (to_decimal(p.amount_jpy) for p in payments if p.payer == payer),
            ZERO,
        )
        return jpy_to_cny(total_jpy, rate)

    @traced_engine(
        "settlement", "1.0", fingerprint_fields=("settlement", "correction_payer"),
    )
    def allocate(
        self,
        *,
        settlement: SettlementInput,
        correction_payer: str | None = None,
    ) -> SettlementResult:
        policy = self._policy
        payer = correction_payer or policy.default_correction_payer
        if payer not in policy.stakeholders:
            raise ValueError(
                f"correction_payer must be one of {policy.stakeholders}, got {payer!r}"
            )

        correction = to_decimal(settlement.cost_correction)
        postage = to_decimal(settlement.postage_amount)

        first_paid = self._paid_by(policy.first, settlement.payments, settlement.exchange_rate)
        second_paid = self._paid_by(policy.second, settlement.payments, settlement.exchange_rate)

        first_total = first_paid
        second_total = second_paid
        if payer == policy.first:
            first_total += correction
        else:
            second_total += correction
        if policy.postage_payer == policy.first:
            first_total += postage
        else:
            second_total += postage

        net_income = to_decimal(settlement.amount_total) - to_decimal(settlement.fee_amount)
        total_paid = first_total + second_total
        profit = net_income - total_paid

        first_receivable = round_money(first_total + profit * policy.first_profit_share)
        second_receivable = round_money(net_income) - first_receivable

        logger.info(
            "settlement_allocated",
            extra={
                "correction_payer": payer,
                "net_income": str(net_income),
                "profit": str(profit),
                "first_receivable": str(first_receivable),
                "second_receivable": str(second_receivable),
            },
        )
        return SettlementResult(
            first_proc_paid=first_paid,
            second_proc_paid=second_paid,
            first_total=first_total,
            second_total=second_total,
            net_income=net_income,
            total_paid=total_paid,
            profit=profit,
            first_receivable=first_receivable,
            second_receivable=second_receivable,
            correction_payer=payer,
            stakeholders=policy.stakeholders,
        )
