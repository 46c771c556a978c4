"""
Reconciliation of freshly detected commitments with the user's decisions.

Status, override and exclusion records are keyed by merchant name and are
passed in as mappings; nothing in this module touches the database.
"""

from dataclasses import dataclass, fields, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from outlay.models.commitment import (
    CommitmentOverride,
    CommitmentStatus,
    CommitmentStatusEntry,
)
from outlay.services.commitment_detection import (
    CommitmentGroup,
    estimate_monthly_amount,
    round_money,
)


@dataclass
class EndedCommitmentGroup(CommitmentGroup):
    """A commitment the user has declared ended."""
    status_changed_at: Optional[date] = None
    # A charge landed after the user said it ended
    unexpected_activity: bool = False


@dataclass
class ExcludedMerchant:
    merchant: str
    excluded_at: date


@dataclass
class ReconciledCommitments:
    active: List[CommitmentGroup]
    ended: List[EndedCommitmentGroup]
    excluded_merchants: List[ExcludedMerchant]


@dataclass
class CommitmentSummary:
    active_count: int
    active_monthly: Decimal
    ended_count: int
    ended_was_monthly: Decimal
    excluded_count: int


@dataclass
class TrendPoint:
    month: str  # YYYY-MM
    amount: Decimal


def apply_override(group: CommitmentGroup, override: Optional[CommitmentOverride]) -> CommitmentGroup:
    """
    Return ``group`` with a stored override applied.

    A monthly amount override always wins. A frequency override on its own
    re-estimates the monthly amount from the charge history under the new
    cadence.
    """
    if override is None:
        return group

    frequency_override = override.frequency_override
    monthly_override = override.monthly_amount_override

    if frequency_override is not None:
        group = replace(group, frequency=frequency_override, frequency_override=frequency_override)
        if monthly_override is None:
            group.estimated_monthly_amount = round_money(
                estimate_monthly_amount(frequency_override, group.charges)
            )

    if monthly_override is not None:
        amount = round_money(Decimal(monthly_override))
        group = replace(group, estimated_monthly_amount=amount, monthly_amount_override=amount)

    return group


def apply_overrides(
    groups: Iterable[CommitmentGroup],
    overrides: Mapping[str, CommitmentOverride],
) -> List[CommitmentGroup]:
    """Apply overrides by merchant name; overrides without a group are ignored."""
    return [apply_override(g, overrides.get(g.merchant_name)) for g in groups]


def _as_ended(group: CommitmentGroup, entry: CommitmentStatusEntry) -> EndedCommitmentGroup:
    values = {f.name: getattr(group, f.name) for f in fields(CommitmentGroup)}
    return EndedCommitmentGroup(
        **values,
        status_changed_at=entry.status_changed_at,
        unexpected_activity=group.last_date > entry.status_changed_at,
    )


def reconcile(
    groups: Iterable[CommitmentGroup],
    status_entries: Mapping[str, CommitmentStatusEntry],
    overrides: Mapping[str, CommitmentOverride],
) -> ReconciledCommitments:
    """
    Split detected groups into active and ended commitments.

    Merchants marked not recurring are dropped from both lists and reported
    in ``excluded_merchants`` instead (every such marker is listed, detected
    or not). Ended merchants are never reactivated automatically; a charge
    after the end date only raises ``unexpected_activity``.
    """
    active: List[CommitmentGroup] = []
    ended: List[EndedCommitmentGroup] = []

    for group in apply_overrides(groups, overrides):
        entry = status_entries.get(group.merchant_name)
        status = entry.status if entry is not None else CommitmentStatus.active

        if status == CommitmentStatus.not_recurring:
            continue
        if status == CommitmentStatus.ended:
            ended.append(_as_ended(group, entry))
        else:
            active.append(group)

    excluded = [
        ExcludedMerchant(merchant=merchant, excluded_at=entry.status_changed_at)
        for merchant, entry in sorted(status_entries.items())
        if entry.status == CommitmentStatus.not_recurring
    ]

    return ReconciledCommitments(active=active, ended=ended, excluded_merchants=excluded)


def summarize(reconciled: ReconciledCommitments) -> CommitmentSummary:
    """Headline counts and monthly totals."""
    active_monthly = sum((g.estimated_monthly_amount for g in reconciled.active), Decimal("0"))
    ended_monthly = sum((g.estimated_monthly_amount for g in reconciled.ended), Decimal("0"))
    return CommitmentSummary(
        active_count=len(reconciled.active),
        active_monthly=round_money(active_monthly),
        ended_count=len(reconciled.ended),
        ended_was_monthly=round_money(ended_monthly),
        excluded_count=len(reconciled.excluded_merchants),
    )


def _month_index(d: date) -> int:
    return d.year * 12 + (d.month - 1)


def _month_label(index: int) -> str:
    year, month = divmod(index, 12)
    return f"{year:04d}-{month + 1:02d}"


def compute_trend(active_groups: Iterable[CommitmentGroup]) -> List[TrendPoint]:
    """
    Project active commitments onto a monthly timeline.

    Each commitment contributes its monthly-equivalent amount to every month
    between its first and last charge (inclusive), charged or not.
    """
    groups = list(active_groups)
    if not groups:
        return []

    start = min(_month_index(g.first_date) for g in groups)
    end = max(_month_index(g.last_date) for g in groups)

    trend = []
    for month in range(start, end + 1):
        amount = sum(
            (
                g.estimated_monthly_amount
                for g in groups
                if _month_index(g.first_date) <= month <= _month_index(g.last_date)
            ),
            Decimal("0"),
        )
        trend.append(TrendPoint(month=_month_label(month), amount=round_money(amount)))

    return trend
