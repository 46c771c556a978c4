"""
Commitment detection: infer recurring charges from categorized debits.

Pipeline, applied on every request (nothing here is persisted):

1. group debits by case-insensitive normalized merchant
2. drop groups that can't establish a recurring pattern
3. classify the billing cadence from the median gap between charge dates
4. convert historical spend into a monthly-equivalent amount

Everything in this module is pure; the storage side lives in
``commitment_service``.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from statistics import median
from typing import Dict, Iterable, List, Optional, Set, Tuple

from outlay.models.commitment import Frequency
from outlay.models.transaction import Direction

logger = logging.getLogger(__name__)


MIN_OCCURRENCES = 2
MIN_DISTINCT_DATES = 2
MIN_SPAN_DAYS = 14
# Two charges only count when far enough apart to be semi-annual/yearly billing
RELAXED_MIN_OCCURRENCES = 3
RELAXED_MIN_SPAN_DAYS = 150

# Inclusive upper bound on the median gap (days) for each cadence
FREQUENCY_THRESHOLDS: Tuple[Tuple[int, Frequency], ...] = (
    (10, Frequency.weekly),
    (45, Frequency.monthly),
    (120, Frequency.quarterly),
    (240, Frequency.semi_annual),
    (400, Frequency.yearly),
)

# Months covered by one charge of a low-frequency cadence
AMORTIZATION_MONTHS: Dict[Frequency, int] = {
    Frequency.quarterly: 3,
    Frequency.semi_annual: 6,
    Frequency.yearly: 12,
}

DAYS_PER_MONTH = Decimal("30.44")
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class TransactionForCommitment:
    """A categorized transaction as read from storage."""
    id: str
    date: date
    description: str
    normalized_merchant: Optional[str]
    amount: Decimal
    direction: Direction = Direction.debit
    category_name: Optional[str] = None
    category_color: Optional[str] = None


@dataclass
class MerchantBucket:
    """All candidate transactions of one merchant, oldest first."""
    merchant_name: str
    transactions: List[TransactionForCommitment]

    @property
    def distinct_dates(self) -> List[date]:
        return sorted({t.date for t in self.transactions})

    @property
    def span_days(self) -> int:
        return (self.transactions[-1].date - self.transactions[0].date).days


@dataclass
class CommitmentGroup:
    """One recurring-charge pattern for a merchant."""
    merchant_name: str
    occurrences: int
    total_amount: Decimal
    avg_amount: Decimal
    estimated_monthly_amount: Decimal
    frequency: Frequency
    first_date: date
    last_date: date
    category: Optional[str]
    category_color: Optional[str]
    transaction_ids: List[str]
    frequency_override: Optional[Frequency] = None
    monthly_amount_override: Optional[Decimal] = None
    # (date, amount) per charge, kept so overrides can re-estimate the monthly figure
    charges: Tuple[Tuple[date, Decimal], ...] = field(default=(), repr=False, compare=False)


def round_money(value: Decimal) -> Decimal:
    """Round a monetary value to cents, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def display_name(names: Iterable[str]) -> str:
    """Most common casing of a merchant; ties go to the one seen first."""
    # Counter.most_common keeps insertion order among equal counts
    return Counter(names).most_common(1)[0][0]


def group_by_merchant(transactions: Iterable[TransactionForCommitment]) -> List[MerchantBucket]:
    """
    Bucket transactions by lowercased merchant.

    The display name is the most common exact casing within the bucket;
    ties go to the casing seen first (earliest charge, then lowest id).
    """
    ordered = sorted(
        (t for t in transactions if t.normalized_merchant),
        key=lambda t: (t.date, t.id),
    )

    by_key: Dict[str, List[TransactionForCommitment]] = {}
    for txn in ordered:
        by_key.setdefault(txn.normalized_merchant.lower(), []).append(txn)

    buckets = []
    for txns in by_key.values():
        merchant_name = display_name(t.normalized_merchant for t in txns)
        buckets.append(MerchantBucket(merchant_name=merchant_name, transactions=txns))

    return buckets


def is_eligible(bucket: MerchantBucket) -> bool:
    """Whether a merchant bucket can represent a recurring commitment at all."""
    occurrences = len(bucket.transactions)
    if occurrences < MIN_OCCURRENCES:
        return False

    # Same-day split payments are not recurrence
    if len(bucket.distinct_dates) < MIN_DISTINCT_DATES:
        return False

    # Charges inside one statement cycle are not recurrence
    span_days = bucket.span_days
    if span_days < MIN_SPAN_DAYS:
        return False

    return occurrences >= RELAXED_MIN_OCCURRENCES or span_days >= RELAXED_MIN_SPAN_DAYS


def median_gap_days(dates: Iterable[date]) -> float:
    """Median number of days between consecutive distinct dates."""
    distinct = sorted(set(dates))
    gaps = [(later - earlier).days for earlier, later in zip(distinct, distinct[1:])]
    if not gaps:
        return 0.0
    return float(median(gaps))


def classify_frequency(median_gap: float) -> Frequency:
    """Map a median charge gap onto a billing cadence."""
    for upper_bound, frequency in FREQUENCY_THRESHOLDS:
        if median_gap <= upper_bound:
            return frequency
    return Frequency.irregular


def estimate_monthly_amount(
    frequency: Frequency,
    charges: Iterable[Tuple[date, Decimal]],
) -> Decimal:
    """
    Unrounded monthly-equivalent cost of a charge history under a cadence.

    Low-frequency cadences amortize the average charge over its period.
    Everything else divides total spend by the larger of distinct calendar
    months touched and elapsed months, so billing-date drift across a month
    boundary and several charges inside one month both stay honest.
    """
    charges = sorted(charges)
    if not charges:
        return Decimal("0")

    total = sum((amount for _, amount in charges), Decimal("0"))

    divisor = AMORTIZATION_MONTHS.get(frequency)
    if divisor is not None:
        return total / len(charges) / divisor

    distinct_months = len({(d.year, d.month) for d, _ in charges})
    span_days = (charges[-1][0] - charges[0][0]).days
    span_months = int((Decimal(span_days) / DAYS_PER_MONTH).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return total / max(1, distinct_months, span_months)


def _top_category(transactions: List[TransactionForCommitment]) -> Tuple[Optional[str], Optional[str]]:
    counts: Counter = Counter()
    colors: Dict[str, Optional[str]] = {}
    for t in transactions:
        if t.category_name:
            counts[t.category_name] += 1
            colors.setdefault(t.category_name, t.category_color)

    if not counts:
        return None, None
    name = counts.most_common(1)[0][0]
    return name, colors[name]


def build_group(bucket: MerchantBucket) -> CommitmentGroup:
    """Summarize an eligible bucket as a commitment group."""
    txns = bucket.transactions
    total = sum((t.amount for t in txns), Decimal("0"))
    charges = tuple((t.date, t.amount) for t in txns)

    frequency = classify_frequency(median_gap_days(t.date for t in txns))
    category, category_color = _top_category(txns)

    return CommitmentGroup(
        merchant_name=bucket.merchant_name,
        occurrences=len(txns),
        total_amount=round_money(total),
        avg_amount=round_money(total / len(txns)),
        estimated_monthly_amount=round_money(estimate_monthly_amount(frequency, charges)),
        frequency=frequency,
        first_date=txns[0].date,
        last_date=txns[-1].date,
        category=category,
        category_color=category_color,
        transaction_ids=[t.id for t in txns],
        charges=charges,
    )


def detect_commitments(
    transactions: Iterable[TransactionForCommitment],
    excluded_transaction_ids: Optional[Set[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[CommitmentGroup]:
    """
    Detect commitment groups from raw transactions.

    Only debits with a normalized merchant inside the optional date bounds
    (inclusive) and not individually excluded are considered. Groups are
    ordered by total spend, largest first, then by merchant name.
    """
    excluded = excluded_transaction_ids or set()

    candidates = [
        t for t in transactions
        if t.direction == Direction.debit
        and t.normalized_merchant
        and t.id not in excluded
        and (start_date is None or t.date >= start_date)
        and (end_date is None or t.date <= end_date)
    ]

    buckets = group_by_merchant(candidates)
    groups = [build_group(b) for b in buckets if is_eligible(b)]
    groups.sort(key=lambda g: (-g.total_amount, g.merchant_name))

    logger.debug(
        "Detected %d commitment groups from %d candidate transactions across %d merchants",
        len(groups), len(candidates), len(buckets),
    )
    return groups
