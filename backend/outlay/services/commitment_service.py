"""Service for commitment detection and lifecycle management."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Set, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from outlay.models.category import Category
from outlay.models.commitment import (
    CommitmentOverride,
    CommitmentStatus,
    CommitmentStatusEntry,
    ExcludedCommitmentTransaction,
    Frequency,
)
from outlay.models.transaction import Direction, Transaction
from outlay.services.commitment_detection import (
    CommitmentGroup,
    TransactionForCommitment,
    detect_commitments,
    display_name,
    estimate_monthly_amount,
    round_money,
)
from outlay.services.commitment_lifecycle import (
    CommitmentSummary,
    EndedCommitmentGroup,
    ExcludedMerchant,
    TrendPoint,
    compute_trend,
    reconcile,
    summarize,
)

logger = logging.getLogger(__name__)


class CommitmentValidationError(ValueError):
    """A commitment mutation was rejected before anything was written."""


@dataclass
class CommitmentReport:
    active: List[CommitmentGroup]
    ended: List[EndedCommitmentGroup]
    excluded_merchants: List[ExcludedMerchant]
    summary: CommitmentSummary
    trend: List[TrendPoint]


@dataclass
class MerchantSummary:
    merchant: str
    transaction_count: int
    total_amount: Decimal
    first_date: date
    last_date: date
    category_name: Optional[str]
    category_color: Optional[str]


@dataclass
class DescriptionGroup:
    """Transactions of one merchant sharing a raw statement description."""
    description: str
    transaction_count: int
    total_amount: Decimal


@dataclass
class MerchantTransaction:
    id: str
    date: date
    description: str
    amount: Decimal
    direction: Direction
    category_name: Optional[str]
    category_color: Optional[str]
    excluded_from_commitments: bool


def list_eligible_debit_transactions(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[TransactionForCommitment]:
    """
    Debits with a normalized merchant, outside excluded-from-totals categories.

    Per-transaction exclusions are not applied here; detection filters them.
    """
    query = db.query(
        Transaction.id,
        Transaction.date,
        Transaction.description,
        Transaction.normalized_merchant,
        Transaction.amount,
        Transaction.direction,
        Category.name.label("category_name"),
        Category.color.label("category_color"),
    ).outerjoin(Category, Transaction.category_id == Category.id).filter(
        Transaction.direction == Direction.debit,
        Transaction.normalized_merchant.isnot(None),
        or_(Category.id.is_(None), Category.exclude_from_totals == False),  # noqa: E712
    )

    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)

    rows = query.order_by(Transaction.date, Transaction.id).all()

    return [
        TransactionForCommitment(
            id=row.id,
            date=row.date,
            description=row.description,
            normalized_merchant=row.normalized_merchant,
            amount=Decimal(row.amount),
            direction=row.direction,
            category_name=row.category_name,
            category_color=row.category_color,
        )
        for row in rows
    ]


def get_status_entries(db: Session) -> Dict[str, CommitmentStatusEntry]:
    """Get stored commitment statuses keyed by merchant name."""
    return {e.normalized_merchant: e for e in db.query(CommitmentStatusEntry).all()}


def get_overrides(db: Session) -> Dict[str, CommitmentOverride]:
    """Get stored commitment overrides keyed by merchant name."""
    return {o.normalized_merchant: o for o in db.query(CommitmentOverride).all()}


def get_excluded_transaction_ids(db: Session) -> Set[str]:
    """Get ids of transactions excluded from commitment detection."""
    return set(db.scalars(select(ExcludedCommitmentTransaction.transaction_id)).all())


def detect_for_db(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[CommitmentGroup]:
    """Run detection over the stored transactions, without overrides or statuses."""
    return detect_commitments(
        list_eligible_debit_transactions(db, start_date, end_date),
        excluded_transaction_ids=get_excluded_transaction_ids(db),
    )


def get_commitment_report(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> CommitmentReport:
    """
    Detect, reconcile and summarize commitments.

    Recomputed from the raw transactions on every call.
    """
    groups = detect_for_db(db, start_date, end_date)
    reconciled = reconcile(groups, get_status_entries(db), get_overrides(db))

    return CommitmentReport(
        active=reconciled.active,
        ended=reconciled.ended,
        excluded_merchants=reconciled.excluded_merchants,
        summary=summarize(reconciled),
        trend=compute_trend(reconciled.active),
    )


def list_merchants(db: Session, search: Optional[str] = None) -> List[MerchantSummary]:
    """Every normalized merchant with totals and its most common category."""
    query = db.query(
        Transaction.normalized_merchant,
        Transaction.amount,
        Transaction.date,
        Category.name.label("category_name"),
        Category.color.label("category_color"),
    ).outerjoin(Category, Transaction.category_id == Category.id).filter(
        Transaction.normalized_merchant.isnot(None)
    )

    if search:
        query = query.filter(Transaction.normalized_merchant.ilike(f"%{search}%"))

    merchants: Dict[str, dict] = {}
    for row in query.order_by(Transaction.date, Transaction.id).all():
        info = merchants.setdefault(row.normalized_merchant, {
            "count": 0,
            "total": Decimal("0"),
            "first": row.date,
            "last": row.date,
            "categories": {},
        })
        info["count"] += 1
        info["total"] += Decimal(row.amount)
        info["last"] = row.date
        if row.category_name:
            count, color = info["categories"].get(row.category_name, (0, row.category_color))
            info["categories"][row.category_name] = (count + 1, color)

    result = []
    for merchant, info in merchants.items():
        category_name, category_color = None, None
        if info["categories"]:
            category_name = max(info["categories"], key=lambda name: info["categories"][name][0])
            category_color = info["categories"][category_name][1]
        result.append(MerchantSummary(
            merchant=merchant,
            transaction_count=info["count"],
            total_amount=round_money(info["total"]),
            first_date=info["first"],
            last_date=info["last"],
            category_name=category_name,
            category_color=category_color,
        ))

    result.sort(key=lambda m: (-m.transaction_count, m.merchant))
    return result


def get_merchant_description_groups(db: Session, merchant: str) -> List[DescriptionGroup]:
    """
    Break one merchant down by raw statement description, largest first.

    Shows what a merge would fold together or which lines a split should move.
    """
    rows = db.query(
        Transaction.description,
        func.count(Transaction.id).label("transaction_count"),
        func.sum(Transaction.amount).label("total_amount"),
    ).filter(
        Transaction.normalized_merchant == merchant
    ).group_by(Transaction.description).all()

    groups = [
        DescriptionGroup(
            description=row.description,
            transaction_count=row.transaction_count,
            total_amount=round_money(Decimal(row.total_amount or 0)),
        )
        for row in rows
    ]
    groups.sort(key=lambda g: (-g.transaction_count, g.description))
    return groups


def get_merchant_transactions(
    db: Session,
    merchant: str,
    description: Optional[str] = None,
) -> List[MerchantTransaction]:
    """One merchant's transactions, newest first, optionally for a single description."""
    query = db.query(
        Transaction.id,
        Transaction.date,
        Transaction.description,
        Transaction.amount,
        Transaction.direction,
        Category.name.label("category_name"),
        Category.color.label("category_color"),
        ExcludedCommitmentTransaction.transaction_id.label("excluded_id"),
    ).outerjoin(
        Category, Transaction.category_id == Category.id
    ).outerjoin(
        ExcludedCommitmentTransaction,
        ExcludedCommitmentTransaction.transaction_id == Transaction.id,
    ).filter(Transaction.normalized_merchant == merchant)

    if description is not None:
        query = query.filter(Transaction.description == description)

    return [
        MerchantTransaction(
            id=row.id,
            date=row.date,
            description=row.description,
            amount=round_money(Decimal(row.amount)),
            direction=row.direction,
            category_name=row.category_name,
            category_color=row.category_color,
            excluded_from_commitments=row.excluded_id is not None,
        )
        for row in query.order_by(Transaction.date.desc(), Transaction.id).all()
    ]


def preview_merge(db: Session, merchants: List[str]) -> Dict[str, List[DescriptionGroup]]:
    """Description breakdown for each merchant a merge would touch."""
    names = list(dict.fromkeys(_clean_name(m, "merchant") for m in (merchants or [])))
    if not names:
        raise CommitmentValidationError("merchants array required")
    return {name: get_merchant_description_groups(db, name) for name in names}


def _clean_name(value: Optional[str], field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CommitmentValidationError(f"{field_name} is required")
    return value.strip()


def _merchant_exists(db: Session, merchant: str) -> bool:
    return db.query(Transaction.id).filter(Transaction.normalized_merchant == merchant).first() is not None


def _resolve_merchant(db: Session, merchant: str) -> str:
    """
    Map any casing of a merchant onto the name detection reports it under.

    Status and override rows are looked up by a group's display name, so they
    must be stored under that name to take effect.
    """
    rows = db.query(Transaction.normalized_merchant).filter(
        func.lower(Transaction.normalized_merchant) == merchant.lower()
    ).order_by(Transaction.date, Transaction.id).all()

    if not rows:
        raise CommitmentValidationError(f"Merchant {merchant} not found")
    return display_name(row.normalized_merchant for row in rows)


def _rows_for_merchant(db: Session, model, merchant: str) -> list:
    """Status or override rows stored under any casing of ``merchant``."""
    return db.query(model).filter(
        func.lower(model.normalized_merchant) == merchant.lower()
    ).all()


def _require_transaction(db: Session, transaction_id: str) -> None:
    if db.get(Transaction, transaction_id) is None:
        raise CommitmentValidationError(f"Transaction {transaction_id} not found")


def _parse_monthly_amount(value: Union[Decimal, float, str]) -> Decimal:
    try:
        amount = Decimal(str(value))
        valid = amount.is_finite() and amount > 0
    except (InvalidOperation, ValueError):
        valid = False
    if not valid:
        raise CommitmentValidationError("monthly_amount_override must be a positive number")
    return round_money(amount)


def _delete_rows(db: Session, rows: list) -> None:
    try:
        for row in rows:
            db.delete(row)
        db.commit()
    except Exception:
        db.rollback()
        raise


def set_status(
    db: Session,
    merchant: str,
    status: Union[CommitmentStatus, str],
    notes: Optional[str] = None,
    status_date: Optional[date] = None,
) -> Optional[CommitmentStatusEntry]:
    """
    Set a merchant's commitment status.

    Any casing of the merchant name is accepted; the entry is stored under
    the name detection reports. ``active`` deletes any stored entry, so
    reactivating leaves no trace. Returns the stored entry, or None when the
    merchant is active.
    """
    merchant = _clean_name(merchant, "merchant")
    try:
        status = CommitmentStatus(status)
    except ValueError:
        raise CommitmentValidationError("status must be active, ended, or not_recurring")

    existing = _rows_for_merchant(db, CommitmentStatusEntry, merchant)

    if status == CommitmentStatus.active:
        if existing:
            _delete_rows(db, existing)
            logger.info("Reactivated commitment %s", merchant)
        return None

    name = _resolve_merchant(db, merchant)
    entry = next((e for e in existing if e.normalized_merchant == name), None)

    try:
        for stale in existing:
            if stale is not entry:
                db.delete(stale)
        if entry is None:
            entry = CommitmentStatusEntry(normalized_merchant=name)
            db.add(entry)
        entry.status = status
        entry.notes = notes
        entry.status_changed_at = status_date or date.today()
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    logger.info("Marked commitment %s as %s on %s", name, status.value, entry.status_changed_at)
    return entry


def set_override(
    db: Session,
    merchant: str,
    frequency_override: Optional[Union[Frequency, str]] = None,
    monthly_amount_override: Optional[Union[Decimal, float, str]] = None,
) -> Optional[Decimal]:
    """
    Store a frequency and/or monthly amount override for a merchant.

    Passing neither clears the override. Returns the monthly amount the
    merchant will now report, or None if there is nothing to report.
    """
    merchant = _clean_name(merchant, "merchant")

    if frequency_override is not None:
        try:
            frequency_override = Frequency(frequency_override)
        except ValueError:
            raise CommitmentValidationError(f"Unknown frequency {frequency_override}")

    if monthly_amount_override is not None:
        monthly_amount_override = _parse_monthly_amount(monthly_amount_override)

    existing = _rows_for_merchant(db, CommitmentOverride, merchant)

    if frequency_override is None and monthly_amount_override is None:
        if existing:
            _delete_rows(db, existing)
            logger.info("Cleared commitment override for %s", merchant)
        return None

    name = _resolve_merchant(db, merchant)
    override = next((o for o in existing if o.normalized_merchant == name), None)

    try:
        for stale in existing:
            if stale is not override:
                db.delete(stale)
        if override is None:
            override = CommitmentOverride(normalized_merchant=name)
            db.add(override)
        override.frequency_override = frequency_override
        override.monthly_amount_override = monthly_amount_override
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Set commitment override for %s: frequency=%s monthly=%s",
        name,
        frequency_override.value if frequency_override else None,
        monthly_amount_override,
    )

    if monthly_amount_override is not None:
        return monthly_amount_override

    group = next((g for g in detect_for_db(db) if g.merchant_name == name), None)
    if group is None:
        return None
    return round_money(estimate_monthly_amount(frequency_override, group.charges))


def merge_merchants(db: Session, merchants: List[str], target: str) -> int:
    """
    Fold several merchant names into ``target``.

    Every transaction of a source merchant is renamed to the target, and the
    status and override rows of every source other than the target are
    deleted, all in one commit. Returns the number of transactions renamed.
    """
    sources = list(dict.fromkeys(_clean_name(m, "merchant") for m in (merchants or [])))
    if len(sources) < 2:
        raise CommitmentValidationError("At least 2 merchants required")
    target = _clean_name(target, "target")

    missing = [m for m in sources if not _merchant_exists(db, m)]
    if missing:
        raise CommitmentValidationError(f"Unknown merchants: {', '.join(missing)}")

    merged_away = [m for m in sources if m != target]

    try:
        updated = db.query(Transaction).filter(
            Transaction.normalized_merchant.in_(sources)
        ).update(
            {Transaction.normalized_merchant: target},
            synchronize_session=False
        )

        if merged_away:
            db.query(CommitmentStatusEntry).filter(
                CommitmentStatusEntry.normalized_merchant.in_(merged_away)
            ).delete(synchronize_session=False)
            db.query(CommitmentOverride).filter(
                CommitmentOverride.normalized_merchant.in_(merged_away)
            ).delete(synchronize_session=False)

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Merged %s into %s (%d transactions)", ", ".join(sources), target, updated)
    return updated


def split_merchant(db: Session, transaction_ids: List[str], new_name: str) -> int:
    """
    Move specific transactions to a new merchant name.

    The original merchant's other transactions, status and override are left
    alone. Returns the number of transactions moved.
    """
    transaction_ids = list(transaction_ids or [])
    if not transaction_ids:
        raise CommitmentValidationError("transaction_ids array required")
    new_name = _clean_name(new_name, "new_merchant")

    ids = list(dict.fromkeys(transaction_ids))
    found = {
        row.id for row in db.query(Transaction.id).filter(Transaction.id.in_(ids)).all()
    }
    missing = [i for i in ids if i not in found]
    if missing:
        raise CommitmentValidationError(f"Transactions not found: {', '.join(missing)}")

    try:
        updated = db.query(Transaction).filter(
            Transaction.id.in_(ids)
        ).update(
            {Transaction.normalized_merchant: new_name},
            synchronize_session=False
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Split %d transactions into merchant %s", updated, new_name)
    return updated


def exclude_transaction(db: Session, transaction_id: str) -> None:
    """Stop a single transaction from counting towards commitment detection."""
    _require_transaction(db, transaction_id)

    if db.get(ExcludedCommitmentTransaction, transaction_id) is not None:
        return

    try:
        db.add(ExcludedCommitmentTransaction(transaction_id=transaction_id))
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Excluded transaction %s from commitments", transaction_id)


def restore_transaction(db: Session, transaction_id: str) -> None:
    """Let an excluded transaction count towards commitment detection again."""
    _require_transaction(db, transaction_id)

    excluded = db.get(ExcludedCommitmentTransaction, transaction_id)
    if excluded is not None:
        _delete_rows(db, [excluded])
        logger.info("Restored transaction %s to commitments", transaction_id)
