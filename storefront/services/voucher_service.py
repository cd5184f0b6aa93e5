import logging
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import and_, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import BusinessRuleError, NotFoundError, StateError, ValidationError
from storefront.models.voucher_models import Voucher, VoucherUsage
from storefront.schemas.response_schemas import PaginatedList
from storefront.schemas.voucher_schemas import (
    VoucherApply,
    VoucherApplyResult,
    VoucherCreate,
    VoucherOut,
    VoucherUpdate,
)
from storefront.utils.activity_helpers import log_user_activity
from storefront.utils.decimal_utils import to_decimal
from storefront.utils.pagination import paginate, sort_clause

logger = logging.getLogger(__name__)

ALLOWED_SORT_FIELDS = {"id", "code", "discount_percent", "start_date", "end_date", "created_at"}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


# -----------------------
# PURE RULES
# -----------------------
def within_order_bounds(voucher: Voucher, subtotal: Decimal) -> bool:
    subtotal = to_decimal(subtotal)
    if subtotal < to_decimal(voucher.minimum_order_value):
        return False
    if voucher.maximum_order_value is not None and subtotal > to_decimal(voucher.maximum_order_value):
        return False
    return True


def compute_voucher_discount(voucher: Voucher, subtotal: Decimal) -> Decimal:
    """
    Discount for ``subtotal``: ``min(subtotal * percent / 100, cap)``.
    Zero when the subtotal falls outside the voucher's order value bounds.
    Never exceeds the subtotal itself.
    """
    subtotal = to_decimal(subtotal)
    if not within_order_bounds(voucher, subtotal):
        return Decimal("0.00")
    raw = subtotal * Decimal(voucher.discount_percent) / Decimal(100)
    cap = to_decimal(voucher.maximum_discount_amount)
    return to_decimal(min(raw, cap, subtotal))


def check_voucher_applicable(voucher: Voucher, subtotal: Decimal, used_by_user: int, now: datetime | None = None) -> None:
    now = now or datetime.now(timezone.utc)
    if not voucher.is_active or voucher.is_deleted:
        raise BusinessRuleError(f"Voucher '{voucher.code}' is not active", code="VOUCHER_INACTIVE")
    if now < _as_utc(voucher.start_date) or now > _as_utc(voucher.end_date):
        raise BusinessRuleError(f"Voucher '{voucher.code}' is not valid at this time", code="VOUCHER_INACTIVE")

    subtotal = to_decimal(subtotal)
    if subtotal < to_decimal(voucher.minimum_order_value):
        raise BusinessRuleError(
            f"Order value must be at least {to_decimal(voucher.minimum_order_value)} to use '{voucher.code}'",
            code="BELOW_MINIMUM",
        )
    if voucher.maximum_order_value is not None and subtotal > to_decimal(voucher.maximum_order_value):
        raise BusinessRuleError(
            f"Order value must not exceed {to_decimal(voucher.maximum_order_value)} to use '{voucher.code}'",
            code="ABOVE_MAXIMUM",
        )
    if used_by_user >= voucher.per_user_limit:
        raise BusinessRuleError(f"Voucher '{voucher.code}' has already been used", code="USAGE_EXCEEDED")


# -----------------------
# EVALUATION
# -----------------------
async def get_voucher_by_code(db: AsyncSession, code: str) -> Voucher:
    result = await db.execute(
        select(Voucher).where(Voucher.code == normalize_code(code), Voucher.is_deleted == False)
    )
    voucher = result.scalars().first()
    if not voucher:
        raise NotFoundError(f"Voucher '{code}' not found", code="VOUCHER_NOT_FOUND")
    return voucher


async def count_user_usages(db: AsyncSession, voucher_id: int, user_id: int) -> int:
    result = await db.execute(
        select(func.count(VoucherUsage.id)).where(
            VoucherUsage.voucher_id == voucher_id, VoucherUsage.user_id == user_id
        )
    )
    return result.scalar() or 0


async def evaluate_voucher(db: AsyncSession, code: str, subtotal: Decimal, user, now: datetime | None = None):
    """Returns ``(voucher, discount, used_by_user)``; raises when not applicable."""
    voucher = await get_voucher_by_code(db, code)
    used = await count_user_usages(db, voucher.id, user.id)
    check_voucher_applicable(voucher, subtotal, used, now)
    return voucher, compute_voucher_discount(voucher, subtotal), used


async def consume_voucher(db: AsyncSession, voucher: Voucher, user, used_by_user: int, order_id: int | None = None):
    """
    Record one use inside the caller's transaction. The usage number is unique
    per (voucher, user), so two requests racing on the same use fail instead of
    both succeeding.
    """
    # A failed flush rolls back and expires both objects
    voucher_id, code, user_id = voucher.id, voucher.code, user.id

    db.add(VoucherUsage(
        voucher_id=voucher_id,
        user_id=user_id,
        use_number=used_by_user + 1,
        order_id=order_id,
    ))
    try:
        await db.flush()
    except IntegrityError:
        logger.warning("Concurrent use of voucher %s by user %s rejected", code, user_id)
        raise BusinessRuleError(f"Voucher '{code}' has already been used", code="USAGE_EXCEEDED")

    await db.execute(
        update(Voucher)
        .where(Voucher.id == voucher_id)
        .values(used_count=Voucher.used_count + 1)
        .execution_options(synchronize_session=False)
    )


async def apply_voucher(db: AsyncSession, payload: VoucherApply, user) -> VoucherApplyResult:
    voucher, discount, used = await evaluate_voucher(db, payload.code, payload.subtotal, user)
    return VoucherApplyResult(
        code=voucher.code,
        subtotal=to_decimal(payload.subtotal),
        discount_amount=discount,
        remaining_uses=voucher.per_user_limit - used,
    )


# -----------------------
# CREATE
# -----------------------
def _validate_voucher_fields(data: dict):
    start, end = data.get("start_date"), data.get("end_date")
    if start and end and _as_utc(start) >= _as_utc(end):
        raise ValidationError("Start date must be before end date", code="INVALID_DATE_RANGE")

    minimum, maximum = data.get("minimum_order_value"), data.get("maximum_order_value")
    if maximum is not None and minimum is not None and maximum < minimum:
        raise ValidationError(
            "Maximum order value must not be below minimum order value", code="INVALID_VOUCHER"
        )


async def create_voucher(db: AsyncSession, payload: VoucherCreate, _user) -> Voucher:
    data = payload.model_dump()
    data["code"] = normalize_code(data["code"])
    data["start_date"] = _as_utc(data["start_date"])
    data["end_date"] = _as_utc(data["end_date"])
    _validate_voucher_fields(data)

    try:
        existing = await db.execute(select(Voucher).where(Voucher.code == data["code"]))
        if existing.scalars().first():
            raise BusinessRuleError("Voucher code already exists", code="DUPLICATE")

        voucher = Voucher(**data)
        db.add(voucher)
        await db.flush()

        await log_user_activity(db, _user, f"Created voucher '{voucher.code}' ({voucher.discount_percent}%)")

        await db.commit()
        await db.refresh(voucher)
        return voucher
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error creating voucher: {e}")


# -----------------------
# READ
# -----------------------
async def list_vouchers(
    db: AsyncSession,
    page: int,
    limit: int,
    code: str | None = None,
    is_active: bool | None = None,
    valid_now: bool = False,
    include_deleted: bool = False,
    sort_by: str = "created_at",
    order: str = "desc",
) -> PaginatedList[VoucherOut]:
    filters = []
    if not include_deleted:
        filters.append(Voucher.is_deleted == False)
    if code:
        filters.append(Voucher.code.ilike(f"%{code}%"))
    if is_active is not None:
        filters.append(Voucher.is_active == is_active)
    if valid_now:
        now = datetime.now(timezone.utc)
        filters.append(and_(Voucher.start_date <= now, Voucher.end_date >= now))

    stmt = select(Voucher).where(*filters).order_by(sort_clause(Voucher, sort_by, order, ALLOWED_SORT_FIELDS))
    total, vouchers = await paginate(db, stmt, page, limit)
    return PaginatedList[VoucherOut].build(
        [VoucherOut.model_validate(v) for v in vouchers], page, limit, total
    )


async def get_voucher_by_id(db: AsyncSession, voucher_id: int, include_deleted: bool = False) -> Voucher:
    stmt = select(Voucher).where(Voucher.id == voucher_id)
    if not include_deleted:
        stmt = stmt.where(Voucher.is_deleted == False)
    voucher = (await db.execute(stmt)).scalars().first()
    if not voucher:
        raise NotFoundError("Voucher not found", code="VOUCHER_NOT_FOUND")
    return voucher


# -----------------------
# UPDATE
# -----------------------
async def update_voucher(db: AsyncSession, voucher_id: int, payload: VoucherUpdate, _user) -> Voucher:
    voucher = await get_voucher_by_id(db, voucher_id)
    update_data = payload.model_dump(exclude_unset=True)

    if "code" in update_data:
        update_data["code"] = normalize_code(update_data["code"])
    for key in ("start_date", "end_date"):
        if update_data.get(key) is not None:
            update_data[key] = _as_utc(update_data[key])

    merged = {
        "start_date": update_data.get("start_date", voucher.start_date),
        "end_date": update_data.get("end_date", voucher.end_date),
        "minimum_order_value": update_data.get("minimum_order_value", voucher.minimum_order_value),
        "maximum_order_value": update_data.get("maximum_order_value", voucher.maximum_order_value),
    }
    _validate_voucher_fields(merged)

    try:
        if "code" in update_data and update_data["code"] != voucher.code:
            existing = await db.execute(
                select(Voucher).where(Voucher.code == update_data["code"], Voucher.id != voucher_id)
            )
            if existing.scalars().first():
                raise BusinessRuleError("Voucher code already exists", code="DUPLICATE")

        for key, value in update_data.items():
            setattr(voucher, key, value)

        await log_user_activity(db, _user, f"Updated voucher '{voucher.code}' (ID: {voucher.id})")

        await db.commit()
        await db.refresh(voucher)
        return voucher
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating voucher: {e}")


# -----------------------
# SOFT DELETE
# -----------------------
async def delete_voucher(db: AsyncSession, voucher_id: int, _user) -> Voucher:
    voucher = await get_voucher_by_id(db, voucher_id)

    voucher.is_deleted = True
    voucher.is_active = False

    await log_user_activity(db, _user, f"Soft-deleted voucher '{voucher.code}' (ID: {voucher.id})")

    await db.commit()
    await db.refresh(voucher)
    return voucher


# -----------------------
# REACTIVATE
# -----------------------
async def reactivate_voucher(db: AsyncSession, voucher_id: int, _user) -> Voucher:
    voucher = await get_voucher_by_id(db, voucher_id, include_deleted=True)

    if not voucher.is_deleted and voucher.is_active:
        raise StateError("Voucher is already active", code="INVALID_STATE")

    if _as_utc(voucher.end_date) < datetime.now(timezone.utc):
        raise BusinessRuleError("Cannot reactivate expired voucher", code="VOUCHER_INACTIVE")

    voucher.is_deleted = False
    voucher.is_active = True

    await log_user_activity(db, _user, f"Reactivated voucher '{voucher.code}' (ID: {voucher.id})")

    await db.commit()
    await db.refresh(voucher)
    return voucher
