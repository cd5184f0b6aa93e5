# storefront/services/payment_service.py
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import BusinessRuleError, NotFoundError, ValidationError
from storefront.models.payment_models import PaymentMethod
from storefront.schemas.payment_schemas import PaymentMethodCreate, PaymentMethodUpdate, PaymentMethodOut
from storefront.utils.activity_helpers import log_user_activity


async def get_active_payment_method(db: AsyncSession, payment_method_id: int | None) -> PaymentMethod:
    if payment_method_id is None:
        raise ValidationError("Payment method is required", code="MISSING_PAYMENT_METHOD")
    result = await db.execute(
        select(PaymentMethod).where(PaymentMethod.id == payment_method_id, PaymentMethod.is_active == True)
    )
    method = result.scalars().first()
    if not method:
        raise NotFoundError("Payment method not found or inactive", code="PAYMENT_METHOD_NOT_FOUND")
    return method


async def list_payment_methods(db: AsyncSession, include_inactive: bool = False) -> dict:
    stmt = select(PaymentMethod).order_by(PaymentMethod.id)
    if not include_inactive:
        stmt = stmt.where(PaymentMethod.is_active == True)
    methods = (await db.execute(stmt)).scalars().all()
    return {
        "message": "Payment methods fetched successfully",
        "data": [PaymentMethodOut.model_validate(m) for m in methods],
    }


async def create_payment_method(db: AsyncSession, data: PaymentMethodCreate, current_user) -> dict:
    try:
        existing = await db.execute(select(PaymentMethod).where(PaymentMethod.method == data.method))
        if existing.scalars().first():
            raise BusinessRuleError(f"Payment method '{data.method.value}' already exists", code="DUPLICATE")

        method = PaymentMethod(**data.model_dump())
        db.add(method)
        await db.flush()

        await log_user_activity(db, current_user, f"Created payment method '{method.method.value}' (ID: {method.id})")

        await db.commit()
        await db.refresh(method)
        return {"message": "Payment method created successfully", "data": PaymentMethodOut.model_validate(method)}
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error creating payment method: {e}")


async def update_payment_method(db: AsyncSession, payment_method_id: int, data: PaymentMethodUpdate, current_user) -> dict:
    method = await db.get(PaymentMethod, payment_method_id)
    if not method:
        raise NotFoundError("Payment method not found", code="PAYMENT_METHOD_NOT_FOUND")

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(method, key, value)

    await log_user_activity(db, current_user, f"Updated payment method '{method.method.value}' (ID: {method.id})")

    await db.commit()
    await db.refresh(method)
    return {"message": "Payment method updated successfully", "data": PaymentMethodOut.model_validate(method)}
