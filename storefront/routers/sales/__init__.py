from fastapi import APIRouter

from .orders import admin_router as orders_admin_router
from .orders import router as orders_router
from .vouchers import router as vouchers_router
from .addresses import router as addresses_router
from .payment_methods import router as payment_methods_router

router = APIRouter()

# /orders/admin/... must be registered before /orders/{order_id}
router.include_router(orders_admin_router)
router.include_router(orders_router)
router.include_router(vouchers_router)
router.include_router(addresses_router)
router.include_router(payment_methods_router)
