from fastapi import APIRouter

from .products import router as products_router
from .variants import router as variants_router

router = APIRouter()

router.include_router(products_router)
router.include_router(variants_router)
