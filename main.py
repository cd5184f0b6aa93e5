# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.core.config import LOG_LEVEL
from storefront.core.db import init_models
from storefront.core.exceptions import StoreError, store_error_handler
from storefront.middleware.activity_logger import ActivityLoggerMiddleware
from storefront.routers import auth_router, catalog_router, sales_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="Storefront API",
    description="FastAPI backend for catalog, vouchers and order processing",
    version="0.1.0",
)
# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # adjust for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ActivityLoggerMiddleware)

app.add_exception_handler(StoreError, store_error_handler)


# Health check endpoint
@app.get("/", tags=["Health"])
async def health_check():
    return {"status": "ok", "message": "Backend is running"}


# Register routers
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(sales_router)


@app.on_event("startup")
async def on_startup():
    await init_models()
