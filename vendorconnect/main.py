from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from vendorconnect.auth.repository import UserRepository
from vendorconnect.auth.routes import router as auth_router
from vendorconnect.cart.repository import CartRepository
from vendorconnect.cart.routes import router as cart_router
from vendorconnect.catalog.repository import ProductRepository
from vendorconnect.catalog.routes import router as products_router
from vendorconnect.orders.repository import OrderRepository
from vendorconnect.orders.routes import router as orders_router
from vendorconnect.shared.logging_config import setup_logging, RequestLoggingMiddleware
from vendorconnect.shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware
from vendorconnect.shared.utils import (
    AppException, HealthResponse, app_exception_handler, get_db_client, settings, utcnow
)

SERVICE_NAME = "vendorconnect"

# Setup Logging
logger = setup_logging(SERVICE_NAME, settings.LOG_LEVEL)

app = FastAPI(title="VendorConnect Marketplace")

# Security Setup
setup_rate_limiting(app)
app.add_middleware(SecurityHeadersMiddleware)
app.add_exception_handler(AppException, app_exception_handler)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(products_router)
app.include_router(cart_router)
app.include_router(orders_router)

async def ensure_indexes(db):
    for repository in (UserRepository(db), ProductRepository(db), CartRepository(db), OrderRepository(db)):
        await repository.ensure_indexes()

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client[settings.MONGO_DB_NAME]
    await ensure_indexes(app.mongodb)
    logger.info("Connected to MongoDB")

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()

@app.get("/health", response_model=HealthResponse)
async def health_check():
    try:
        await app.mongodb_client.admin.command('ping')
        db_status = "connected"
    except Exception:
        logger.exception("Database ping failed")
        db_status = "disconnected"

    if db_status != "connected":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service Unhealthy"
        )

    return HealthResponse(
        service=SERVICE_NAME,
        status="healthy",
        timestamp=utcnow(),
        version="1.0.0",
        database=db_status
    )
