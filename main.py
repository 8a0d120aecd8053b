"""
WhatCanICook Backend
Recipe discovery with a Stripe-paid premium tier (AI chef, meal planner, recipe book)
"""

from pathlib import Path
import logging
import traceback

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from auth import auth_router
from routers.billing_router import billing_router
from routers.chef_router import chef_router
from routers.meal_plan_router import meal_plan_router
from routers.premium_router import premium_router
from routers.recipes_router import recipes_router
from routers.users_router import users_router
from services.status_poller import poller_registry
from utils.rate_limit import RateLimiterMiddleware
from database import init_db
from config.settings import settings

# Logging setup - write ALL events to /logs/app.log
LOGS_DIR = Path("./logs")
LOGS_DIR.mkdir(exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="WhatCanICook API")


def _is_render_env() -> bool:
    """Check if running in Render.com environment"""
    return bool(settings.render or settings.render_external_url or settings.render_service_name)


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return JSONResponse(
                status_code=500,
                content={"ok": False, "data": {}, "error": "internal_error", "message": "Internal Server Error"}
            )


# Keys the service needs; missing ones disable the matching feature
REQUIRED_KEYS = {
    "JWT_SECRET_KEY": lambda: settings.jwt_secret_key,
    "STRIPE_SECRET_KEY": lambda: settings.stripe_secret_key,
    "STRIPE_PRICE_ID": lambda: settings.stripe_price_id,
    "STRIPE_WEBHOOK_SECRET": lambda: settings.stripe_webhook_secret,
    "OPENAI_API_KEY": lambda: settings.openai_api_key,
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: CSP, HSTS, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        # API-only service: nothing should be rendered or framed
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Only set in production (Render environment) where HTTPS is guaranteed
        if _is_render_env():
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        return response


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(RateLimiterMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# CORS MUST be near the bottom
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def validate_keys():
    """Validate required API keys are present (non-fatal)"""
    missing = [key for key, value in REQUIRED_KEYS.items() if not value()]
    if missing:
        logger.warning(f"Missing API keys: {missing}")
    else:
        logger.info("All API keys loaded successfully")


@app.on_event("startup")
async def initialize_database():
    """Initialize the database and create all tables."""
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


@app.on_event("shutdown")
async def stop_premium_polling():
    """Suppress all future premium poll ticks."""
    poller_registry.stop_all()


@app.get("/api/health")
async def health():
    return {"ok": True}


# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(billing_router)
app.include_router(premium_router)
app.include_router(chef_router)
app.include_router(recipes_router)
app.include_router(meal_plan_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
