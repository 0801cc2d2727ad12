import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

# ✅ Import All API Routes
from covercraft.api.routes import (
    billing,
    billing_webhook,
    diagnostics,
    generate,
    profile,
    public_config,
    resume,
)
from covercraft.core import config
from covercraft.core.dependencies import (
    build_generation_gateway,
    build_identity_resolver,
    build_payment_providers,
)
from covercraft.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


# ============================================
# ✅ STARTUP
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL, config.LOG_DIR)

    if config.RUN_MIGRATIONS:
        from covercraft.db.migrate import run_migrations
        run_migrations()

    app.state.identity_resolver = build_identity_resolver()
    app.state.generation_gateway = build_generation_gateway()
    app.state.payment_providers = build_payment_providers()
    logger.info(
        f"CoverCraft API started: backend_url={config.BACKEND_URL}, "
        f"direct_provider={app.state.generation_gateway.direct_provider is not None}, "
        f"local_fallback={config.ALLOW_LOCAL_FALLBACK}"
    )

    yield

    app.state.generation_gateway.http_client.close()


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="CoverCraft API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "stripe-signature", "x-signature"],
)


# ============================================
# ✅ ERROR BODIES: {"error": ...}
# ============================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(content, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        message = "Invalid JSON body"
    else:
        message = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ())[1:]) or 'body'}: {error.get('msg')}"
            for error in errors
        )
    return JSONResponse({"error": message}, status_code=400)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse({"error": "Database error"}, status_code=500)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(public_config.router)
app.include_router(profile.router)
app.include_router(generate.router)
app.include_router(resume.router)
app.include_router(billing.router)
app.include_router(billing_webhook.router)
app.include_router(diagnostics.router)


@app.get("/")
def root():
    return {"status": "CoverCraft API running"}
