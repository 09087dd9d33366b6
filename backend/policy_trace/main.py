import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from policy_trace import __version__
from policy_trace.config import settings
from policy_trace.database import Store
from policy_trace.middleware.logging_config import configure_logging

configure_logging(settings.log_level, settings.json_logs)

from policy_trace.api.attachments import router as attachments_router  # noqa: E402
from policy_trace.api.dashboard import router as dashboard_router  # noqa: E402
from policy_trace.api.health import router as health_router  # noqa: E402
from policy_trace.api.policies import router as policies_router  # noqa: E402
from policy_trace.api.records import router as records_router  # noqa: E402
from policy_trace.web.views import InvalidChoice, invalid_choice_handler  # noqa: E402
from policy_trace.web.views import router as web_router  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: open the store and make sure every table exists
    store = Store.from_settings(settings)
    await store.init_schema()
    app.state.store = store
    logger.info("Policy trace %s ready (db=%s)", __version__, settings.db_path)
    yield
    # Shutdown
    await store.dispose()


app = FastAPI(
    title="Policy Trace",
    description="Traceability from government policy to requirements, decisions, rules, tests and evidence",
    version=__version__,
    lifespan=lifespan,
)

# ── Security headers middleware ──────────────────────────────────────────────
from policy_trace.middleware.security_headers import SecurityHeadersMiddleware  # noqa: E402

app.add_middleware(SecurityHeadersMiddleware)

# ── Request context middleware (request ID + timing) ─────────────────────────
from policy_trace.middleware.request_context import RequestContextMiddleware  # noqa: E402

app.add_middleware(RequestContextMiddleware)

# ── Prometheus metrics middleware ────────────────────────────────────────────
from policy_trace.middleware.metrics import PrometheusMiddleware  # noqa: E402

app.add_middleware(PrometheusMiddleware)


app.add_exception_handler(InvalidChoice, invalid_choice_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return detailed error info in development mode so 500s are debuggable."""
    tb = traceback.format_exc()
    logging.getLogger("policy_trace").error(
        "Unhandled %s on %s %s: %s\n%s",
        type(exc).__name__, request.method, request.url.path, exc, tb,
    )
    detail = f"{type(exc).__name__}: {exc}"
    if settings.environment == "development":
        return JSONResponse(
            status_code=500,
            content={"detail": detail, "traceback": tb.splitlines()[-5:]},
        )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


# Register routers; the attachments router matches /api/{collection}/… so it goes last
app.include_router(health_router)
app.include_router(policies_router)
app.include_router(records_router)
app.include_router(dashboard_router)
app.include_router(attachments_router)
app.include_router(web_router)
