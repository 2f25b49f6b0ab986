"""Grocery fulfillment FastAPI application.

Web server for the fulfillment workflow: vendors, pickers and riders call it
synchronously over HTTP; every request runs inside the grocery domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the framework's config overlay.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from grocery.domain import grocery
from grocery.settings import get_settings
from grocery.utils.logging import configure_logging

configure_logging()
grocery.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Grocery Fulfillment API",
    description="Order fulfillment workflow for vendors, pickers and riders",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the grocery domain context for each request."""
    with grocery.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from grocery.api import order_router, personnel_router, queue_router, register_exception_handlers  # noqa: E402

app.include_router(order_router)
app.include_router(personnel_router)
app.include_router(queue_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "domain": grocery.name,
            "publisher": settings.event_publisher,
            "max_concurrency": {
                "picker": settings.picker_max_concurrency,
                "rider": settings.rider_max_concurrency,
            },
        }
    )
