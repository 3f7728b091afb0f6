import asyncio
import logging
import logging.config
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from database import check_connection, init_db
from routers import invoices, links, notify, rates, shift, sideshift_webhook, webhooks
from routers.deps import get_poller

# Logging
logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {"format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "default"},
    },
    "loggers": {
        "shiftstream": {
            "handlers": ["console"],
            "level": "INFO" if config.ENVIRONMENT == "production" else "DEBUG",
            "propagate": False,
        },
    },
})
logger = logging.getLogger("shiftstream")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    stop = asyncio.Event()
    task = None
    poller = get_poller()
    if config.POLLING_ENABLED and poller is not None:
        task = asyncio.create_task(poller.run(stop))
    logger.info("ShiftStream API started (%s)", config.ENVIRONMENT)
    yield
    stop.set()
    if task is not None:
        await task


# App instance
app = FastAPI(title="ShiftStream API", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(links.router)
app.include_router(sideshift_webhook.router)
app.include_router(webhooks.router)
app.include_router(invoices.router)
app.include_router(notify.router)
app.include_router(shift.router)
app.include_router(rates.router)


@app.get("/health")
def health():
    return {"status": "ok", "database": check_connection()}


# 404 Fallback for unmatched routes
@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))


# 500 Fallback Middleware
@app.middleware("http")
async def internal_error_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT, reload=config.ENVIRONMENT != "production")
