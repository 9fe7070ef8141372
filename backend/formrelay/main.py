"""
formrelay API
FastAPI application that relays website form submissions by email.
"""

import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from formrelay.config import get_settings
from formrelay.routers import forms
from formrelay.services.attachments import FileRejected
from formrelay.services.validators import ValidationError

settings = get_settings()

# Configure logging to output to console
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."

app = FastAPI(
    title="formrelay",
    description="Relays contact, subscription and quote forms to the business inbox",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Rejected %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=400, content={"success": False, "message": exc.message})


@app.exception_handler(FileRejected)
async def file_rejected_handler(request: Request, exc: FileRejected) -> JSONResponse:
    logger.info("Rejected upload %r on %s: %s", exc.filename, request.url.path, exc.message)
    return JSONResponse(status_code=400, content={"success": False, "message": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Error processing %s", request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": GENERIC_ERROR_MESSAGE})


app.include_router(forms.router, tags=["forms"])


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.on_event("startup")
async def log_startup() -> None:
    logger.info(
        "formrelay running on port %s (%s); delivering to %s via %s:%s, fallback port %s",
        settings.port,
        settings.environment,
        settings.recipient or "<unset>",
        settings.primary.host,
        settings.primary.port,
        settings.fallback.port,
    )


# Static pages (thank-you.html, error.html) are mounted last so the API
# routes above take precedence.
if settings.static_dir.is_dir():
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")


def run() -> None:
    """Console entry point: serve the app on PORT."""
    uvicorn.run("formrelay.main:app", host="0.0.0.0", port=settings.port)
