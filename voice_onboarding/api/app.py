"""FastAPI application exposing the onboarding and booking endpoints."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voice_onboarding.api.routes import (
    booking,
    complete_onboarding,
    import_processor,
    nango_oauth,
    square_service,
)
from voice_onboarding.config import AppConfig, settings
from voice_onboarding.errors import OnboardingError
from voice_onboarding.logging_context import set_request_id

logger = logging.getLogger(__name__)


def _error_body(message: str, details: object = None) -> dict:
    body = {"error": message}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return body


async def _handle_onboarding_error(request: Request, exc: OnboardingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.details))


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body("Invalid request body", exc.errors()))


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error", str(exc)))


def _configure_cors(api_app: FastAPI, origins: tuple[str, ...]) -> None:
    if not origins:
        return
    api_app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app(config: AppConfig = settings) -> FastAPI:
    api_app = FastAPI(
        title="Voice Onboarding API",
        description=(
            "Connects Square through Nango, syncs business data into Supabase "
            "and proxies bookings for the voice agent."
        ),
    )
    _configure_cors(api_app, config.api.cors_origins)

    @api_app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    api_app.add_exception_handler(OnboardingError, _handle_onboarding_error)
    api_app.add_exception_handler(RequestValidationError, _handle_validation_error)
    api_app.add_exception_handler(Exception, _handle_unexpected)

    @api_app.get("/health", tags=["health"])
    def healthcheck() -> dict[str, str]:
        """Simple health endpoint for load balancers and smoke tests."""

        return {"status": "ok"}

    api_app.include_router(nango_oauth.router, tags=["oauth"])
    api_app.include_router(square_service.router, tags=["square"])
    api_app.include_router(booking.router, tags=["booking"])
    api_app.include_router(import_processor.router, tags=["import"])
    api_app.include_router(complete_onboarding.router, tags=["onboarding"])
    return api_app


app = create_app()
