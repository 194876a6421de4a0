"""ASGI application for splitcheck."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from splitcheck import __version__, metrics
from splitcheck.config import Settings, get_settings
from splitcheck.logging_utils import configure_logging as configure_app_logging
from splitcheck.models.receipt import ReceiptData, ReceiptScan
from splitcheck.ocr.base import ReceiptProvider
from splitcheck.ocr.errors import (
    AllProvidersFailedError,
    NoReceiptDataError,
    ProviderNotConfiguredError,
    QuotaExceededError,
)
from splitcheck.ocr.pipeline import MANUAL_ENTRY_MESSAGE, ReceiptScanner
from splitcheck.server import deps

logger = logging.getLogger(__name__)
_access_logger = logging.getLogger("splitcheck.access")


def _configure_logging(settings: Settings) -> None:
    secrets = [settings.api_token or "", settings.azure_key or ""]
    configure_app_logging(settings.log_level, settings.log_format, secrets)


def _error_response(status_code: int, message: str, *, fallback: bool = False) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if fallback:
        content["fallback"] = True
    return JSONResponse(status_code=status_code, content=content)


async def _read_upload(upload: UploadFile, limit: int) -> bytes:
    content = await upload.read()
    if len(content) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Receipt exceeds {limit // (1024 * 1024)} MiB limit.",
        )
    return content


def _record_request(
    request: Request,
    status_code: int,
    started: float,
    request_id: str,
    *,
    failed: bool = False,
) -> None:
    elapsed = perf_counter() - started
    method, path = request.method, request.url.path
    log = _access_logger.exception if failed else _access_logger.info
    log(
        "HTTP %s %s status=%s duration_ms=%.2f",
        method,
        path,
        status_code,
        elapsed * 1000,
        extra={"request_id": request_id},
    )
    metrics.REQUEST_COUNT.labels(method=method, path=path, status=str(status_code)).inc()
    metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)


def create_app() -> FastAPI:
    """Create and configure a FastAPI application instance."""

    settings = get_settings()
    _configure_logging(settings)

    application = FastAPI(title="Splitcheck Receipt Extraction", version=__version__)
    logger.debug("Application created with log level %s", settings.log_level)

    if settings.log_requests:

        @application.middleware("http")
        async def log_request_response(request: Request, call_next):
            """Tag each request with an ID, then log and count it once it completes."""

            request_id = request.headers.get("X-Request-ID") or uuid4().hex
            request.state.request_id = request_id
            started = perf_counter()
            try:
                response: Response = await call_next(request)
            except Exception:
                _record_request(request, 500, started, request_id, failed=True)
                raise

            response.headers.setdefault("X-Request-ID", request_id)
            _record_request(request, response.status_code, started, request_id)
            return response

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log_kwargs: dict[str, Any] = {}
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            log_kwargs["extra"] = {"request_id": request_id}

        errors = [
            {key: value for key, value in error.items() if key in {"type", "loc", "msg"}}
            for error in exc.errors()
        ]
        logger.warning(
            "Validation error on %s %s: %s", request.method, request.url.path, errors, **log_kwargs
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @application.post(
        "/ocr",
        response_model=ReceiptData,
        summary="Extract a receipt with the hosted document service",
        responses={
            400: {"description": "No image provided"},
            422: {"description": "No receipt recognized"},
            429: {"description": "Quota or rate limit exhausted"},
            503: {"description": "Remote service not configured"},
        },
    )
    async def ocr_extract(
        image: Optional[UploadFile] = File(default=None),
        auth: None = Depends(deps.require_api_token),
        provider: ReceiptProvider = Depends(deps.get_remote_provider),
        current_settings: Settings = Depends(get_settings),
    ):
        if not getattr(provider, "configured", True):
            return _error_response(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "Azure Document Intelligence not configured",
                fallback=True,
            )

        content = await _read_upload(image, current_settings.max_upload_bytes) if image else b""
        if not content:
            return _error_response(status.HTTP_400_BAD_REQUEST, "No image provided")

        try:
            return await provider.extract_receipt(content)
        except ProviderNotConfiguredError as exc:
            logger.warning("Remote OCR unavailable: %s", exc)
            return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), fallback=True)
        except NoReceiptDataError as exc:
            return _error_response(422, str(exc))
        except QuotaExceededError as exc:
            logger.warning("Remote OCR quota exhausted: %s", exc)
            return _error_response(
                status.HTTP_429_TOO_MANY_REQUESTS, "Azure quota exceeded", fallback=True
            )
        except Exception as exc:
            logger.exception("Remote OCR failed")
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Unknown error", fallback=True
            )

    @application.post(
        "/receipts/scan",
        response_model=ReceiptScan,
        summary="Scan a receipt through the full provider chain",
    )
    async def receipts_scan(
        file: UploadFile = File(...),
        starting_order: int = Form(default=0, ge=0),
        auth: None = Depends(deps.require_api_token),
        scanner: ReceiptScanner = Depends(deps.get_receipt_scanner),
        current_settings: Settings = Depends(get_settings),
    ) -> ReceiptScan:
        content = await _read_upload(file, current_settings.max_upload_bytes)
        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty."
            )

        try:
            return await scanner.scan(content, starting_order=starting_order)
        except NoReceiptDataError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except AllProvidersFailedError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail={"message": MANUAL_ENTRY_MESSAGE, "error": str(exc)},
            ) from exc

    @application.get("/healthz", summary="Liveness and provider configuration")
    def healthz(current_settings: Settings = Depends(get_settings)) -> dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "providers": list(current_settings.ocr_providers),
            "azure_configured": current_settings.azure_configured,
            "ocr_service_url": current_settings.ocr_service_url,
        }

    @application.get("/metrics", include_in_schema=False)
    def metrics_endpoint() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    return application


app = create_app()

__all__ = ["app", "create_app"]
