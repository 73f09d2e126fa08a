"""FastAPI application exposing the streaming analysis endpoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, AsyncIterator, Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from ..config import ServiceConfig, load_config
from ..github import UpstreamError
from ..logging import get_logger
from ..orchestrator import (
    BODY_TOO_LARGE,
    GENERIC_FAILURE,
    MAX_BODY_SIZE,
    AdmissionError,
    AnalysisOrchestrator,
    AnalysisRun,
    AnalysisState,
    admit_request,
    check_declared_length,
)
from ..stores import FixedWindowRateLimiter, client_identifier

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}

logger = get_logger("service")


class ServicesStatus(BaseModel):
    llm: str
    github: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    services: ServicesStatus


def _default_orchestrator() -> AnalysisOrchestrator:
    return AnalysisOrchestrator()


def create_app(
    orchestrator_factory: Callable[[], AnalysisOrchestrator] = _default_orchestrator,
    *,
    rate_limiter: FixedWindowRateLimiter | None = None,
    max_body_size: int = MAX_BODY_SIZE,
) -> FastAPI:
    """Create the FastAPI application; the rate limiter lives in `app.state`."""

    limiter_instance = rate_limiter or FixedWindowRateLimiter()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        limiter_instance.stop()

    app = FastAPI(title="repohealth", version="0.1.0", lifespan=lifespan)
    app.state.rate_limiter = limiter_instance

    async def get_orchestrator() -> AnalysisOrchestrator:
        return orchestrator_factory()

    def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
        return request.app.state.rate_limiter

    def _status(orchestrator: AnalysisOrchestrator) -> HealthResponse:
        configured = orchestrator.is_configured
        return HealthResponse(
            status="ok" if configured else "misconfigured",
            timestamp=datetime.now(UTC).isoformat(),
            services=ServicesStatus(
                llm="configured" if configured else "missing",
                github="configured" if orchestrator.github.has_token else "optional",
            ),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health(
        orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    ) -> HealthResponse:
        return _status(orchestrator)

    @app.get("/api/analyze", response_model=HealthResponse)
    async def analyze_status(
        orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    ) -> HealthResponse:
        return _status(orchestrator)

    @app.post("/api/analyze")
    async def analyze(
        request: Request,
        orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
        limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    ) -> Any:
        if not orchestrator.is_configured:
            return JSONResponse(
                status_code=503, content={"error": "Server is not properly configured."}
            )

        client_id = client_identifier(request.headers)
        run = AnalysisRun(label=client_id)
        decision = limiter.admit(client_id)
        if not decision.allowed:
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests. Please try again later."},
                headers={"Retry-After": str(decision.retry_after)},
            )
        run.advance(AnalysisState.RATE_CHECKED)

        check_declared_length(request.headers.get("content-length"), max_body_size)
        admitted = admit_request(
            await _read_body(request, max_body_size),
            content_length=request.headers.get("content-length"),
            max_body_size=max_body_size,
        )
        run.label = admitted.full_name

        try:
            prepared = await orchestrator.prepare(admitted, run)
        except UpstreamError:
            raise
        except Exception:
            logger.exception("Analysis of %s failed before streaming", admitted.full_name)
            return JSONResponse(status_code=500, content={"error": GENERIC_FAILURE})

        return StreamingResponse(
            orchestrator.stream(prepared),
            media_type="text/event-stream",
            headers={**STREAM_HEADERS, "X-RateLimit-Remaining": str(decision.remaining)},
        )

    @app.exception_handler(AdmissionError)
    async def admission_error_handler(_: Any, exc: AdmissionError) -> JSONResponse:
        logger.info("Rejected request (%d): %s", exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(_: Any, exc: UpstreamError) -> JSONResponse:
        logger.warning("Upstream failure (%d): %s", exc.status_code, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    return app


async def _read_body(request: Request, limit: int) -> bytes:
    """Read the request body, stopping as soon as it grows past `limit`."""
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise AdmissionError(413, BODY_TOO_LARGE)
    return bytes(body)


def create_app_from_config(config: ServiceConfig) -> FastAPI:
    rate = config.rate_limit
    return create_app(
        lambda: AnalysisOrchestrator.from_config(config),
        rate_limiter=FixedWindowRateLimiter(
            rate.max_requests,
            rate.window_seconds,
            sweep_interval=rate.sweep_interval,
        ),
        max_body_size=config.max_body_size,
    )


def run_service(
    host: str = "0.0.0.0", port: int = 8000, *, config_path: Path | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    config = load_config(config_path or Path.cwd())
    uvicorn.run(create_app_from_config(config), host=host, port=port)


__all__ = ["HealthResponse", "create_app", "create_app_from_config", "run_service"]
