from __future__ import annotations

import logging

import requests
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from ..ai.mock import MockClassifier
from ..ai.types import Classifier
from .config_loader import ProxyConfig
from .proxy import PredictionProxy, ProxyResult
from .schemas import (
    ErrorResponse,
    HealthResponse,
    PredictionResponse,
    UpstreamErrorResponse,
)


logger = logging.getLogger(__name__)


def _to_response(result: ProxyResult) -> Response:
    if result.is_raw:
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.media_type or None,
        )
    return JSONResponse(status_code=result.status_code, content=result.payload)


def create_app(
    config: ProxyConfig | None = None,
    session: requests.Session | None = None,
    mock_classifier: Classifier | None = None,
) -> FastAPI:
    proxy_config = config or ProxyConfig()
    proxy = PredictionProxy(
        config=proxy_config,
        session=session or requests.Session(),
        mock=mock_classifier or MockClassifier(),
    )

    app = FastAPI(title="Recycling Hub Prediction API", version="0.1.0")
    app.state.config = proxy_config
    app.state.proxy = proxy

    logger.info(
        "Prediction API initialised mode=%s upstream=%s timeout=%.1fs",
        proxy.mode,
        proxy_config.upstream_url or "<none>",
        proxy_config.timeout_seconds,
    )

    @app.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        return HealthResponse(status="ok", mode=proxy.mode)

    @app.post(
        "/api/predict",
        response_model=None,
        responses={
            200: {"model": PredictionResponse},
            500: {"model": ErrorResponse},
            502: {"model": UpstreamErrorResponse},
            504: {"model": UpstreamErrorResponse},
        },
    )
    async def predict(request: Request) -> Response:
        try:
            body = await request.body()
            logger.debug(
                "Predict request content_type=%s bytes=%d",
                request.headers.get("content-type", ""),
                len(body),
            )
            result = await proxy.handle(request.headers.items(), body)
        except Exception as exc:
            logger.exception("Predict request failed error=%s", exc)
            return JSONResponse(
                status_code=500, content={"error": str(exc) or "prediction failed"}
            )
        return _to_response(result)

    @app.on_event("shutdown")
    async def _close_session() -> None:
        proxy.session.close()

    return app


__all__ = ["create_app"]
