from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import requests

from ..ai.mock import MockClassifier
from ..ai.types import Classifier
from ..ai.normalize import default_classification, normalize
from .config_loader import ProxyConfig

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
    }
)

UPSTREAM_ERROR = "upstream_error"


class UpstreamUnavailable(Exception):
    """The upstream could not be reached or answered with a non-2xx status."""

    def __init__(self, status_code: int, details: Any) -> None:
        super().__init__(f"upstream returned {status_code}")
        self.status_code = status_code
        self.details = details


class MalformedUpstreamBody(ValueError):
    """A body declared as JSON did not parse."""


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    headers: Mapping[str, str]
    body: bytes
    elapsed_ms: int

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_json(self) -> bool:
        return is_json_content_type(self.content_type)

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedUpstreamBody(str(exc)) from exc


@dataclass(frozen=True)
class ProxyResult:
    """What the route should send back: a JSON payload or raw bytes."""

    status_code: int
    payload: Any = None
    body: bytes | None = None
    media_type: str | None = None

    @property
    def is_raw(self) -> bool:
        return self.body is not None


def is_json_content_type(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def forward_headers(
    headers: Iterable[tuple[str, str]],
    body_length: int | None = None,
) -> dict[str, str]:
    """Copy inbound headers minus hop-by-hop ones.

    Repeated headers are joined with ``", "``. When ``body_length`` is given and
    no ``content-length`` was sent, one is added for the buffered body.
    """
    outbound: dict[str, str] = {}
    for name, value in headers:
        if not name:
            continue
        key = name.lower()
        if key in HOP_BY_HOP_HEADERS:
            continue
        if key in outbound:
            outbound[key] = f"{outbound[key]}, {value}"
        else:
            outbound[key] = value
    if body_length is not None and "content-length" not in outbound:
        outbound["content-length"] = str(body_length)
    return outbound


def upstream_error_payload(details: Any) -> dict[str, Any]:
    return {"error": UPSTREAM_ERROR, "details": details}


@dataclass
class PredictionProxy:
    """Forward classification uploads upstream, or answer from the mock.

    Request bodies are fully buffered before forwarding so the outbound
    ``content-length`` is always exact.
    """

    config: ProxyConfig
    session: requests.Session = field(default_factory=requests.Session)
    mock: Classifier = field(default_factory=MockClassifier)

    @property
    def mode(self) -> str:
        return "mock" if self.config.mock_mode else "proxy"

    async def handle(self, headers: Iterable[tuple[str, str]], body: bytes) -> ProxyResult:
        if self.config.mock_mode:
            return self.handle_predict(headers, body)
        return await asyncio.to_thread(self.handle_predict, list(headers), body)

    def handle_predict(self, headers: Iterable[tuple[str, str]], body: bytes) -> ProxyResult:
        try:
            if self.config.mock_mode:
                result = self.mock.classify(body)
                logger.debug(
                    "Mock prediction class=%s confidence=%.2f",
                    result.label,
                    result.confidence,
                )
                return ProxyResult(status_code=200, payload=result.to_payload())
            upstream = self.send(headers, body)
            return self.build_result(upstream)
        except UpstreamUnavailable as exc:
            logger.warning(
                "Upstream prediction failed status=%d details=%s",
                exc.status_code,
                exc.details,
            )
            return ProxyResult(
                status_code=exc.status_code,
                payload=upstream_error_payload(exc.details),
            )
        except Exception as exc:
            logger.exception("Prediction failed error=%s", exc)
            return ProxyResult(
                status_code=500,
                payload={"error": str(exc) or "prediction failed"},
            )

    def send(self, headers: Iterable[tuple[str, str]], body: bytes) -> UpstreamResponse:
        url = (self.config.upstream_url or "").strip()
        outbound = forward_headers(headers, body_length=len(body))
        logger.debug("Forwarding prediction url=%s bytes=%d", url, len(body))

        started = time.perf_counter()
        try:
            response = self.session.post(
                url,
                headers=outbound,
                data=body,
                timeout=self.config.timeout_seconds,
                allow_redirects=True,
            )
            content = response.content
        except requests.Timeout as exc:
            raise UpstreamUnavailable(
                504, f"Timed out waiting for upstream classifier: {exc}"
            ) from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailable(502, f"Failed to reach upstream classifier: {exc}") from exc
        elapsed_ms = max(0, round((time.perf_counter() - started) * 1000))

        return UpstreamResponse(
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=content or b"",
            elapsed_ms=elapsed_ms,
        )

    def build_result(self, upstream: UpstreamResponse) -> ProxyResult:
        if not upstream.ok:
            raise UpstreamUnavailable(upstream.status_code, self._error_details(upstream))

        if not upstream.is_json:
            logger.info(
                "Upstream returned non-JSON content_type=%s; using default result",
                upstream.content_type or "<none>",
            )
            result = default_classification().with_processing_time(upstream.elapsed_ms)
            return ProxyResult(status_code=200, payload=result.to_payload())

        try:
            data = upstream.json()
        except MalformedUpstreamBody as exc:
            logger.warning("Upstream JSON parse failed; returning raw body error=%s", exc)
            return ProxyResult(
                status_code=upstream.status_code,
                body=upstream.body,
                media_type=upstream.content_type,
            )

        result = normalize(data).with_processing_time(upstream.elapsed_ms)
        logger.info(
            "Prediction proxied status=%d class=%s confidence=%.2f elapsed_ms=%d",
            upstream.status_code,
            result.label,
            result.confidence,
            upstream.elapsed_ms,
        )
        return ProxyResult(status_code=200, payload=result.to_payload())

    def _error_details(self, upstream: UpstreamResponse) -> Any:
        if upstream.is_json:
            try:
                return upstream.json()
            except MalformedUpstreamBody:
                pass
        return upstream.text()


__all__ = [
    "HOP_BY_HOP_HEADERS",
    "MalformedUpstreamBody",
    "PredictionProxy",
    "ProxyResult",
    "UpstreamResponse",
    "UpstreamUnavailable",
    "forward_headers",
    "is_json_content_type",
    "upstream_error_payload",
]
