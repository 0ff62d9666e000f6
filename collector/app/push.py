from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from collector.app import metrics
from collector.app.config import settings
from collector.app.logging_setup import configure_logging
from collector.app.schemas import MetricsSnapshot


logger = logging.getLogger(__name__)


class PushError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


async def push_snapshot(
    snapshot: MetricsSnapshot,
    url: str,
    username: str,
    password: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """POST a snapshot to a receiver and return its acknowledgement text."""
    body: dict[str, Any] = snapshot.model_dump(mode="json", by_alias=True)
    async with httpx.AsyncClient(timeout=settings.push_timeout_seconds, transport=transport) as client:
        try:
            response = await client.post(url, json=body, auth=httpx.BasicAuth(username, password))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:200]
            raise PushError(
                f"Receiver responded with {exc.response.status_code}: {detail}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise PushError(f"Could not reach receiver: {exc}") from exc
        return response.text


async def collect_and_push() -> str:
    snapshot = await metrics.gather_metrics()
    acknowledgement = await push_snapshot(
        snapshot,
        settings.receiver_url,
        settings.receiver_username,
        settings.receiver_password,
    )
    logger.info("Pushed metrics to %s: %s", settings.receiver_url, acknowledgement)
    return acknowledgement


def main() -> int:
    configure_logging(settings.log_level)
    try:
        asyncio.run(collect_and_push())
    except PushError as exc:
        logger.error("Push failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
