from __future__ import annotations

import logging
import os

from fastapi import Depends, FastAPI, HTTPException, status

from collector.app import metrics
from collector.app.config import settings
from collector.app.logging_setup import configure_logging
from collector.app.schemas import MetricsSnapshot, PasswordUpdate
from collector.app.security import CredentialStore, RateLimiter, basic_auth


logger = logging.getLogger(__name__)

credentials = CredentialStore(settings.username, settings.password)
limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)


def create_app(
    store: CredentialStore | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    store = store or credentials
    rate_limiter = rate_limiter or limiter
    require_auth = basic_auth(store)

    application = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug)

    @application.get("/healthz", tags=["meta"])
    async def health() -> dict[str, str]:  # pragma: no cover - simple endpoint
        return {"status": "ok"}

    @application.get(
        "/metrics",
        response_model=MetricsSnapshot,
        dependencies=[Depends(require_auth), Depends(rate_limiter)],
    )
    async def get_metrics() -> MetricsSnapshot:
        try:
            snapshot = await metrics.gather_metrics()
        except Exception as exc:
            logger.exception("Error collecting metrics")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error collecting metrics: {exc}",
            ) from exc
        logger.info("Collected metrics snapshot")
        return snapshot

    @application.post("/update-password", dependencies=[Depends(require_auth)])
    async def update_password(payload: PasswordUpdate) -> dict[str, str]:
        if not payload.password:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="New password not provided.")
        store.replace(payload.password)
        logger.info("Metrics API password updated")
        return {"detail": "Password updated successfully."}

    return application


app = create_app()


def run() -> None:
    """Serve the collector with uvicorn, over TLS unless disabled."""
    import uvicorn

    configure_logging(settings.log_level)
    tls_options: dict[str, str] = {}
    if settings.tls_enabled:
        missing = [path for path in (settings.ssl_keyfile, settings.ssl_certfile) if not os.path.isfile(path)]
        if missing:
            raise RuntimeError(f"TLS enabled but certificate files are missing: {', '.join(missing)}")
        tls_options = {"ssl_keyfile": settings.ssl_keyfile, "ssl_certfile": settings.ssl_certfile}
    scheme = "https" if tls_options else "http"
    logger.info("Metrics collector running on %s://%s:%s", scheme, settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower(), **tls_options)


if __name__ == "__main__":
    run()
