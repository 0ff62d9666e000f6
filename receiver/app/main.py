from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.responses import PlainTextResponse

from collector.app.logging_setup import configure_logging
from collector.app.schemas import PasswordUpdate
from collector.app.security import CredentialStore, basic_auth
from receiver.app.config import settings


logger = logging.getLogger(__name__)

credentials = CredentialStore(settings.username, settings.password)


def create_app(store: CredentialStore | None = None) -> FastAPI:
    store = store or credentials
    require_auth = basic_auth(store)

    application = FastAPI(title=settings.app_name, debug=settings.debug)

    @application.get("/healthz", tags=["meta"])
    async def health() -> dict[str, str]:  # pragma: no cover - simple endpoint
        return {"status": "ok"}

    @application.post(
        "/receive-metrics",
        response_class=PlainTextResponse,
        dependencies=[Depends(require_auth)],
    )
    async def receive_metrics(payload: Any = Body(None)) -> str:
        # Stub sink: acknowledge without validating or storing
        logger.info("Received metrics: %s", payload)
        return "Metrics received"

    @application.post("/update-receiver-password", dependencies=[Depends(require_auth)])
    async def update_receiver_password(payload: PasswordUpdate) -> dict[str, str]:
        if not payload.password:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="New password not provided.")
        store.replace(payload.password)
        logger.info("Receiver password updated")
        return {"detail": "Receiver password updated successfully."}

    return application


app = create_app()


def run() -> None:
    import uvicorn

    configure_logging(settings.log_level)
    logger.info("Metrics receiver running on http://%s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
