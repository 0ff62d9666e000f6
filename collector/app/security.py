import logging
import secrets
import threading
import time
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials


logger = logging.getLogger(__name__)

UNAUTHORIZED_DETAIL = "Unauthorized"
RATE_LIMITED_DETAIL = "Too many requests, please try again later."


class CredentialStore:
    """Holds the single username/password pair accepted by a process.

    The password lives only in memory and can be swapped at runtime through
    :meth:`replace`; readers always observe either the old or the new pair.
    """

    def __init__(self, username: str, password: str) -> None:
        self._lock = threading.Lock()
        self._username = username
        self._password = password

    def replace(self, password: str) -> None:
        if not password:
            raise ValueError("Password must not be empty")
        with self._lock:
            self._password = password

    def verify(self, username: str, password: str) -> bool:
        with self._lock:
            expected_username = self._username
            expected_password = self._password
        # Compare both halves so timing does not reveal which one mismatched
        username_ok = secrets.compare_digest(username.encode(), expected_username.encode())
        password_ok = secrets.compare_digest(password.encode(), expected_password.encode())
        return username_ok and password_ok


_basic_scheme = HTTPBasic(auto_error=False)


def basic_auth(store: CredentialStore):
    """Build a dependency enforcing HTTP Basic auth against ``store``."""

    async def verify_credentials(
        credentials: HTTPBasicCredentials | None = Depends(_basic_scheme),
    ) -> str:
        if credentials is None or not store.verify(credentials.username, credentials.password):
            if credentials is not None:
                logger.warning("Rejected credentials for user %s", credentials.username)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=UNAUTHORIZED_DETAIL,
                headers={"WWW-Authenticate": "Basic"},
            )
        return credentials.username

    return verify_credentials


@dataclass
class ClientWindow:
    requests: int = 0
    window_start: float = 0.0


class RateLimiter:
    """Fixed-window request limiter keyed by client address."""

    def __init__(self, max_requests: int, window_seconds: float, clock=time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._clients: dict[str, ClientWindow] = {}

    @staticmethod
    def client_key(request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def hit(self, key: str) -> bool:
        """Record one request for ``key``; return False when over the limit."""
        now = self._clock()
        with self._lock:
            state = self._clients.get(key)
            if state is None or now - state.window_start >= self.window_seconds:
                state = ClientWindow(requests=0, window_start=now)
                self._clients[key] = state
            state.requests += 1
            allowed = state.requests <= self.max_requests
            self._clear_expired_locked(now)
        return allowed

    def reset(self) -> None:
        with self._lock:
            self._clients.clear()

    def _clear_expired_locked(self, now: float) -> None:
        expired = [
            key
            for key, state in self._clients.items()
            if now - state.window_start >= self.window_seconds
        ]
        for key in expired:
            del self._clients[key]

    async def __call__(self, request: Request) -> None:
        key = self.client_key(request)
        if not self.hit(key):
            logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=RATE_LIMITED_DETAIL,
                headers={"Retry-After": str(int(self.window_seconds))},
            )
