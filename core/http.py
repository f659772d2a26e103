import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from .errors import ErrorKind
from .logger import ScanLogger

RATE_LIMIT_BASE_DELAY = 2.0
RETRY_BASE_DELAY = 1.0
DEFAULT_MAX_ATTEMPTS = 3

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class FetchOutcome:
    ok: bool
    response: Optional[httpx.Response] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    attempts: int = 0

    @property
    def status(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


class ResilientClient:
    """
    Wraps an httpx.AsyncClient with the retry policy:
    2xx returns, 429 backs off 2s*2^n, 5xx and transport faults back off
    1s*2^n, any other 4xx is terminal. Nothing sleeps after the last attempt.
    """
    def __init__(self, client: httpx.AsyncClient, logger: ScanLogger = None, sleep: Sleep = None):
        self.client = client
        self.logger = logger or ScanLogger()
        self.sleep = sleep or asyncio.sleep

    async def fetch_with_retry(self, method: str, url: str, max_attempts: int = DEFAULT_MAX_ATTEMPTS, **kwargs) -> FetchOutcome:
        last_error: Optional[str] = None
        last_kind: Optional[ErrorKind] = None
        attempts = 0
        for attempt in range(max_attempts):
            attempts = attempt + 1
            self.logger.log(f"    [*] {method} {url} (attempt {attempts}/{max_attempts})", "dim")
            try:
                r = await self.client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                last_kind = ErrorKind.TRANSIENT_NETWORK
                self.logger.log(f"    [!] Attempt {attempts} failed: {last_error}", "yellow")
                wait = RETRY_BASE_DELAY * 2 ** attempt
            else:
                if r.is_success:
                    return FetchOutcome(ok=True, response=r, attempts=attempts)
                if r.status_code == 429:
                    last_kind = last_kind or ErrorKind.RATE_LIMITED
                    wait = RATE_LIMIT_BASE_DELAY * 2 ** attempt
                    self.logger.log(f"    [!] Rate limited on {url}", "yellow")
                elif r.status_code >= 500:
                    last_error = f"HTTP {r.status_code}"
                    last_kind = ErrorKind.SERVER_FAULT
                    wait = RETRY_BASE_DELAY * 2 ** attempt
                else:
                    kind = ErrorKind.ACCESS_DENIED if r.status_code in (401, 403) else ErrorKind.CLIENT_REJECTION
                    return FetchOutcome(ok=False, response=r, error=f"HTTP {r.status_code}", kind=kind, attempts=attempts)

            if attempts < max_attempts:
                await self.sleep(wait)

        return FetchOutcome(
            ok=False,
            error=last_error or "Max retries exceeded",
            kind=last_kind or ErrorKind.RATE_LIMITED,
            attempts=attempts,
        )

    async def get(self, url: str, max_attempts: int = DEFAULT_MAX_ATTEMPTS, **kwargs) -> FetchOutcome:
        return await self.fetch_with_retry("GET", url, max_attempts=max_attempts, **kwargs)
