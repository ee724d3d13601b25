"""Shared plumbing for the Google API clients."""

import asyncio
import time
from typing import Any, Callable, List, Optional

from googleapiclient.discovery import build

from ..utils.logging_config import get_logger, get_security_logger


class RateLimiter:
    """Sliding-window rate limiter for API requests."""

    def __init__(self, max_requests: int = 100, time_window: int = 60):
        self.max_requests = max_requests
        self.time_window = time_window
        self.requests: List[float] = []
        self._lock = asyncio.Lock()
        self.logger = get_logger(__name__)

    async def acquire(self) -> None:
        """Wait until another request fits in the window."""
        async with self._lock:
            while True:
                now = time.time()

                # Remove old requests outside the time window
                self.requests = [
                    req_time
                    for req_time in self.requests
                    if now - req_time < self.time_window
                ]

                if len(self.requests) < self.max_requests:
                    break

                wait_time = self.time_window - (now - self.requests[0])
                self.logger.warning(f"Rate limit reached, waiting {wait_time:.2f} seconds")
                await asyncio.sleep(wait_time)

            self.requests.append(now)

    def reset(self) -> None:
        self.requests.clear()


class GoogleServiceClient:
    """Base for clients wrapping a blocking ``googleapiclient`` service.

    Requests are built by a callable and executed in the default executor so
    the caller's event loop keeps running while the round trip blocks.
    """

    SERVICE_NAME = "google"

    def __init__(self, service: Any, rate_limit: int = 100):
        self.logger = get_logger(self.__class__.__module__)
        self.security_logger = get_security_logger()
        self.service = service
        self.rate_limiter = RateLimiter(max_requests=rate_limit, time_window=60)

    async def _execute(
        self,
        build_request: Callable[[], Any],
        endpoint: str,
        method: str = "GET",
        **log_fields: Any,
    ) -> Any:
        await self.rate_limiter.acquire()

        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, lambda: build_request().execute())

        self.security_logger.log_api_request(
            service=self.SERVICE_NAME, endpoint=endpoint, method=method, **log_fields
        )
        return response

    async def close(self) -> None:
        self.service = None
        self.logger.info(f"{self.SERVICE_NAME} client closed")


def build_service(api: str, version: str, credentials: Any, service: Optional[Any] = None):
    """Return ``service`` if given, else build a discovery client."""
    if service is not None:
        return service

    return build(api, version, credentials=credentials, cache_discovery=False)
