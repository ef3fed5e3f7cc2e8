"""
DNS propagation check over DNS-over-HTTPS.

A record is considered propagated once the public resolver returns a
non-empty `Answer` list for the A query. Failed attempts (no answer yet, or a
request error) back off exponentially: 1s, 2s, 4s, ... capped at `max_wait`.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from sitebuilder.config import settings

logger = logging.getLogger("sitebuilder.dns")


class DNSPropagationChecker:
    def __init__(
        self,
        resolver_url: Optional[str] = None,
        max_wait: Optional[float] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.resolver_url = resolver_url or settings.DNS_RESOLVER_URL
        self.max_wait = max_wait if max_wait is not None else settings.DNS_PROPAGATION_MAX_WAIT
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep

    async def _lookup_a_record(self, client: httpx.AsyncClient, domain: str) -> bool:
        response = await client.get(
            self.resolver_url,
            params={"name": domain, "type": "A"},
            headers={"Accept": "application/dns-json"},
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected resolver reply: {type(payload).__name__}")
        answers = payload.get("Answer") or []
        if not isinstance(answers, list) or not all(isinstance(a, dict) for a in answers):
            raise ValueError("Unexpected Answer section in resolver reply")
        if answers:
            logger.info("DNS A record found for %s: %s", domain, answers[0].get("data"))
            return True
        return False

    def _log_retry(self, domain: str, max_attempts: int) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            wait = state.next_action.sleep if state.next_action else 0
            if state.outcome is not None and state.outcome.failed:
                logger.warning(
                    "Error checking DNS propagation for %s (attempt %d/%d): %s; retrying in %.0fs",
                    domain, state.attempt_number, max_attempts, state.outcome.exception(), wait,
                )
            else:
                logger.info(
                    "DNS A record not found for %s (attempt %d/%d), waiting %.0fs before retry",
                    domain, state.attempt_number, max_attempts, wait,
                )
        return before_sleep

    async def check(self, domain: str, max_attempts: Optional[int] = None) -> bool:
        """Return True once the A record resolves, False after `max_attempts` lookups."""
        attempts = max_attempts or settings.DNS_PROPAGATION_ATTEMPTS
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=1, min=1, max=self.max_wait),
            retry=(
                retry_if_result(lambda found: found is False)
                | retry_if_exception_type((httpx.HTTPError, ValueError))
            ),
            before_sleep=self._log_retry(domain, attempts),
            retry_error_callback=lambda state: False,
            sleep=self._sleep,
        )

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            found = await retrying(self._lookup_a_record, client, domain)

        if not found:
            logger.error("DNS A record not propagated for %s after %d attempts", domain, attempts)
        return found


async def check_propagation(domain: str, max_attempts: int = 3) -> bool:
    return await DNSPropagationChecker().check(domain, max_attempts=max_attempts)
