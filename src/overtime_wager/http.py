from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_NO_PAYLOAD = object()


class EndpointUnavailable(Exception):
    def __init__(self, attempts: list[tuple[str, str]]) -> None:
        detail = "; ".join(f"{url}: {reason}" for url, reason in attempts) or "no endpoints"
        super().__init__(f"All endpoints failed ({detail})")
        self.attempts = attempts


class EndpointChain:
    """Ordered fallback over one external dependency.

    Every direct URL is tried first, in order; when a pass-through proxy is
    configured each URL is then retried once through it. Nothing else is
    retried, so a call makes at most ``2 * len(urls)`` requests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        proxy_url: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.client = client
        self.proxy_url = proxy_url.strip() if proxy_url else None
        self.headers = {"Accept": "application/json", **(headers or {})}

    def candidates(
        self, urls: Sequence[str], params: dict[str, Any] | None = None
    ) -> list[tuple[str, dict[str, Any] | None]]:
        direct = [(url, params) for url in urls]
        if not self.proxy_url:
            return direct
        proxied = [
            (self.proxy_url, {"url": str(httpx.URL(url, params=params))}) for url in urls
        ]
        return direct + proxied

    async def get_json(
        self,
        urls: Sequence[str],
        params: dict[str, Any] | None = None,
        accept: Callable[[Any], bool] | None = None,
    ) -> Any:
        return await self._run("GET", urls, params=params, body=None, accept=accept)

    async def post_json(
        self,
        urls: Sequence[str],
        body: Any,
        accept: Callable[[Any], bool] | None = None,
    ) -> Any:
        return await self._run("POST", urls, params=None, body=body, accept=accept)

    async def _run(
        self,
        method: str,
        urls: Sequence[str],
        params: dict[str, Any] | None,
        body: Any,
        accept: Callable[[Any], bool] | None,
    ) -> Any:
        attempts: list[tuple[str, str]] = []
        fallback: Any = _NO_PAYLOAD

        for url, query in self.candidates(urls, params):
            try:
                resp = await self.client.request(
                    method, url, params=query, json=body, headers=self.headers
                )
                resp.raise_for_status()
                payload = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.debug("%s %s failed: %s", method, url, exc)
                attempts.append((url, str(exc) or type(exc).__name__))
                continue

            if accept is None or accept(payload):
                return payload

            logger.debug("%s %s returned an unusable payload, trying next endpoint", method, url)
            attempts.append((url, "unusable payload"))
            if fallback is _NO_PAYLOAD:
                fallback = payload

        if fallback is not _NO_PAYLOAD:
            return fallback

        logger.warning("%s exhausted %d endpoint(s)", method, len(attempts))
        raise EndpointUnavailable(attempts)
