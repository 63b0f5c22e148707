"""Hole API client – authenticated async HTTP fetcher."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .config import HoleConfig
from .errors import DecodeError, HttpStatusError, NetworkError

logger = logging.getLogger("treasurehole.api")


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are accepted by json.loads but are not JSON
    raise ValueError(f"invalid JSON constant {name}")


class HoleAPI:
    """Thin async wrapper around the hole JSON API.

    Every request carries the ``TOKEN`` header.  There is no retry: a failed
    request raises and the caller aborts the run.
    """

    def __init__(
        self,
        token: str,
        cfg: HoleConfig | None = None,
        *,
        proxy: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cfg = cfg or HoleConfig()
        self._client = httpx.AsyncClient(
            timeout=self.cfg.timeout,
            headers={"TOKEN": token, "User-Agent": "treasurehole/1.0"},
            proxy=proxy,
            transport=transport,
        )

    async def _get_bytes(self, url: str, params: dict[str, Any] | None = None) -> bytes:
        try:
            resp = await self._client.get(url, params=params)
        except httpx.TransportError as exc:
            raise NetworkError(url, exc) from exc
        if resp.status_code != 200:
            raise HttpStatusError(resp.status_code, resp.reason_phrase, str(resp.url))
        logger.debug("GET %s -> %d bytes", resp.url, len(resp.content))
        return resp.content

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> tuple[str, Any]:
        """Fetch *url* and return ``(raw_text, decoded_value)``."""
        body = await self._get_bytes(url, params)
        try:
            text = body.decode("utf-8")
            return text, json.loads(text, parse_constant=_reject_constant)
        except ValueError as exc:
            raise DecodeError(url, str(exc)) from exc

    # ── public API ───────────────────────────────────────────────

    async def get_attentions(self, page: int) -> tuple[str, Any]:
        """Fetch one page of the bookmark (attention) list."""
        return await self._get_json(
            f"{self.cfg.api_base}/v3/contents/post/attentions", {"page": page}
        )

    async def get_detail(self, pid: int) -> tuple[str, Any]:
        """Fetch a post with all of its replies."""
        return await self._get_json(
            f"{self.cfg.api_base}/v3/contents/post/detail", {"pid": pid}
        )

    def image_url(self, path: str) -> str:
        return f"{self.cfg.image_base}/{path}"

    async def download_image(self, path: str) -> bytes:
        """Download an image given its path relative to the image host."""
        return await self._get_bytes(self.image_url(path))

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HoleAPI:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
