"""Helpers for downloading the CAS (Combot Anti-Spam) ban list."""

from __future__ import annotations

import csv
import io
import logging

import httpx

logger = logging.getLogger(__name__)


def parse_banned_ids(text: str) -> frozenset[int]:
    """Parse the line-delimited export; the user id is the first column."""

    parsed: set[int] = set()
    for lineno, row in enumerate(csv.reader(io.StringIO(text)), start=1):
        if not row:
            continue
        user_raw = row[0].strip()
        if not user_raw or user_raw.startswith("#"):
            continue
        try:
            parsed.add(int(user_raw))
        except ValueError:
            logger.warning("Skipping unparsable CAS export line %d: %r", lineno, user_raw)
    return frozenset(parsed)


class CasClient:
    """HTTP client for the CAS export endpoint."""

    def __init__(
        self,
        export_url: str,
        timeout: float = 10.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.export_url = export_url
        self.timeout = httpx.Timeout(timeout)
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_banned_ids(self) -> frozenset[int] | None:
        """Download the full export.

        Returns None when the download fails so callers keep the list they have.
        """

        try:
            response = await self._client.get(self.export_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("CAS export download failed: %s", exc)
            return None
        return parse_banned_ids(response.text)
