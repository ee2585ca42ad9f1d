from __future__ import annotations

import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable
from urllib.parse import urlparse

import httpx
from loguru import logger

from app.core.config import Settings, get_settings
from app.domain import LogEntry

POKERNOW_HOSTS = {"www.pokernow.com", "pokernow.com"}

_GAME_PATH_RE = re.compile(r"/games/([a-zA-Z0-9_-]+)")
_MTT_PATH_RE = re.compile(r"/mtt/([a-zA-Z0-9_-]+)")


def is_pokernow_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        return urlparse(url).hostname in POKERNOW_HOSTS
    except ValueError:
        return False


def extract_table_id(url: str | None) -> str | None:
    """Return the table id from a lobby URL.

    Accepts ``/games/{id}`` links and, for multi-table tournaments,
    ``/mtt/{id}`` links (the tournament id is returned in that case).
    """

    if not url:
        return None
    try:
        path = urlparse(url).path
    except ValueError:
        logger.warning("Could not parse PokerNow URL {}", url)
        return None
    for pattern in (_GAME_PATH_RE, _MTT_PATH_RE):
        match = pattern.search(path)
        if match:
            return match.group(1)
    return None


def extract_tournament_id(url: str | None) -> str | None:
    if not url:
        return None
    try:
        match = _MTT_PATH_RE.search(urlparse(url).path)
    except ValueError:
        return None
    return match.group(1) if match else None


class PokerNowClient:
    """Thin wrapper around the PokerNow table log endpoint.

    Every fetch treats failure as absence: callers receive ``None`` (or a
    shorter result) and should retry on a later poll.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        cookie: str | None = None,
        timeout: float | None = None,
        search_upper_bound: int | None = None,
        probe_attempts: int | None = None,
        batch_size: int | None = None,
        batch_delay: float | None = None,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = settings or get_settings()
        self.base_url = base_url or str(settings.pokernow_base_url)
        self.search_upper_bound = search_upper_bound or settings.hand_search_upper_bound
        self.probe_attempts = probe_attempts or settings.hand_probe_attempts
        self.batch_size = batch_size or settings.hand_fetch_batch_size
        self.batch_delay = (
            settings.hand_fetch_batch_delay_seconds if batch_delay is None else batch_delay
        )
        self.timeout = timeout or settings.pokernow_request_timeout_seconds
        self._sleep = sleep

        headers = {"accept": "application/json, text/plain, */*"}
        cookie = cookie or settings.pokernow_cookie
        if cookie:
            headers["Cookie"] = cookie
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=transport,
        )

    @staticmethod
    def _log_path(table_id: str) -> str:
        return f"/games/{table_id}/log_v3"

    def _get_hand(self, table_id: str, hand_number: int) -> httpx.Response:
        return self.client.get(self._log_path(table_id), params={"hand_number": hand_number})

    def _probe(self, table_id: str, hand_number: int) -> int | None:
        """Return the HTTP status for a hand, or ``None`` when every attempt failed."""

        for attempt in range(1, self.probe_attempts + 1):
            try:
                return self._get_hand(table_id, hand_number).status_code
            except httpx.HTTPError as exc:
                logger.warning(
                    "Probe failed table={} hand={} attempt={}/{}: {}",
                    table_id,
                    hand_number,
                    attempt,
                    self.probe_attempts,
                    exc,
                )
        return None

    def find_last_hand(self, table_id: str) -> int:
        """Binary search for the highest hand number that exists on a table.

        Returns 0 when no hand can be found.
        """

        low, high = 1, self.search_upper_bound
        last_valid = 0
        while low <= high:
            mid = (low + high) // 2
            status = self._probe(table_id, mid)
            if status is not None and 200 <= status < 300:
                last_valid = mid
                low = mid + 1
            elif status == 404 and mid == 1:
                # Not even hand #1: an MTT id or a table that has not started.
                return 0
            else:
                high = mid - 1
        logger.debug("Last hand for table {} is {}", table_id, last_valid)
        return last_valid

    def fetch_hand(self, table_id: str, hand_number: int) -> list[LogEntry] | None:
        try:
            response = self._get_hand(table_id, hand_number)
        except httpx.HTTPError as exc:
            logger.warning("Failed to fetch hand {} of table {}: {}", hand_number, table_id, exc)
            return None
        if not response.is_success:
            return None
        try:
            payload: Any = response.json()
        except ValueError:
            logger.warning("Non-JSON log payload for hand {} of table {}", hand_number, table_id)
            return None

        if isinstance(payload, dict):
            payload = payload.get("logs")
        if not isinstance(payload, list):
            return None
        return [LogEntry.from_payload(item) for item in payload if isinstance(item, dict)]

    def fetch_hand_range(self, table_id: str, start: int, end: int) -> list[list[LogEntry]]:
        """Fetch hands ``start..end`` inclusive in rate-limited concurrent batches.

        Hands that cannot be fetched are left out of the result.
        """

        hands: list[list[LogEntry]] = []
        if end < start:
            return hands

        with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
            for batch_start in range(start, end + 1, self.batch_size):
                batch_end = min(batch_start + self.batch_size - 1, end)
                numbers = range(batch_start, batch_end + 1)
                batch = pool.map(lambda number: self.fetch_hand(table_id, number), numbers)
                hands.extend(hand for hand in batch if hand is not None)

                if batch_end < end and self.batch_delay > 0:
                    self._sleep(self.batch_delay)
        return hands

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "PokerNowClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
