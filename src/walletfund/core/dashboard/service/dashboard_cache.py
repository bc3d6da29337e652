import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from walletfund.utilities.envelope import ApiEnvelope

logger = logging.getLogger(__name__)

DashboardFetcher = Callable[[], Awaitable[ApiEnvelope]]


def owner_key(token: str) -> str:
    """Cache key for the account behind a bearer token. The raw token is never stored or logged."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:32]


@dataclass
class DashboardEntry:
    data: Optional[Any] = None
    has_fetched: bool = False


class DashboardCache:
    """
    Per-owner dashboard data, created once at app startup and kept on
    ``app.state``. Owners are keyed by ``owner_key`` of the caller's token.
    """

    def __init__(self):
        self._entries: Dict[str, DashboardEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, owner: str) -> Optional[Any]:
        entry = self._entries.get(owner)
        return entry.data if entry else None

    def set(self, owner: str, data: Optional[Any]):
        self._entries[owner] = DashboardEntry(data=data, has_fetched=True)

    def has_fetched(self, owner: str) -> bool:
        entry = self._entries.get(owner)
        return bool(entry and entry.has_fetched)

    def reset_for_key(self, owner: str):
        if self._entries.pop(owner, None) is not None:
            logger.info(f"[DASHBOARD_CACHE_RESET] {owner}")

    def reset(self):
        self._entries.clear()
        logger.info("[DASHBOARD_CACHE_CLEARED]")

    async def refresh(self, owner: str, fetcher: DashboardFetcher) -> Optional[Any]:
        """Re-fetch unconditionally; a failed fetch keeps what was cached."""
        envelope = await fetcher()
        if envelope.ok and envelope.data is not None:
            self.set(owner, envelope.data)
        else:
            logger.warning(f"[DASHBOARD_REFRESH_FAILED] {owner}: {envelope.message}")
        return self.get(owner)

    async def get_or_fetch(self, owner: str, fetcher: DashboardFetcher) -> Optional[Any]:
        if self.has_fetched(owner):
            return self.get(owner)
        return await self.refresh(owner, fetcher)
