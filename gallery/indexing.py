"""Search index notification.

The registry only tells the index that something changed; the index
decides what to re-read. Delivery is best effort.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class IndexNotifier:
    """Tells the search index that registry content changed."""

    def notify_changed(self, package_id: str = "", version: str = "") -> None:
        raise NotImplementedError


class NullIndexNotifier(IndexNotifier):
    """Used when no index is configured."""

    def notify_changed(self, package_id: str = "", version: str = "") -> None:
        logger.debug("No search index configured; skipping notification")


class HttpIndexNotifier(IndexNotifier):
    """POSTs a change notice to a search index endpoint."""

    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None) -> None:
        if not url:
            raise ValueError("Index URL must not be empty")
        self.url = url
        self.timeout = timeout
        self._client = client

    def notify_changed(self, package_id: str = "", version: str = "") -> None:
        payload = {
            "event": "package.changed",
            "package_id": package_id,
            "version": version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self._client is not None:
            response = self._client.post(self.url, json=payload, timeout=self.timeout)
        else:
            response = httpx.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        logger.debug("Notified search index at %s (%d)", self.url, response.status_code)


def notifier_for(url: str, timeout: float = 5.0) -> IndexNotifier:
    return HttpIndexNotifier(url, timeout) if url else NullIndexNotifier()
