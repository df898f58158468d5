"""Live-reload subscribers for the stw development server.

Browsers subscribe to ``/__reload`` with ``EventSource``; after every
successful rebuild each subscriber receives one ``reload`` event. Writes
happen under the registry lock, and a subscriber whose write fails is
dropped in the same pass. Missed messages are never replayed.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator

from .protocols import ReloadClient

RELOAD_PATH = "/__reload"
RELOAD_MESSAGE = b"data: reload\n\n"


class ClientRegistry:
    """Thread-safe set of connected reload subscribers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: set[ReloadClient] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def __contains__(self, client: object) -> bool:
        with self._lock:
            return client in self._clients

    def __iter__(self) -> Iterator[ReloadClient]:
        with self._lock:
            return iter(list(self._clients))

    def register(self, client: ReloadClient) -> None:
        with self._lock:
            self._clients.add(client)

    def deregister(self, client: ReloadClient) -> None:
        with self._lock:
            self._clients.discard(client)

    def broadcast(self, message: bytes = RELOAD_MESSAGE) -> int:
        """Send ``message`` to every subscriber, dropping those that fail.

        Returns:
            Number of subscribers the message was delivered to.
        """
        delivered = 0
        with self._lock:
            for client in list(self._clients):
                try:
                    client.send(message)
                except (OSError, ValueError):
                    self._clients.discard(client)
                else:
                    delivered += 1
        return delivered
