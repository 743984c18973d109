"""
Client connectivity signal: tracks online/offline transitions and notifies
subscribers, optionally polling a probe.
"""

import logging
import threading
from typing import Awaitable, Callable, List, Optional

import httpx

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]
ConnectivityListener = Callable[[bool], None]


def http_probe(url: str, timeout: float = 5.0) -> Probe:
    """Probe reporting online when ``url`` answers a HEAD request."""

    async def probe() -> bool:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.head(url)
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.debug(f"Connectivity probe to {url} failed: {e}")
            return False

    return probe


class ConnectivityMonitor:
    """Holds the current online state and fans out transitions."""

    def __init__(self, online: bool = True, probe: Optional[Probe] = None):
        self._online = online
        self.probe = probe
        self._listeners: List[ConnectivityListener] = []
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ConnectivityListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def set_online(self, online: bool) -> None:
        """Update the state; listeners only hear about real transitions."""
        with self._lock:
            changed = online != self._online
            self._online = online
            listeners = list(self._listeners)

        if not changed:
            return

        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        for listener in listeners:
            try:
                listener(online)
            except Exception as e:
                logger.warning(f"Connectivity listener failed: {e}")

    async def check(self) -> bool:
        """Run the probe (if any) and apply its verdict."""
        if self.probe is None:
            return self._online
        try:
            online = bool(await self.probe())
        except Exception as e:
            logger.warning(f"Connectivity probe raised: {e}")
            online = False
        self.set_online(online)
        return online
