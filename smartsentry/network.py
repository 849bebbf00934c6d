"""SmartSentry — Network status service

One NetworkStatus instance is created by the host application and injected
into the components that care about connectivity. The platform's
connectivity listener pushes changes in through update().
"""

import logging
from typing import Callable, Optional

from smartsentry.models import NetworkState

logger = logging.getLogger("smartsentry.network")

Listener = Callable[[NetworkState], None]


class NetworkStatus:
    def __init__(self, initial: Optional[NetworkState] = None):
        self._state = initial or NetworkState()
        self._listeners: list[Listener] = []

    def current(self) -> NetworkState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    def on_change(self, callback: Listener) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def update(self, state: NetworkState):
        changed = state.is_online != self._state.is_online
        self._state = state
        if not changed:
            return
        logger.info(f"Network is now {'online' if state.is_online else 'offline'}")
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"Network listener failed: {e}")
