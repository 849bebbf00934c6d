"""SmartSentry — Bearer credential persistence"""

import logging
from typing import Optional

from smartsentry.config import TOKEN_KEY
from smartsentry.storage import KeyValueStore

logger = logging.getLogger("smartsentry.token")


class TokenStore:
    """Sole owner of the persisted bearer token. No structural validation is done here."""

    def __init__(self, store: KeyValueStore, key: str = TOKEN_KEY):
        self._store = store
        self._key = key

    async def save(self, token: str) -> None:
        await self._store.set_item(self._key, token)
        logger.info("Credential saved")

    async def load(self) -> Optional[str]:
        return await self._store.get_item(self._key)

    async def clear(self) -> None:
        await self._store.remove_item(self._key)
        logger.info("Credential cleared")
