#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import timedelta
import os

from macaroonbakery.bakery._store import RootKeyStore

from charmstore.context import Context
from charmstore.db.repositories.rootkeys import RootKeysRepository
from charmstore.models.rootkeys import RootKey
from charmstore.services.base import Service
from charmstore.utils.date import utcnow


def _key_id(key: RootKey) -> bytes:
    return str(key.id).encode("ascii")


class RootKeySnapshot(RootKeyStore):
    """Synchronous view of the root keys, loaded for a single request.

    The bakery Oven calls its root key store synchronously, so the keys a
    request may need are read from the database beforehand.
    """

    def __init__(
        self,
        keys: dict[bytes, bytes],
        current: tuple[bytes, bytes] | None = None,
    ):
        self._keys = keys
        self._current = current

    def get(self, id):
        if isinstance(id, str):
            id = id.encode("ascii")
        return self._keys.get(id)

    def root_key(self):
        if self._current is None:
            raise ValueError("root key snapshot was not loaded for minting")
        return self._current


class RootKeysService(Service):
    # size in bytes of the key
    KEY_LENGTH = 24
    # A new key is created when the newest one is older than this.
    GENERATE_INTERVAL = timedelta(hours=24)
    # Minimum lifetime left to a key used for minting.
    EXPIRY_DURATION = timedelta(hours=24)

    def __init__(
        self, context: Context, rootkeys_repository: RootKeysRepository
    ):
        super().__init__(context)
        self.rootkeys_repository = rootkeys_repository

    async def root_key(self) -> RootKey:
        """Return the key to mint new macaroons with, creating it if needed."""
        now = utcnow()
        key = await self.rootkeys_repository.find_best_key(
            created_after=now - self.GENERATE_INTERVAL,
            expires_after=now + self.EXPIRY_DURATION,
        )
        if key is not None:
            return key
        await self.rootkeys_repository.delete_expired(now)
        return await self.rootkeys_repository.create(
            created=now,
            expiration=now + self.GENERATE_INTERVAL + self.EXPIRY_DURATION,
            material=os.urandom(self.KEY_LENGTH),
        )

    async def get(self, id: bytes) -> bytes | None:
        """Return the material of an unexpired key."""
        try:
            key_id = int(id)
        except ValueError:
            return None
        key = await self.rootkeys_repository.find_by_id(key_id, utcnow())
        return key.material if key else None

    async def snapshot(self, for_minting: bool) -> RootKeySnapshot:
        keys = {
            _key_id(key): key.material
            for key in await self.rootkeys_repository.find_valid(utcnow())
        }
        current = None
        if for_minting:
            key = await self.root_key()
            keys[_key_id(key)] = key.material
            current = (key.material, _key_id(key))
        return RootKeySnapshot(keys, current)
