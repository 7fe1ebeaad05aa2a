"""Key-value string storage engines backing the cache."""

from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from animuse.storage.models import CacheRow


class KeyValueStorage(Protocol):
    """Persistent string store partitioned by key."""

    async def get_item(self, key: str) -> str | None:
        ...

    async def set_item(self, key: str, value: str) -> None:
        ...

    async def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage, used in tests and when no database is configured."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class SqlStorage:
    """Storage over the `cache_entries` table.

    Each call uses its own session, so concurrent reads are independent and
    writes are last-write-wins per key.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_item(self, key: str) -> str | None:
        async with self._session_factory() as session:
            stmt = select(CacheRow.value).where(CacheRow.key == key)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def set_item(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            insert_stmt = sqlite_insert(CacheRow).values(key=key, value=value, updated_at=now)
            upsert_stmt = insert_stmt.on_conflict_do_update(
                index_elements=["key"],
                set_={"value": value, "updated_at": now},
            )
            await session.execute(upsert_stmt)
            await session.commit()

    async def remove_item(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(CacheRow).where(CacheRow.key == key))
            await session.commit()
