"""
DFP Lookup Cache

Persistent point-lookup stores mapping names to DFP system-assigned ids, so a
name that was resolved once never needs another network round trip.

Each namespace lives in its own SQLite file under
``<cache_dir>/<namespace>Store/``. The stores never expire; to invalidate a
namespace, delete its directory (or call ``LookupCacheRegistry.clear``).
The stores are not safe for use by several processes at once.
"""

import asyncio
import logging
import shutil
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .utils.constants import CacheNamespace
from .utils.error_handler import DfpCacheWriteError

logger = logging.getLogger(__name__)

STORE_FILENAME = "lookup.sqlite3"


class Base(DeclarativeBase):
    """Declarative base for lookup store tables."""

    pass


class LookupEntry(Base):
    __tablename__ = "lookup_entries"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(String(64), nullable=False)


class LookupCache:
    """Name -> id store for one namespace."""

    def __init__(self, namespace: CacheNamespace, cache_dir: str | Path):
        self.namespace = namespace
        self.store_path = Path(cache_dir) / namespace.store_name
        self._engine = None
        self._session_factory: sessionmaker | None = None
        # First use happens on worker threads
        self._init_lock = threading.Lock()
        self._write_lock = threading.Lock()

    def _get_session_factory(self) -> sessionmaker:
        if self._session_factory is not None:
            return self._session_factory
        with self._init_lock:
            if self._session_factory is None:
                self.store_path.mkdir(parents=True, exist_ok=True)
                engine = create_engine(
                    f"sqlite:///{self.store_path / STORE_FILENAME}",
                    connect_args={"check_same_thread": False, "timeout": 30},
                )
                Base.metadata.create_all(engine)
                self._engine = engine
                self._session_factory = sessionmaker(bind=engine)
        return self._session_factory

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._get_session_factory()()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_sync(self, key: str) -> str | None:
        """Return the cached id for ``key``, or None on a miss.

        A store that cannot be read counts as a miss.
        """
        try:
            with self._session() as session:
                entry = session.scalars(select(LookupEntry).filter_by(key=key)).first()
                return entry.value if entry else None
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Reading {self.namespace.value} cache entry '{key}' failed, treating as miss: {e}")
            return None

    def put_sync(self, key: str, identifier: str) -> None:
        """Store ``identifier`` under ``key``, replacing any previous value.

        Raises:
            DfpCacheWriteError: If the store cannot be written
        """
        try:
            with self._write_lock, self._session() as session:
                session.merge(LookupEntry(key=key, value=str(identifier)))
                session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise DfpCacheWriteError(
                f"Locally storing {self.namespace.value} '{key}' failed: {e}",
                {"namespace": self.namespace.value, "key": key},
            ) from e

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self.get_sync, key)

    async def put(self, key: str, identifier: str) -> None:
        await asyncio.to_thread(self.put_sync, key, identifier)

    def close(self) -> None:
        with self._init_lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None


class LookupCacheRegistry:
    """Opens one LookupCache per namespace under a shared directory."""

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)
        self._caches: dict[CacheNamespace, LookupCache] = {}

    def get(self, namespace: CacheNamespace) -> LookupCache:
        if namespace not in self._caches:
            self._caches[namespace] = LookupCache(namespace, self.cache_dir)
        return self._caches[namespace]

    def clear(self, namespace: CacheNamespace) -> None:
        """Invalidate a namespace by deleting its store directory."""
        cache = self._caches.pop(namespace, None)
        if cache is not None:
            cache.close()
        store_path = self.cache_dir / namespace.store_name
        if store_path.exists():
            shutil.rmtree(store_path)
            logger.info(f"Cleared {namespace.value} lookup cache at {store_path}")

    def close(self) -> None:
        for cache in self._caches.values():
            cache.close()
        self._caches.clear()
