"""Persistence of per-document content hashes across ingestion runs.

A document hash is the SHA-256 of a document's extracted text.  Comparing
it with the previous run's value tells the pipeline whether the document
has to be re-chunked and re-embedded.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy import String, delete, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ragline.config import settings


class HashStore(ABC):
    """Key/value store mapping document references to content hashes."""

    @abstractmethod
    async def get_hash(self, document_reference: str) -> str | None:
        """Return the stored hash, or ``None`` when the reference is unknown."""
        ...

    @abstractmethod
    async def insert(self, document_reference: str, hash_value: str) -> None:
        """First sighting of a document: add a new row."""
        ...

    @abstractmethod
    async def update(self, document_reference: str, hash_value: str) -> None:
        """The document changed: replace its hash."""
        ...

    @abstractmethod
    async def delete(self, document_references: list[str]) -> None:
        """Remove rows for every reference in *document_references*."""
        ...


class Base(DeclarativeBase):
    pass


class DocumentHash(Base):
    """One row per document reference."""

    __tablename__ = "document_hashes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    document_reference: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)


class SqlHashStore(HashStore):
    """SQLAlchemy (async) implementation of :class:`HashStore`.

    Parameters
    ----------
    url:
        Async database URL, e.g. ``sqlite+aiosqlite:///./ragline.db``.
    engine:
        Pre-built engine; takes precedence over *url*.
    """

    def __init__(self, url: str = settings.hash_db_url, *, engine: AsyncEngine | None = None) -> None:
        self._engine = engine or create_async_engine(url)
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)

    async def init_schema(self) -> None:
        """Create the ``document_hashes`` table if it does not exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def get_hash(self, document_reference: str) -> str | None:
        async with self._sessions() as session:
            result = await session.execute(
                select(DocumentHash.hash).where(DocumentHash.document_reference == document_reference)
            )
            return result.scalar_one_or_none()

    async def insert(self, document_reference: str, hash_value: str) -> None:
        async with self._sessions.begin() as session:
            session.add(DocumentHash(document_reference=document_reference, hash=hash_value))

    async def update(self, document_reference: str, hash_value: str) -> None:
        async with self._sessions.begin() as session:
            await session.execute(
                update(DocumentHash)
                .where(DocumentHash.document_reference == document_reference)
                .values(hash=hash_value)
            )

    async def delete(self, document_references: list[str]) -> None:
        if not document_references:
            return
        async with self._sessions.begin() as session:
            await session.execute(
                delete(DocumentHash).where(DocumentHash.document_reference.in_(document_references))
            )
