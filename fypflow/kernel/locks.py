"""
Keyed lock table.

Serializes work per logical key (a (project, document type) pair, a
submission, a project's result) inside one process. On PostgreSQL the same
keys are also taken as transaction-scoped advisory locks so several worker
processes agree; those are released by commit or rollback.
"""

import asyncio
import hashlib
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


def version_key(project_id: uuid.UUID, document_type_id: uuid.UUID) -> str:
    return f"version:{project_id}:{document_type_id}"


def submission_key(submission_id: uuid.UUID) -> str:
    return f"submission:{submission_id}"


def result_key(project_id: uuid.UUID) -> str:
    return f"result:{project_id}"


def advisory_key(key: str) -> int:
    """Hash a lock key into the signed 64-bit space of pg advisory locks."""
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


async def acquire_advisory_lock(session: AsyncSession, key: str) -> None:
    """Take a transaction-scoped advisory lock when running on PostgreSQL."""
    if session.get_bind().dialect.name != "postgresql":
        return
    await session.execute(select(func.pg_advisory_xact_lock(advisory_key(key))))


@dataclass
class _Entry:
    lock: asyncio.Lock
    holders: int = 0


class KeyedLockManager:
    """
    Mutex per key, created on demand and dropped when nobody holds or waits.

    Usage:
        async with locks.hold(version_key(project_id, doc_type_id)):
            ...
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry(lock=asyncio.Lock())
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._entries.pop(key, None)

    def is_held(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
