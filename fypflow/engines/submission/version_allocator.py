"""
Version Allocator - gap-free submission version numbers.

Versions for a (project, document type) pair run 1..N. Callers hold the
pair's version key for the whole "read max, increment, insert, commit"
sequence; an aborted transaction gives its number back because nothing was
inserted. The unique constraint on (project, document type, version) turns
any residual race into an IntegrityError that the transaction runner retries.
"""

import uuid
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.kernel import repositories
from fypflow.kernel.locks import version_key


def serialized(project_id: uuid.UUID, document_type_id: uuid.UUID) -> Tuple[str]:
    """Lock keys that serialize version allocation for a pair."""
    return (version_key(project_id, document_type_id),)


async def next_version(
    session: AsyncSession,
    project_id: uuid.UUID,
    document_type_id: uuid.UUID,
) -> int:
    """max(version) + 1 for the pair; 1 for the first submission."""
    return await repositories.max_version(session, project_id, document_type_id) + 1
