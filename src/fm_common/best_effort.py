"""Best-effort side effects inside a settlement transaction.

Transaction-log writes and outbox inserts run in a SAVEPOINT so their failure
rolls back only themselves; the surrounding money movement still commits.
"""

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def run_best_effort(
    db: AsyncSession, what: str, op: Callable[[], Awaitable[object]]
) -> bool:
    """Run `op` in a savepoint. Returns False (and logs) if it raised."""
    try:
        async with db.begin_nested():
            await op()
    except Exception:
        logger.exception("Best-effort step failed: %s", what)
        return False
    return True
