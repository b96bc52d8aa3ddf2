"""Run one approval action as a single all-or-nothing transaction.

A version conflict (another action committed first) rolls back and re-runs
the whole action once against freshly loaded rows. A second conflict is
reported to the caller as ``ConcurrentUpdateError``.
"""

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from hr_approval.core.effects import PostCommitEffects
from hr_approval.core.exceptions import ConcurrentUpdateError, ConsistencyError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2


async def run_action(
    db: AsyncSession,
    action: Callable[[PostCommitEffects], Awaitable[T]],
    *,
    name: str = "action",
) -> T:
    effects = PostCommitEffects()
    for attempt in range(1, MAX_ATTEMPTS + 1):
        effects.clear()
        try:
            result = await action(effects)
            await db.commit()
        except StaleDataError:
            await db.rollback()
            if attempt >= MAX_ATTEMPTS:
                logger.warning("Concurrent update conflict, giving up", extra={"action": name, "attempt": attempt})
                raise ConcurrentUpdateError()
            logger.warning("Concurrent update conflict, retrying", extra={"action": name, "attempt": attempt})
            continue
        except ConsistencyError as e:
            await db.rollback()
            logger.error(
                "Approval consistency error: %s",
                e.detail,
                extra={"action": name, **e.context},
            )
            raise
        except Exception:
            await db.rollback()
            raise
        await effects.run()
        return result
    raise ConcurrentUpdateError()
