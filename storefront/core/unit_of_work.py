"""
Unit of work

An ordered list of async steps executed inside a single database
transaction on a dedicated session. Steps share a context dict so that a
later step can read what an earlier one produced (for example the id of a
freshly inserted row). If any step raises, the transaction is rolled back
and the exception propagates unchanged; nothing the earlier steps wrote is
visible to other sessions.

Usage:
    uow = UnitOfWork(AsyncSessionLocal)
    uow.add_step("insert_order", insert_order)
    uow.add_step("decrement_stock", decrement)
    context = await uow.run()
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

Step = Callable[[AsyncSession, Dict[str, Any]], Awaitable[None]]


class UnitOfWork:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        name: str = "unit_of_work",
        context: Optional[Dict[str, Any]] = None,
    ):
        self._session_factory = session_factory
        self.name = name
        self.context: Dict[str, Any] = dict(context or {})
        self._steps: List[Tuple[str, Step]] = []
        self._used = False

    def add_step(self, name: str, step: Step) -> "UnitOfWork":
        self._steps.append((name, step))
        return self

    @property
    def step_names(self) -> List[str]:
        return [name for name, _ in self._steps]

    async def run(self) -> Dict[str, Any]:
        """
        Begin, run every step in order, commit.

        Returns the shared context. Any exception rolls back the whole
        transaction and is re-raised.
        """
        if self._used:
            raise RuntimeError(f"{self.name} has already been run")
        self._used = True

        current = None
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    for current, step in self._steps:
                        await step(session, self.context)
            except Exception as e:
                logger.warning(
                    "%s rolled back at step %r: %s", self.name, current, type(e).__name__
                )
                raise

        logger.debug("%s committed %d steps", self.name, len(self._steps))
        return self.context
