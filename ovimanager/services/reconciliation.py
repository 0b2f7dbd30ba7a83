import copy
import logging
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from config import SyncPhase
from database import DatabaseError
from services.remote_client import RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Loader = Callable[[], Awaitable[List[T]]]
Mutator = Callable[[List[T]], List[T]]


class OptimisticCollection(Generic[T]):
    """A view's list of items plus one in-flight optimistic mutation.

    Phases: IDLE -> PENDING -> COMMITTED | ROLLED_BACK. While PENDING the
    items show the optimistic state and the snapshot taken at ``begin()``
    is kept so ``rollback()`` can restore it. Reloads that arrive while
    pending refresh that snapshot instead of the visible items.
    """

    def __init__(
        self,
        loader: Loader,
        on_change: Optional[Callable[[List[T]], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._loader = loader
        self._on_change = on_change
        self._on_error = on_error
        self.items: List[T] = []
        self.phase = SyncPhase.IDLE
        self.last_error: Optional[str] = None
        self._prior: Optional[List[T]] = None

    @property
    def pending(self) -> bool:
        return self.phase == SyncPhase.PENDING

    def _changed(self) -> None:
        if self._on_change:
            self._on_change(self.items)

    def set_items(self, items: List[T]) -> None:
        if self.pending:
            self._prior = list(items)
            return
        self.items = list(items)
        self._changed()

    def begin(self, mutator: Mutator) -> None:
        """Show ``mutator(items)`` right away and remember the prior items.

        Raises:
            RuntimeError: If another mutation is still pending.
        """
        if self.pending:
            raise RuntimeError("An optimistic mutation is already pending")
        self._prior = self.items
        self.items = mutator(copy.deepcopy(self.items))
        self.phase = SyncPhase.PENDING
        self.last_error = None
        self._changed()

    def commit(self) -> None:
        if not self.pending:
            raise RuntimeError("No pending mutation to commit")
        self._prior = None
        self.phase = SyncPhase.COMMITTED

    def rollback(self, message: Optional[str] = None) -> None:
        """Restore the items seen before ``begin()`` and surface ``message``."""
        if not self.pending:
            raise RuntimeError("No pending mutation to roll back")
        self.items = self._prior if self._prior is not None else []
        self._prior = None
        self.phase = SyncPhase.ROLLED_BACK
        self.last_error = message
        self._changed()
        if message and self._on_error:
            self._on_error(message)

    async def refresh(self) -> None:
        """Re-fetch the authoritative items through the loader."""
        try:
            items = await self._loader()
        except (RemoteError, DatabaseError) as e:
            logger.warning(f"Refresh failed, keeping current items: {e}")
            return
        self.set_items(items)

    async def apply(
        self,
        mutator: Mutator,
        remote_call: Callable[[], Awaitable[Any]],
        error_message: str,
    ) -> bool:
        """Run the whole optimistic flow. Returns True when the write succeeded.

        The items are re-fetched afterwards in both outcomes.
        """
        self.begin(mutator)
        try:
            await remote_call()
        except (RemoteError, DatabaseError) as e:
            logger.error(f"Optimistic mutation failed: {e}")
            self.rollback(error_message)
            ok = False
        except Exception:
            logger.exception("Unexpected error in optimistic mutation")
            self.rollback(error_message)
            await self.refresh()
            raise
        else:
            self.commit()
            ok = True
        await self.refresh()
        return ok
