"""
Cancellation tokens for async entitlement work.

A token is handed to each refresh; firing it (on teardown or logout) aborts
the awaited calls and stops results from being applied.
"""
import asyncio
import logging
from typing import Awaitable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised inside an operation whose token fired."""


class CancelToken:
    """One-shot cancellation signal, optionally linked to parent tokens."""

    def __init__(self, *parents: Optional["CancelToken"]):
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None
        self._children: List["CancelToken"] = []
        self._parents: List["CancelToken"] = []
        for parent in parents:
            if parent is None:
                continue
            if parent.cancelled:
                self._cancelled = True
            else:
                parent._children.append(self)
                self._parents.append(parent)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _get_event(self) -> asyncio.Event:
        # Created lazily so tokens can be built outside a running loop
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        children, self._children = self._children, []
        for child in children:
            child.cancel()

    def linked(self) -> "CancelToken":
        """Child token fired together with this one."""
        return CancelToken(self)

    def release(self) -> None:
        """Detach from parents once the operation is over."""
        for parent in self._parents:
            if self in parent._children:
                parent._children.remove(self)
        self._parents = []

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await a call, abandoning it if the token fires first.

        Raises:
            OperationCancelled: token fired before or while waiting
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._get_event().wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Abandoned operation failed after cancellation: {e}")
        logger.debug("Operation abandoned after cancellation")
        raise OperationCancelled()
