"""Generic single-flight async store with observer notification.

Every store in :mod:`ccauth.stores` extends :class:`AsyncStore`, which
owns one :class:`StoreState` snapshot and moves it through::

    Idle --load--> Loading --> Loaded (data) | Loaded (error) --reset--> Idle

Rules enforced here:

* **Single flight.** :meth:`AsyncStore.load` while a load is in progress is a
  no-op. There is never more than one outstanding call per store.
* **Data XOR error.** A completed load carries either data or an error.
* **No stray exceptions.** Errors raised by the task are captured into
  :attr:`StoreState.error`; they never propagate out of ``load``.
* **Stale results are discarded.** Every load gets a generation number. If
  the load is abandoned (:meth:`AsyncStore.abandon`) before the task
  finishes, the eventual result no longer matches and is dropped.
* **Synchronous notification.** Observers run right after each committed
  transition, in subscription order, with the new snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional

from ccauth.exceptions import CcauthError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Check the logs for details."

Observer = Callable[["StoreState"], None]


@dataclass(frozen=True)
class StoreState:
    """Immutable snapshot of a store.

    Attributes:
        loading: A load is in progress.
        loaded: The last load completed (successfully or not).
        error: Typed error from the last load, if it failed.
        data: Result of the last load, if it succeeded.
    """

    loading: bool = False
    loaded: bool = False
    error: Optional[CcauthError] = None
    data: Any = None

    @property
    def idle(self) -> bool:
        return not self.loading and not self.loaded

    @property
    def succeeded(self) -> bool:
        return self.loaded and self.error is None


class AsyncStore:
    """Base class for Idle/Loading/Loaded/Error state containers.

    Subclasses expose domain operations (``load(url)``, ``exchange(...)``)
    that wrap their network work in a task and hand it to :meth:`load`.
    Stores that need a multi-step lifecycle (the SSO store) use the
    lower level :meth:`_begin` / :meth:`_commit` pair directly.
    """

    name = "store"

    def __init__(self) -> None:
        self._state = StoreState()
        self._observers: list[Observer] = []
        self._generation = 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._state!r})"

    # ------------------------------------------------------------------ #
    # State access
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def loaded(self) -> bool:
        return self._state.loaded

    @property
    def error(self) -> Optional[CcauthError]:
        return self._state.error

    @property
    def data(self) -> Any:
        return self._state.data

    # ------------------------------------------------------------------ #
    # Observers
    # ------------------------------------------------------------------ #

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer* and return a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self._state
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("Observer of %s store failed", self.name)

    def _set(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        self._notify()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _begin(self) -> Optional[int]:
        """Enter Loading and return the new generation, or ``None`` if already loading."""
        if self._state.loading:
            return None
        self._generation += 1
        self._set(loading=True, loaded=False, error=None, data=None)
        return self._generation

    def _commit(
        self,
        generation: int,
        data: Any = None,
        error: Optional[CcauthError] = None,
    ) -> bool:
        """Leave Loading with *data* or *error*.

        Returns:
            ``False`` if the result belongs to an abandoned load and was dropped.
        """
        if generation != self._generation or not self._state.loading:
            logger.debug(
                "Discarding stale result for %s store (generation %d, current %d)",
                self.name,
                generation,
                self._generation,
            )
            return False
        if error is not None:
            self._set(loading=False, loaded=True, error=error, data=None)
        else:
            self._set(loading=False, loaded=True, error=None, data=data)
        return True

    async def load(self, task: Callable[[], Awaitable[Any]]) -> StoreState:
        """Run *task* unless a load is already in progress.

        Args:
            task: Zero-argument coroutine function producing the store data.
                It is not called at all when the store is already loading.

        Returns:
            The state snapshot after the load (or the current one when the
            call was a no-op).
        """
        generation = self._begin()
        if generation is None:
            logger.debug("%s store is already loading; ignoring load()", self.name)
            return self._state

        try:
            data = await task()
        except CcauthError as exc:
            logger.debug("%s store load failed: %s", self.name, exc)
            self._commit(generation, error=exc)
        except Exception:
            logger.exception("%s store load failed unexpectedly", self.name)
            self._commit(generation, error=CcauthError(GENERIC_ERROR_MESSAGE))
        else:
            self._commit(generation, data=data)
        return self._state

    def reset(self) -> bool:
        """Return to Idle, clearing data and error.

        Returns:
            ``False`` (and leaves the state alone) while a load is in progress.
        """
        if self._state.loading:
            logger.warning("Cannot reset %s store while it is loading", self.name)
            return False
        self._state = StoreState()
        self._notify()
        return True

    def abandon(self) -> bool:
        """Logically abandon an in-flight load and return to Idle.

        The underlying network call is not cancelled; its result is discarded
        when it arrives.

        Returns:
            ``False`` if nothing was loading.
        """
        if not self._state.loading:
            return False
        self._generation += 1
        logger.info("Abandoned in-flight load of %s store", self.name)
        self._state = StoreState()
        self._notify()
        return True
