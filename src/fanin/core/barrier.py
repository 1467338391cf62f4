# src/fanin/core/barrier.py
"""CompletionBarrier: a countdown latch with a dynamic registration phase.

A barrier tracks a growing set of pending tokens, one per in-flight
operation. Registration is open until seal() is called; after that no
new tokens are accepted. The barrier finishes exactly once, at the
earliest point where it is both sealed and empty:

    barrier = CompletionBarrier(on_finish=lambda: print("all done"))

    # Independent call sites attach work before the start signal
    t1 = barrier.register()
    t2 = barrier.watch(store.write("users", key, value))

    barrier.seal()          # no more registrations
    barrier.complete(t1)    # "all done" once t2's write also lands

Tokens may be completed before the barrier is sealed; the barrier just
cannot finish until seal() has happened.

Thread Safety:
    register(), seal(), complete() and abort() may be called from any
    thread. All state is guarded by one lock. The on_finish callback is
    invoked outside the lock, on whichever thread made the triggering
    seal() or complete() call.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from concurrent.futures import CancelledError, Future
from typing import Any

import structlog

from fanin.contracts.errors import BarrierContractViolation

slog = structlog.get_logger(__name__)

__all__ = ["CompletionBarrier", "Token"]


class Token:
    """Opaque handle for one pending operation.

    Compared by identity only. The serial number exists for log output.
    """

    __slots__ = ("_serial",)

    def __init__(self, serial: int) -> None:
        self._serial = serial

    def __repr__(self) -> str:
        return f"Token(#{self._serial})"


class CompletionBarrier:
    """Fires once when sealed and every registered token has completed.

    Attributes:
        name: Label used in log events
        finished: One-shot future resolved with None when the barrier
            finishes, or failed with CancelledError if it is aborted.
            Consumers cannot cancel it.
    """

    def __init__(self, on_finish: Callable[[], None] | None = None, *, name: str = "barrier") -> None:
        """Initialize an open, empty barrier.

        Args:
            on_finish: Zero-argument callback invoked exactly once when
                the barrier finishes. Not invoked on abort().
            name: Label used in log events
        """
        self.name = name
        self._on_finish = on_finish
        self._lock = threading.Lock()
        self._pending: set[Token] = set()
        self._serials = itertools.count(1)
        self._sealed = False
        self._fired = False
        self._aborted = False

        self.finished: Future[None] = Future()
        # Running futures cannot be cancelled by consumers
        self.finished.set_running_or_notify_cancel()

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def sealed(self) -> bool:
        """True once seal() or abort() has been called."""
        with self._lock:
            return self._sealed

    @property
    def fired(self) -> bool:
        """True once the barrier has finished normally."""
        with self._lock:
            return self._fired

    @property
    def aborted(self) -> bool:
        """True if abort() ended the barrier before it finished."""
        with self._lock:
            return self._aborted

    @property
    def pending_count(self) -> int:
        """Number of registered tokens not yet completed."""
        with self._lock:
            return len(self._pending)

    # -------------------------------------------------------------------------
    # Protocol
    # -------------------------------------------------------------------------

    def register(self) -> Token:
        """Add a new pending token.

        Returns:
            Token to pass to complete() when the operation finishes

        Raises:
            BarrierContractViolation: If the barrier is already sealed
        """
        with self._lock:
            if self._sealed:
                raise BarrierContractViolation(f"Cannot register on barrier '{self.name}': already sealed")
            token = Token(next(self._serials))
            self._pending.add(token)
            return token

    def watch(self, future: Future[Any]) -> Token:
        """Register a token that completes when future resolves.

        Success, failure and cancellation all count as completion. If the
        future is already done the token is completed before returning.

        Raises:
            BarrierContractViolation: If the barrier is already sealed
        """
        token = self.register()
        future.add_done_callback(lambda _done: self.complete(token))
        return token

    def seal(self) -> None:
        """Close registration.

        Finishes the barrier before returning if nothing is pending.

        Raises:
            BarrierContractViolation: If the barrier is already sealed
        """
        with self._lock:
            if self._sealed:
                raise BarrierContractViolation(f"Barrier '{self.name}' sealed twice")
            self._sealed = True
            fire = self._claim_fire()
        if fire:
            self._finish()

    def complete(self, token: Token) -> None:
        """Mark token's operation as done.

        Unknown or already-completed tokens are ignored, so a repeated
        completion can never finish the barrier a second time.
        """
        with self._lock:
            if token not in self._pending:
                duplicate = True
            else:
                duplicate = False
                self._pending.remove(token)
            fire = not duplicate and self._claim_fire()
        if duplicate:
            slog.debug("Ignoring completion of unknown token", barrier=self.name, token=repr(token))
            return
        if fire:
            self._finish()

    def abort(self) -> frozenset[Token]:
        """Forcibly seal and drop every outstanding token.

        The barrier ends without invoking on_finish; finished fails with
        CancelledError. Later complete() calls are no-ops.

        Returns:
            Tokens that were still pending (empty if the barrier had
            already finished or been aborted)
        """
        with self._lock:
            if self._fired or self._aborted:
                return frozenset()
            self._sealed = True
            self._aborted = True
            dropped = frozenset(self._pending)
            self._pending.clear()
        slog.debug("Barrier aborted", barrier=self.name, dropped=len(dropped))
        self.finished.set_exception(CancelledError(f"Barrier '{self.name}' aborted"))
        return dropped

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _claim_fire(self) -> bool:
        """Decide under the lock whether the caller should finish the barrier."""
        if self._sealed and not self._pending and not self._fired and not self._aborted:
            self._fired = True
            return True
        return False

    def _finish(self) -> None:
        slog.debug("Barrier finished", barrier=self.name)
        self.finished.set_result(None)
        if self._on_finish is not None:
            self._on_finish()
