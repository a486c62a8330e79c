# ==== DEFERRED INITIALIZATION MODULE ==== #
"""
Run startup work off the interactive path and merge its results back.

Overview:
- A `DeferredBlock` (Python source or a callable) runs exactly once on a
  background thread inside a `BackgroundContext`.
- The context shares the session's `RegistryHub` by reference, so completion
  registries exist and are the same objects in both contexts while the block
  is still running.
- When the block finishes, its new bindings become a `SessionDiff`. After the
  merge delay (and the line editor's readiness event, when one is given) the
  diff is applied to the primary `Session` in one locked update.
- Failures are logged and kept on the `DeferredHandle`; they never reach the
  interactive prompt.
"""

import builtins
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple, Union

from shellboot.core.errors import BlockAlreadyRun, DeferredAlreadyScheduled
from shellboot.core.session import (
    COMPLETION_REGISTRY,
    CompletionRegistry,
    RegistryHub,
    Session,
    SessionDiff,
)

logger = logging.getLogger(__name__)

# Heuristic: long enough for the REPL to finish its own readline setup
DEFAULT_MERGE_DELAY = 0.1
DEFAULT_READY_TIMEOUT = 2.0

# Name under which the shared hub is visible to block source
HUB_BINDING = "registries"


# ==== CAPTURED VARIABLES ==== #

@dataclass(frozen=True)
class CapturedVars:
    """Values the deferred block closes over, fixed at construction time."""

    user: str
    files: Tuple[str, ...]
    base_dir: str
    connected: bool
    base_url: str

    def as_namespace(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "files": tuple(self.files),
            "base_dir": self.base_dir,
            "connected": self.connected,
            "base_url": self.base_url,
        }


# ==== BACKGROUND CONTEXT ==== #

class BackgroundContext:
    """
    Execution context a deferred block runs in.

    Attributes:
        hub (RegistryHub): The primary session's hub, shared by reference.
        namespace (Dict[str, Any]): Globals for block source; seeded with the
            captured variables and the hub (as ``registries``).
    """

    def __init__(self, hub: RegistryHub, captured: CapturedVars) -> None:
        self.hub: RegistryHub = hub
        self.captured: CapturedVars = captured
        self.namespace: Dict[str, Any] = {
            "__name__": "__shellboot_deferred__",
            "__builtins__": builtins,
            HUB_BINDING: hub,
        }
        self.namespace.update(captured.as_namespace())
        self._initial: Dict[str, Any] = dict(self.namespace)
        self._locals: Set[str] = set()

    def registry(self, name: str = COMPLETION_REGISTRY) -> CompletionRegistry:
        return self.hub.get_or_create(name)

    def define(self, name: str, value: Any) -> None:
        """Bind `name` so that it is merged into the primary session."""
        self.namespace[name] = value

    def local(self, name: str, value: Any) -> None:
        """Bind `name` for the block only; it is discarded after the run."""
        self.namespace[name] = value
        self._locals.add(name)

    def diff(self, local_names: Iterable[str] = ()) -> SessionDiff:
        """
        Bindings created or rebound by the block.

        Captured variables, the hub binding, underscore-prefixed names and
        block-local names (declared via `local` or `local_names`) are left out.
        """
        excluded = set(self._initial) | self._locals | set(local_names)
        bindings: Dict[str, Any] = {}
        for name, value in self.namespace.items():
            if name.startswith("_"):
                continue
            if name in excluded:
                continue
            bindings[name] = value
        return SessionDiff(bindings, origin=self.namespace)


# ==== DEFERRED BLOCK ==== #

BlockBody = Union[str, Callable[[BackgroundContext], None]]


class DeferredBlock:
    """
    A unit of startup work that runs exactly once.

    Args:
        body: Python source executed in the context namespace, or a callable
              receiving the `BackgroundContext`.
        captured: Values the block closes over.
        local_names: Names the block binds for its own use only.
        name: Label used in log messages.

    Raises:
        SyntaxError: If `body` is source text that does not compile.
    """

    def __init__(
        self,
        body: BlockBody,
        captured: CapturedVars,
        local_names: Iterable[str] = (),
        name: str = "deferred",
    ) -> None:
        self.name: str = name
        self.captured: CapturedVars = captured
        self.local_names: Tuple[str, ...] = tuple(local_names)
        self._callable: Optional[Callable[[BackgroundContext], None]] = None
        self._code: Any = None
        if isinstance(body, str):
            self._code = compile(body, f"<{name}>", "exec")
        else:
            self._callable = body
        self._ran = False
        self._lock = threading.Lock()

    @property
    def ran(self) -> bool:
        return self._ran

    def run(self, context: BackgroundContext) -> None:
        with self._lock:
            if self._ran:
                raise BlockAlreadyRun(f"Deferred block '{self.name}' already ran")
            self._ran = True
        if self._code is not None:
            exec(self._code, context.namespace)
        else:
            self._callable(context)


# ==== HANDLE ==== #

class DeferredHandle:
    """
    Observation handle for one scheduled block. Callers may ignore it.

    Attributes:
        name (str): Block label.
        diff (Optional[SessionDiff]): Bindings produced by the block.
        merged (Tuple[str, ...]): Names published into the session.
        error (Optional[BaseException]): Failure raised by the block, if any.
    """

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.diff: Optional[SessionDiff] = None
        self.merged: Tuple[str, ...] = ()
        self.error: Optional[BaseException] = None
        self.thread: Optional[threading.Thread] = None
        self._done = threading.Event()

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the merge finished (or failed). Returns False on timeout."""
        return self._done.wait(timeout)

    @property
    def succeeded(self) -> bool:
        return self.done() and self.error is None

    def __repr__(self) -> str:
        state = "pending" if not self.done() else ("failed" if self.error else "merged")
        return f"DeferredHandle({self.name!r}, {state})"


# ==== DEFERRED INITIALIZER ==== #

class DeferredInitializer:
    """
    Schedules one deferred block at a time against a primary session.

    Attributes:
        session (Session): Session that receives the merged bindings.
        shared_registries (Tuple[str, ...]): Registries guaranteed to exist in
            the hub before any block runs.
        ready_timeout (float): Upper bound on waiting for a readiness event.
    """

    def __init__(
        self,
        session: Session,
        shared_registries: Iterable[str] = (COMPLETION_REGISTRY,),
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
    ) -> None:
        self.session: Session = session
        self.shared_registries: Tuple[str, ...] = tuple(shared_registries)
        self.ready_timeout: float = ready_timeout
        self._active: Optional[DeferredHandle] = None
        self._lock = threading.Lock()

    @property
    def active(self) -> Optional[DeferredHandle]:
        with self._lock:
            if self._active is not None and self._active.done():
                return None
            return self._active

    def schedule(
        self,
        block: DeferredBlock,
        delay: float = DEFAULT_MERGE_DELAY,
        ready: Optional[threading.Event] = None,
    ) -> DeferredHandle:
        """
        Start `block` on a background thread and return immediately.

        Args:
            block: The work to run.
            delay: Minimum seconds between scheduling and merge.
            ready: Optional readiness signal from the line editor; when given,
                   the merge also waits for it (bounded by `ready_timeout`).

        Returns:
            DeferredHandle: Fire-and-forget handle.

        Raises:
            DeferredAlreadyScheduled: If a previous block is still running.
        """
        with self._lock:
            if self._active is not None and not self._active.done():
                raise DeferredAlreadyScheduled(
                    f"Deferred block '{self._active.name}' is still running"
                )
            for name in self.shared_registries:
                self.session.hub.get_or_create(name)

            handle = DeferredHandle(block.name)
            merge_at = time.monotonic() + max(delay, 0.0)
            thread = threading.Thread(
                target=self._run,
                args=(block, handle, merge_at, ready),
                name=f"shellboot-{block.name}",
                daemon=True,
            )
            handle.thread = thread
            self._active = handle
            thread.start()
        logger.debug("Scheduled deferred block '%s' (merge delay %.3fs)", block.name, delay)
        return handle

    def _wait_for_editor(self, merge_at: float, ready: Optional[threading.Event]) -> None:
        remaining = merge_at - time.monotonic()
        if remaining > 0:
            time.sleep(remaining)
        if ready is not None and not ready.wait(self.ready_timeout):
            logger.debug("Line editor not ready after %.1fs; merging anyway", self.ready_timeout)

    def _run(
        self,
        block: DeferredBlock,
        handle: DeferredHandle,
        merge_at: float,
        ready: Optional[threading.Event],
    ) -> None:
        try:
            context = BackgroundContext(self.session.hub, block.captured)
            block.run(context)
            handle.diff = context.diff(block.local_names)
            self._wait_for_editor(merge_at, ready)
            handle.merged = tuple(self.session.apply(handle.diff))
            logger.debug("Deferred block '%s' merged: %s", block.name, ", ".join(handle.merged) or "-")
        except Exception as e:
            handle.error = e
            logger.warning("Deferred initialization '%s' failed: %s", block.name, e)
            logger.debug("Deferred failure details", exc_info=True)
        finally:
            handle._done.set()
