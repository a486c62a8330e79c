# ==== INTERACTIVE SESSION STATE MODULE ==== #
"""
Primary interactive session state and the registries it shares.

Overview:
- `CompletionRegistry`: completion-key -> handler mapping shared by reference
  between the primary session and the background context.
- `RegistryHub`: named registries with create-if-absent semantics. Both
  contexts receive the same hub at construction; nothing is discovered at
  runtime.
- `SessionDiff`: bindings produced by deferred work, applied atomically.
- `Session`: wraps the REPL globals and applies diffs under its lock.
- `LineEditor`: readline completer backed by the shared registry.
"""

import logging
import re
import threading
import types
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

COMPLETION_REGISTRY = "completion"

# Command name at the start of the line: `git status`, `git("status`
_COMMAND_RE = re.compile(r"^\s*([A-Za-z_][\w.]*)")

CompletionHandler = Callable[[str, str], List[str]]


# ==== SHARED REGISTRIES ==== #

class CompletionRegistry:
    """
    Thread-safe mapping of completion keys (command names) to handlers.

    A handler is called as ``handler(text, line)`` and returns the candidate
    completions for `text` given the whole input `line`.
    """

    def __init__(self, name: str) -> None:
        self.name: str = name
        self._handlers: Dict[str, CompletionHandler] = {}
        self._lock = threading.Lock()

    def register(self, key: str, handler: CompletionHandler, replace: bool = True) -> bool:
        """
        Register `handler` under `key`.

        Returns:
            bool: False if `key` was already set and `replace` is False.
        """
        with self._lock:
            if not replace and key in self._handlers:
                return False
            self._handlers[key] = handler
            return True

    def unregister(self, key: str) -> None:
        with self._lock:
            self._handlers.pop(key, None)

    def get(self, key: str) -> Optional[CompletionHandler]:
        with self._lock:
            return self._handlers.get(key)

    def items(self) -> List[Tuple[str, CompletionHandler]]:
        with self._lock:
            return list(self._handlers.items())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __iter__(self) -> Iterator[str]:
        return iter([key for key, _ in self.items()])

    def __repr__(self) -> str:
        return f"CompletionRegistry({self.name!r}, keys={sorted(self)})"


class RegistryHub:
    """
    Owner of every shared registry, injected into both execution contexts.

    `get_or_create` is the single place registries come into existence: the
    first caller to find a name missing creates it, every other caller gets
    that same instance. Existing registries are never replaced or cleared.
    """

    def __init__(self) -> None:
        self._registries: Dict[str, CompletionRegistry] = {}
        self._lock = threading.Lock()

    def get_or_create(self, name: str) -> CompletionRegistry:
        with self._lock:
            registry = self._registries.get(name)
            if registry is None:
                registry = CompletionRegistry(name)
                self._registries[name] = registry
                logger.debug("Created shared registry '%s'", name)
            return registry

    def get(self, name: str) -> Optional[CompletionRegistry]:
        with self._lock:
            return self._registries.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._registries)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._registries


# ==== SESSION DIFF ==== #

class SessionDiff:
    """
    Bindings created or rebound by a deferred block.

    Attributes:
        bindings (Dict[str, Any]): Name -> value to publish in the session.
        origin (Optional[Dict[str, Any]]): The namespace the bindings were
            produced in. Functions whose globals are this namespace are
            rebound to the session namespace on merge.
    """

    def __init__(self, bindings: Optional[Dict[str, Any]] = None, origin: Optional[Dict[str, Any]] = None) -> None:
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self.origin: Optional[Dict[str, Any]] = origin

    @property
    def names(self) -> List[str]:
        return sorted(self.bindings)

    def __len__(self) -> int:
        return len(self.bindings)

    def __bool__(self) -> bool:
        return bool(self.bindings)

    def __repr__(self) -> str:
        return f"SessionDiff({self.names})"


def _global_names(code: types.CodeType) -> Set[str]:
    # co_names also lists attribute names, so this over-approximates
    names: Set[str] = set(code.co_names)
    for const in code.co_consts:
        if isinstance(const, types.CodeType):
            names |= _global_names(const)
    return names


def _rebind_function(func: types.FunctionType, namespace: Dict[str, Any]) -> types.FunctionType:
    rebound = types.FunctionType(
        func.__code__,
        namespace,
        func.__name__,
        func.__defaults__,
        func.__closure__,
    )
    rebound.__kwdefaults__ = func.__kwdefaults__
    rebound.__qualname__ = func.__qualname__
    rebound.__doc__ = func.__doc__
    rebound.__module__ = namespace.get("__name__", func.__module__)
    rebound.__dict__.update(func.__dict__)
    return rebound


# ==== PRIMARY SESSION ==== #

class Session:
    """
    The primary interactive session.

    Attributes:
        namespace (Dict[str, Any]): The REPL globals (``__main__.__dict__``
            in a real shell, a plain dict in tests).
        hub (RegistryHub): Shared registries, also handed to background work.
    """

    def __init__(self, namespace: Optional[Dict[str, Any]] = None, hub: Optional[RegistryHub] = None) -> None:
        self.namespace: Dict[str, Any] = namespace if namespace is not None else {"__name__": "__main__"}
        self.hub: RegistryHub = hub if hub is not None else RegistryHub()
        self.lock = threading.RLock()
        self.merge_count: int = 0

    def define(self, name: str, value: Any) -> None:
        with self.lock:
            self.namespace[name] = value

    def lookup(self, name: str, default: Any = None) -> Any:
        with self.lock:
            return self.namespace.get(name, default)

    def snapshot(self) -> Dict[str, Any]:
        """Shallow copy of the session namespace."""
        with self.lock:
            return dict(self.namespace)

    def apply(self, diff: SessionDiff) -> List[str]:
        """
        Merge `diff` into the namespace as one atomic update.

        Functions defined by the deferred block are rebound so that their
        globals are the session namespace, which makes them indistinguishable
        from functions typed at the prompt. A function that reads a block-local
        global (one the diff does not publish) keeps the block's globals.

        Returns:
            List[str]: The names that were merged.
        """
        with self.lock:
            hidden_names: Set[str] = set()
            if diff.origin is not None:
                hidden_names = {
                    n for n in diff.origin
                    if n not in diff.bindings and not (n.startswith("__") and n.endswith("__"))
                }
            prepared: Dict[str, Any] = {}
            for name, value in diff.bindings.items():
                if (
                    diff.origin is not None
                    and isinstance(value, types.FunctionType)
                    and value.__globals__ is diff.origin
                ):
                    hidden = _global_names(value.__code__) & hidden_names
                    if hidden:
                        logger.debug(
                            "Keeping deferred globals for %s (uses %s)", name, ", ".join(sorted(hidden))
                        )
                    else:
                        value = _rebind_function(value, self.namespace)
                prepared[name] = value

            self.namespace.update(prepared)
            self.merge_count += 1
        logger.debug("Merged %d binding(s) into session: %s", len(prepared), ", ".join(sorted(prepared)))
        return sorted(prepared)


# ==== LINE EDITOR ==== #

class LineEditor:
    """
    Readline integration for the primary session.

    Installs a completer that consults the shared completion registry first
    (keyed by the first word of the line) and falls back to `rlcompleter`.
    `ready` is set once installation finished, whether or not readline is
    available on this platform.
    """

    def __init__(self, session: Session, registry_name: str = COMPLETION_REGISTRY) -> None:
        import rlcompleter

        self.session: Session = session
        self.registry: CompletionRegistry = session.hub.get_or_create(registry_name)
        self.ready = threading.Event()
        self._fallback = rlcompleter.Completer(session.namespace)
        self._matches: List[str] = []
        self._readline: Any = None

    def install(self) -> bool:
        """
        Hook the completer into readline.

        Returns:
            bool: True if readline was available and configured.
        """
        try:
            import readline
        except ImportError:
            logger.debug("readline not available; completion registry stays passive")
            self.ready.set()
            return False

        self._readline = readline
        readline.set_completer(self.complete)
        if "libedit" in (getattr(readline, "__doc__", "") or ""):
            readline.parse_and_bind("bind ^I rl_complete")
        else:
            readline.parse_and_bind("tab: complete")
        self.ready.set()
        return True

    def candidates(self, text: str, line: str) -> List[str]:
        """All completions for `text` given the full input `line`."""
        match = _COMMAND_RE.match(line)
        command = match.group(1) if match else ""
        handler = self.registry.get(command) if command else None
        if handler is not None and len(line.strip()) > len(command):
            try:
                return [c for c in handler(text, line) if c.startswith(text)]
            except Exception as e:
                logger.debug("Completion handler for '%s' failed: %s", command, e)
                return []

        matches: List[str] = []
        state = 0
        while True:
            match = self._fallback.complete(text, state)
            if match is None:
                break
            matches.append(match)
            state += 1
        return matches

    def complete(self, text: str, state: int) -> Optional[str]:
        """readline completer protocol."""
        if state == 0:
            line = self._readline.get_line_buffer() if self._readline is not None else text
            self._matches = self.candidates(text, line)
        if state < len(self._matches):
            return self._matches[state]
        return None
