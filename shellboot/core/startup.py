# ==== SHELL STARTUP ORCHESTRATION ==== #
"""
End-to-end startup of an interactive shellboot session.

Order of operations:
1. Load and validate the configuration (fatal on error).
2. Probe connectivity once.
3. Resolve the injection method for the helper scripts (fatal when scripts
   are missing and the network is down).
4. Source `functions.py`, install the prompt theme and the line editor.
5. Schedule the deferred block: module/font installation, auto-update,
   `installer.py` and `background_tasks.py`. Its definitions are merged into
   the session once the editor is ready.
6. Print the banner.
"""

import builtins
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shellboot.core.config import KEY_LOG_LEVEL, ConfigBootstrap, ConfigMap
from shellboot.core.connectivity import probe
from shellboot.core.deferred import (
    DEFAULT_MERGE_DELAY,
    BackgroundContext,
    CapturedVars,
    DeferredBlock,
    DeferredHandle,
    DeferredInitializer,
)
from shellboot.core.errors import ConfigError, ResourceUnavailable, StartupAborted
from shellboot.core.installer import install_font, install_modules
from shellboot.core.resources import (
    BACKGROUND_SCRIPT,
    FUNCTIONS_SCRIPT,
    HELPER_SCRIPTS,
    INSTALLER_SCRIPT,
    InjectionMethod,
    ScriptSource,
    resolve_injection,
)
from shellboot.core.session import LineEditor, Session
from shellboot.core.theme import PromptTheme, valid_color
from shellboot.utils import tui
from shellboot.utils.logger_adapter import configure_logging

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_RESOURCES_UNAVAILABLE = 3


@dataclass
class StartupResult:
    """What `run_startup` set up."""

    config: ConfigMap
    connected: bool
    injection: InjectionMethod
    session: Session
    editor: Optional[LineEditor]
    handle: DeferredHandle


def _exec_script(text: str, filename: str, namespace: Dict[str, Any]) -> None:
    exec(compile(text, filename, "exec"), namespace)


def source_functions(session: Session, source: ScriptSource) -> bool:
    """
    Run `functions.py` directly in the session namespace.

    Returns:
        bool: False if the script could not be loaded or raised.
    """
    try:
        text = source.load(FUNCTIONS_SCRIPT)
    except ResourceUnavailable as e:
        logger.warning("%s", e)
        return False
    try:
        with session.lock:
            _exec_script(text, FUNCTIONS_SCRIPT, session.namespace)
    except Exception as e:
        logger.warning("Error in %s: %s", FUNCTIONS_SCRIPT, e)
        logger.debug("Details", exc_info=True)
        return False
    return True


def build_deferred_block(
    config: ConfigMap,
    source: ScriptSource,
    connected: bool,
    http: Any = None,
) -> DeferredBlock:
    """
    The background work of a normal startup.

    Installation steps are best-effort and run first. `installer.py` runs in
    a scratch namespace (its names are never merged); `background_tasks.py`
    runs in the block namespace, so what it defines reaches the session.
    """
    captured = CapturedVars(
        user=config.user,
        files=HELPER_SCRIPTS,
        base_dir=source.base_dir,
        connected=connected,
        base_url=config.base_url,
    )

    def body(context: BackgroundContext) -> None:
        if config.modules:
            install_modules(config.modules)
        if connected:
            install_font(config, http=http)
            if config.auto_update:
                source.refresh_stale()

        try:
            installer_text = source.load(INSTALLER_SCRIPT)
        except ResourceUnavailable as e:
            logger.debug("%s", e)
        else:
            scratch: Dict[str, Any] = {
                "__name__": "__shellboot_installer__",
                "__builtins__": builtins,
                "config": config,
                "install_modules": install_modules,
                "install_font": install_font,
            }
            scratch.update(captured.as_namespace())
            try:
                _exec_script(installer_text, INSTALLER_SCRIPT, scratch)
            except Exception as e:
                logger.warning("Error in %s: %s", INSTALLER_SCRIPT, e)

        _exec_script(source.load(BACKGROUND_SCRIPT), BACKGROUND_SCRIPT, context.namespace)

    return DeferredBlock(body, captured, name="background-tasks")


def run_startup(
    namespace: Optional[Dict[str, Any]] = None,
    config_path: Optional[str] = None,
    config_url: Optional[str] = None,
    base_dir: Optional[str] = None,
    http: Any = None,
    prober: Optional[Callable[[str, float], bool]] = None,
    delay: float = DEFAULT_MERGE_DELAY,
    install_editor: bool = True,
    prompt_target: Any = sys,
    show_banner: bool = True,
) -> StartupResult:
    """
    Run the full startup against `namespace` (the REPL globals).

    Args:
        namespace: Globals of the interactive session. A fresh dict if None.
        config_path: Overrides the default config location.
        config_url: Remote config location used when the file is missing.
        base_dir: Directory of helper scripts; defaults to the config directory.
        http: `requests`-compatible object for every remote fetch.
        prober: Connectivity check, `probe(host, timeout)` by default.
        delay: Merge delay for the deferred block.
        install_editor: Hook the completer into readline.
        prompt_target: Object receiving `ps1`/`ps2`; None skips the prompt.
        show_banner: Print the banner unless the config suppresses it.

    Returns:
        StartupResult: The configured session and the deferred handle.

    Raises:
        StartupAborted: Configuration invalid, or scripts unavailable.
    """
    bootstrap = ConfigBootstrap(config_path=config_path, config_url=config_url, http=http)
    try:
        config = bootstrap.load()
    except ConfigError as e:
        raise StartupAborted(str(e), exit_code=EXIT_CONFIG_ERROR, cause=e) from e

    if config.raw.get(KEY_LOG_LEVEL):
        configure_logging(config.raw[KEY_LOG_LEVEL])

    connected = (prober or probe)(config.probe_host, config.timeout)
    scripts_dir = base_dir or os.path.dirname(bootstrap.config_path)
    try:
        injection = resolve_injection(scripts_dir, HELPER_SCRIPTS, connected)
    except ResourceUnavailable as e:
        raise StartupAborted(str(e), exit_code=EXIT_RESOURCES_UNAVAILABLE, cause=e) from e
    logger.debug("Injection method: %s (connected=%s)", injection.value, connected)

    session = Session(namespace)
    source = ScriptSource(config, scripts_dir, injection, http=http)
    source_functions(session, source)

    if prompt_target is not None:
        theme = PromptTheme.load(config, connected, http=http)
        theme.install(config.user, target=prompt_target, use_readline=install_editor)

    editor: Optional[LineEditor] = None
    if install_editor:
        editor = LineEditor(session)
        editor.install()

    initializer = DeferredInitializer(session)
    block = build_deferred_block(config, source, connected, http=http)
    handle = initializer.schedule(block, delay=delay, ready=editor.ready if editor else None)

    if show_banner and not config.no_banner:
        tui.tui_banner(config.user, injection.value, connected, color=valid_color(config.prompt_color) or "cyan")

    return StartupResult(
        config=config,
        connected=connected,
        injection=injection,
        session=session,
        editor=editor,
        handle=handle,
    )
