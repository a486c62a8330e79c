"""
shellboot interactive startup hook.

Point ``PYTHONSTARTUP`` at this file; its path is printed by
``python -c "import shellboot.pythonstartup as m; print(m.__file__)"``.
The interpreter runs it in ``__main__`` before the first prompt, so the
session below wraps the real REPL globals.

NOTE: whatever this file leaves behind is visible at the prompt, so helper
names are removed at the end.
"""


def _shellboot_bootstrap(namespace):
    import os

    from shellboot.core.errors import StartupAborted
    from shellboot.core.startup import run_startup
    from shellboot.utils import tui
    from shellboot.utils.logger_adapter import configure_logging

    configure_logging(os.getenv("SHELLBOOT_LOG_LEVEL") or "WARNING")
    try:
        return run_startup(namespace)
    except StartupAborted as e:
        # Abort only the customization; the REPL itself must stay usable
        tui.tui_print_error(f"shellboot: startup aborted: {e}")
    except Exception as e:
        tui.tui_print_error(f"shellboot: unexpected error during startup: {e}")
    return None


if __name__ == "__main__":
    _shellboot_bootstrap(globals())

    del _shellboot_bootstrap
