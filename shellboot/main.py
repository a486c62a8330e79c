import argparse
import os
import sys
from typing import List, Optional

from shellboot.core.config import ConfigBootstrap, ConfigMap, write_template
from shellboot.core.connectivity import probe
from shellboot.core.errors import ConfigError, StartupAborted
from shellboot.core.installer import install_font, install_modules
from shellboot.core.startup import EXIT_CONFIG_ERROR, run_startup
from shellboot.utils import tui
from shellboot.utils.logger_adapter import configure_logging

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_START_WAIT_SECONDS = 120.0


def _load_config(args) -> Optional[ConfigMap]:
    try:
        return ConfigBootstrap(config_path=args.config, config_url=args.config_url).load(export=False)
    except ConfigError as e:
        tui.tui_process_failed("Configuration", str(e))
        return None


def handle_check(args) -> int:
    """Validate the configuration file and print its values."""
    config = _load_config(args)
    if config is None:
        return EXIT_CONFIG_ERROR
    tui.tui_print_table(config.as_rows(), title="shellboot configuration")
    tui.tui_process_complete("Configuration", status="Valid")
    return 0


def handle_probe(args) -> int:
    config = _load_config(args)
    if config is None:
        return EXIT_CONFIG_ERROR
    host = args.host or config.probe_host
    timeout = args.timeout if args.timeout is not None else config.timeout
    if probe(host, timeout):
        tui.tui_print_success(f"{host} is reachable")
        return 0
    tui.tui_print_warning(f"{host} is not reachable within {timeout}s")
    return 1


def handle_fonts(args) -> int:
    config = _load_config(args)
    if config is None:
        return EXIT_CONFIG_ERROR
    tui.tui_starting_process(f"Font installation ({config.font_name})")
    if install_font(config, progress=True):
        tui.tui_process_complete("Font installation")
        return 0
    tui.tui_process_failed("Font installation")
    return 1


def handle_modules(args) -> int:
    config = _load_config(args)
    if config is None:
        return EXIT_CONFIG_ERROR
    names: List[str] = list(config.modules) + list(args.names)
    if not names:
        tui.tui_print_warning("No modules configured (SHELLBOOT_MODULES) or given")
        return 0
    results = install_modules(names)
    tui.tui_print_table(
        [{"Module": name, "Status": status} for name, status in results.items()],
        title="Modules",
    )
    return 1 if "failed" in results.values() else 0


def handle_start(args) -> int:
    """Run the full startup without a REPL and report what the deferred block merged."""
    try:
        result = run_startup(
            namespace={"__name__": "__main__"},
            config_path=args.config,
            config_url=args.config_url,
            base_dir=args.scripts_dir,
            install_editor=False,
            prompt_target=None,
            show_banner=not args.no_banner,
        )
    except StartupAborted as e:
        tui.tui_process_failed("Startup", str(e))
        return e.exit_code

    if not result.handle.wait(args.wait):
        tui.tui_print_warning(f"Deferred initialization still running after {args.wait:.0f}s")
        return 1
    if result.handle.error is not None:
        tui.tui_process_failed("Deferred initialization", str(result.handle.error))
        return 1
    rows = [{"Name": name, "Type": type(result.session.lookup(name)).__name__} for name in result.handle.merged]
    tui.tui_print_table(rows, title="Merged into session")
    tui.tui_process_complete("Startup")
    return 0


def handle_init_config(args) -> int:
    try:
        path = write_template(args.config, overwrite=args.force)
    except FileExistsError as e:
        tui.tui_print_error(f"{e} already exists (use --force to overwrite)")
        return 1
    tui.tui_print_success(f"Configuration template written to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellboot",
        description="shellboot - interactive Python shell startup customizer.",
    )
    parser.add_argument("--config", type=str, default=None, help="Path of shellboot.env (default: $SHELLBOOT_CONFIG or ~/.config/shellboot/shellboot.env)")
    parser.add_argument("--config-url", type=str, default=None, help="URL to fetch the configuration from when the file is missing")
    parser.add_argument("--log-level", type=str, default=None, help=f"Log level. Default: $SHELLBOOT_LOG_LEVEL or {DEFAULT_LOG_LEVEL}")
    subparsers = parser.add_subparsers(dest="mode", help="Available commands", required=True)

    check_parser = subparsers.add_parser("check", help="Validate the configuration file.")
    check_parser.set_defaults(func=handle_check)

    probe_parser = subparsers.add_parser("probe", help="Check network reachability.")
    probe_parser.add_argument("--host", type=str, default=None, help="Host to probe (default: from configuration)")
    probe_parser.add_argument("--timeout", type=float, default=None, help="Timeout in seconds (default: SHELLBOOT_TIMEOUT)")
    probe_parser.set_defaults(func=handle_probe)

    fonts_parser = subparsers.add_parser("fonts", help="Download and install the configured font.")
    fonts_parser.set_defaults(func=handle_fonts)

    modules_parser = subparsers.add_parser("modules", help="Install configured Python modules.")
    modules_parser.add_argument("names", nargs="*", help="Additional modules to install")
    modules_parser.set_defaults(func=handle_modules)

    start_parser = subparsers.add_parser("start", help="Run the startup sequence and wait for deferred initialization.")
    start_parser.add_argument("--scripts-dir", type=str, default=None, help="Directory of helper scripts (default: config directory)")
    start_parser.add_argument("--wait", type=float, default=DEFAULT_START_WAIT_SECONDS, help="Seconds to wait for deferred initialization")
    start_parser.add_argument("--no-banner", action="store_true", help="Do not print the banner")
    start_parser.set_defaults(func=handle_start)

    init_parser = subparsers.add_parser("init-config", help="Write a configuration template.")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")
    init_parser.set_defaults(func=handle_init_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or os.getenv("SHELLBOOT_LOG_LEVEL") or DEFAULT_LOG_LEVEL)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        tui.tui_print_warning("Interrupted by user (KeyboardInterrupt). Exiting...")
        return 130
    except Exception as e:
        tui.tui_print_error(f"Unhandled critical exception in mode '{getattr(args, 'mode', '?')}': {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
