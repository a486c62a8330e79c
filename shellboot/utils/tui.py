"""
TUI (Text User Interface) utilities for shellboot using Rich library.

Provides styled console output, tables, panels and the startup banner so that
every message printed while the interactive shell boots shares one look.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table
from rich.text import Text
from rich.theme import Theme


# ==== SHELLBOOT CUSTOM THEME ==== #

custom_theme = Theme({
    "info": "bold bright_white",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "debug": "grey70",
    "highlight": "bold blue",
    "detail": "grey74",
    "progress": "cyan",
    "data": "bright_cyan",
    "data.header": "bold bright_cyan",
    "highlight.header": "bold blue",
    "fs": "blue",
    "net": "magenta",
})

console = Console(theme=custom_theme, stderr=True)


# ==== CORE TUI PRINT FUNCTIONS ==== #

def tui_print_info(message: str, style: str = "info") -> None:
    """Prints an informational message with the specified style.

    Args:
        message: The message string to print.
        style: The Rich style to apply (defaults to "info").
    """
    console.print(f"[{style}]{message}[/]")


def tui_print_success(message: str, style: str = "success") -> None:
    """Prints a success message with the specified style."""
    console.print(f"[{style}]{message}[/]")


def tui_print_warning(message: str, style: str = "warning") -> None:
    """Prints a warning message with the specified style."""
    console.print(f"[{style}]{message}[/]")


def tui_print_error(message: str, style: str = "error") -> None:
    """Prints an error message with the specified style."""
    console.print(f"[{style}]{message}[/]")


def tui_print_debug(message: str, style: str = "debug") -> None:
    """Prints a debug message with the specified style."""
    console.print(f"[{style}]{message}[/]")


def tui_print_table(
    data: List[Dict[str, Any]],
    title: Optional[str] = None,
    style_columns: Optional[Dict[str, str]] = None,
) -> None:
    """Prints data in a formatted table using Rich.

    Args:
        data: A list of dictionaries, where each dictionary represents a row.
              All dictionaries should ideally have the same keys.
        title: Optional title for the table.
        style_columns: Optional dictionary mapping column names to specific
                       Rich styles to override default styling.
    """
    if not data:
        warning_msg = "No data to display in table"
        if title:
            warning_msg += f" for '{title}'"
        tui_print_warning(warning_msg)
        return

    table = Table(title=title, box=box.ROUNDED, show_lines=False, expand=False)
    headers = list(data[0].keys())

    for key in headers:
        column_style: str = "data"
        header_style: str = "data.header"
        justify_rule: str = "left"

        if style_columns and key in style_columns:
            column_style = style_columns[key]
            header_style = f"{style_columns[key]}.header"
            if header_style not in custom_theme.styles:
                header_style = "bold"
        elif "key" in key.lower():
            column_style = "highlight"
            header_style = "highlight.header"
        elif isinstance(data[0].get(key), (int, float, bool)):
            justify_rule = "center"

        table.add_column(
            key,
            style=column_style,
            header_style=header_style,
            justify=justify_rule,
            overflow="fold",
        )

    for item in data:
        table.add_row(*[str(item.get(header, "")) for header in headers])

    console.print(table)


# ==== PROCESS STATUS INDICATORS ==== #
# --► For startup steps (config, probe, installers, deferred init)

def tui_starting_process(process_name: str) -> None:
    tui_print_info(f"Starting: {process_name}...")


def tui_process_complete(process_name: str, status: str = "Completed") -> None:
    """Prints a message indicating a process has completed successfully.

    Args:
        process_name: The name of the process that completed.
        status: The completion status message (defaults to "Completed").
    """
    tui_print_success(f"{status}: {process_name}")


def tui_process_failed(process_name: str, reason: Optional[str] = None) -> None:
    """Prints a message indicating a process has failed.

    Args:
        process_name: The name of the process that failed.
        reason: Optional string explaining the reason for failure.
    """
    message = f"Failed: {process_name}"
    if reason:
        message += f" - Reason: {reason}"
    tui_print_error(message)


def tui_fetching_data(data_description: str) -> None:
    """Prints a message indicating a remote fetch, styled for network calls."""
    tui_print_info(f"Fetching: {data_description}...", style="net")


def tui_saving_data(data_description: str) -> None:
    """Prints a message indicating a file is being written, styled for disk."""
    tui_print_info(f"Saving: {data_description}...", style="fs")


def tui_download_progress() -> Progress:
    """Creates a transient Rich Progress bar suited to byte downloads.

    Returns:
        A Rich Progress instance, ready to be used in a `with` statement.
    """
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    )


def tui_panel(
    content: Union[str, Text, Table],
    title: str = "",
    style: str = "info",
    border_style: Optional[str] = None,
    expand: bool = False,
    padding: Union[int, Tuple[int, int]] = (0, 2),
) -> None:
    """Prints content within a styled panel using Rich.

    Args:
        content: The content to display (string, Rich Text or Table).
        title: Optional title for the panel.
        style: The Rich style for the panel content. Also used for the border
               if `border_style` is not provided.
        border_style: Specific Rich style for the panel's border.
        expand: Whether the panel should expand to fill available width.
        padding: Padding within the panel.
    """
    final_border_style = border_style if border_style is not None else style
    panel_title = f"[{style}]{title}[/]" if title else ""

    console.print(
        Panel(
            content,
            title=panel_title,
            style=style,
            border_style=final_border_style,
            expand=expand,
            padding=padding,
        )
    )


# ==== STARTUP BANNER ==== #

def tui_banner(user: str, injection: str, connected: bool, color: str = "cyan") -> None:
    """Prints the welcome banner shown once the prompt is configured.

    Args:
        user: Identity from the configuration.
        injection: How helper scripts were sourced ("local" or "remote").
        connected: Result of the connectivity probe.
        color: Rich colour name used for the border, usually the prompt colour.
    """
    body = Text()
    body.append(f"Welcome, {user}\n", style="bold")
    body.append("scripts: ", style="detail")
    body.append(f"{injection}\n", style="data")
    body.append("network: ", style="detail")
    body.append("online" if connected else "offline", style="success" if connected else "warning")
    tui_panel(body, title="shellboot", style="info", border_style=color)
