# ==== PROMPT THEME MODULE ==== #
"""
Prompt theme loading and installation.

A theme is a small JSON file:

    {"template": "{venv}{user} {cwd} >>> ", "continuation": "... ", "color": "green"}

`template` may use `{user}`, `{cwd}`, `{venv}` and `{time}`. The prompt is
re-rendered every time the REPL asks for it, coloured with Rich.
"""

import datetime
import json
import logging
import os
import re
import sys
from typing import Any, Callable, Dict, Optional

import requests
from rich.console import Console
from rich.errors import StyleSyntaxError
from rich.style import Style
from rich.text import Text

from shellboot.core.config import ConfigMap
from shellboot.utils import tui

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "{venv}{user} {cwd} >>> "
DEFAULT_CONTINUATION = "... "

_ANSI_RE = re.compile(r"(\x1b\[[0-9;]*m)")


def _short_cwd() -> str:
    cwd = os.getcwd()
    home = os.path.expanduser("~")
    if cwd == home or cwd.startswith(home + os.sep):
        return "~" + cwd[len(home):]
    return cwd


def _venv() -> str:
    env = os.getenv("VIRTUAL_ENV")
    return f"({os.path.basename(env)}) " if env else ""


def readline_safe(text: str) -> str:
    """Wrap ANSI escapes in \\001/\\002 so readline measures the prompt width correctly."""
    return _ANSI_RE.sub("\x01\\1\x02", text)


class DynamicPrompt:
    """`sys.ps1`/`sys.ps2` value that renders on every `str()` call."""

    def __init__(self, render: Callable[[], str]) -> None:
        self._render = render

    def __str__(self) -> str:
        try:
            return self._render()
        except Exception as e:
            logger.debug("Prompt rendering failed: %s", e)
            return ">>> "


def valid_color(color: Optional[str]) -> Optional[str]:
    """`color` if Rich can parse it as a style, else None."""
    if not color:
        return None
    try:
        Style.parse(color)
    except StyleSyntaxError:
        logger.warning("Unknown prompt colour %r; prompt stays uncoloured", color)
        return None
    return color


# ==== PROMPT THEME CLASS ==== #

class PromptTheme:
    """
    Attributes:
        template (str): Primary prompt format string.
        continuation (str): Secondary prompt (``sys.ps2``).
        color (Optional[str]): Rich colour name; None disables colour.
    """

    def __init__(
        self,
        template: str = DEFAULT_TEMPLATE,
        continuation: str = DEFAULT_CONTINUATION,
        color: Optional[str] = None,
    ) -> None:
        self.template: str = template
        self.continuation: str = continuation
        self.color: Optional[str] = valid_color(color)
        self._console = Console(force_terminal=True, color_system="standard", highlight=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], color: Optional[str] = None) -> "PromptTheme":
        return cls(
            template=str(data.get("template") or DEFAULT_TEMPLATE),
            continuation=str(data.get("continuation") or DEFAULT_CONTINUATION),
            color=data.get("color") or color,
        )

    @classmethod
    def load(cls, config: ConfigMap, connected: bool, http: Any = None) -> "PromptTheme":
        """
        Load the theme named in the configuration.

        The file is read from `<theme_path>/<theme_file>`; if it is absent and
        the network is available it is fetched from the content URL and kept
        locally. Any failure falls back to the built-in theme.
        """
        path = os.path.join(config.theme_path, config.theme_file)
        if not os.path.isfile(path) and connected:
            http = http if http is not None else requests
            try:
                tui.tui_fetching_data(f"prompt theme {config.theme_file}")
                response = http.get(config.content_url(config.theme_file), timeout=max(config.timeout, 1))
                response.raise_for_status()
                os.makedirs(config.theme_path, exist_ok=True)
                with open(path, "w", encoding="utf-8") as f:
                    f.write(response.text)
            except (requests.RequestException, OSError) as e:
                logger.warning("Could not fetch prompt theme: %s", e)

        if not os.path.isfile(path):
            logger.debug("No theme file at %s; using default prompt", path)
            return cls(color=config.prompt_color)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Invalid theme file %s: %s", path, e)
            return cls(color=config.prompt_color)
        if not isinstance(data, dict):
            logger.warning("Theme file %s must contain a JSON object", path)
            return cls(color=config.prompt_color)
        return cls.from_dict(data, color=config.prompt_color)

    def render(self, user: str, template: Optional[str] = None) -> str:
        """Render `template` (default: the primary template) as an ANSI string."""
        fields = {
            "user": user,
            "cwd": _short_cwd(),
            "venv": _venv(),
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
        }
        try:
            plain = (template if template is not None else self.template).format(**fields)
        except (KeyError, IndexError, ValueError) as e:
            logger.debug("Bad prompt template %r: %s", self.template, e)
            plain = DEFAULT_TEMPLATE.format(**fields)
        if not self.color:
            return plain
        with self._console.capture() as capture:
            self._console.print(Text(plain, style=self.color), end="")
        return capture.get()

    def install(self, user: str, target: Any = sys, use_readline: bool = True) -> None:
        """Set `target.ps1`/`target.ps2` to prompts rendered from this theme."""
        wrap = readline_safe if use_readline else (lambda s: s)
        target.ps1 = DynamicPrompt(lambda: wrap(self.render(user)))
        target.ps2 = DynamicPrompt(lambda: wrap(self.render(user, self.continuation)))
