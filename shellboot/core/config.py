# ==== CONFIGURATION BOOTSTRAP MODULE ==== #
"""
Load, validate and export the flat `key=value` configuration for shellboot.

Responsibilities:
- Locate `shellboot.env` locally, fetching it from a remote URL when absent.
- Parse it with python-dotenv (`#` comments, optional quoting).
- Validate that every required key is present and typed correctly.
- Export the values into the process environment and hand a frozen
  `ConfigMap` to the rest of the startup.
"""

import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlparse

import requests
from dotenv import dotenv_values

from shellboot.core.errors import ConfigError
from shellboot.utils import tui


# --► MODULE INITIALIZATION
logger = logging.getLogger(__name__)


# ==== DEFAULTS & KEYS ==== #

DEFAULT_CONFIG_FILENAME = "shellboot.env"
DEFAULT_CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".config", "shellboot")
DEFAULT_FETCH_TIMEOUT = 10

KEY_USER = "SHELLBOOT_USER"
KEY_REPO_OWNER = "SHELLBOOT_REPO_OWNER"
KEY_REPO_NAME = "SHELLBOOT_REPO_NAME"
KEY_BASE_URL = "SHELLBOOT_BASE_URL"
KEY_BRANCH = "SHELLBOOT_BRANCH"
KEY_THEME_FILE = "SHELLBOOT_THEME_FILE"
KEY_THEME_PATH = "SHELLBOOT_THEME_PATH"
KEY_PROMPT_COLOR = "SHELLBOOT_PROMPT_COLOR"
KEY_FONT_NAME = "SHELLBOOT_FONT_NAME"
KEY_FONT_URL = "SHELLBOOT_FONT_URL"
KEY_FONT_FILE = "SHELLBOOT_FONT_FILE"
KEY_FONT_DIR = "SHELLBOOT_FONT_DIR"
KEY_TIMEOUT = "SHELLBOOT_TIMEOUT"
KEY_AUTO_UPDATE = "SHELLBOOT_AUTO_UPDATE"
KEY_NO_BANNER = "SHELLBOOT_NO_BANNER"

# Optional keys
KEY_MODULES = "SHELLBOOT_MODULES"
KEY_PROBE_HOST = "SHELLBOOT_PROBE_HOST"
KEY_LOG_LEVEL = "SHELLBOOT_LOG_LEVEL"

REQUIRED_KEYS: Tuple[str, ...] = (
    KEY_USER,
    KEY_REPO_OWNER,
    KEY_REPO_NAME,
    KEY_BASE_URL,
    KEY_BRANCH,
    KEY_THEME_FILE,
    KEY_THEME_PATH,
    KEY_PROMPT_COLOR,
    KEY_FONT_NAME,
    KEY_FONT_URL,
    KEY_FONT_FILE,
    KEY_FONT_DIR,
    KEY_TIMEOUT,
    KEY_AUTO_UPDATE,
    KEY_NO_BANNER,
)

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})

CONFIG_TEMPLATE = """\
# shellboot configuration (key=value, '#' starts a comment)
SHELLBOOT_USER="your-name"
SHELLBOOT_REPO_OWNER="your-github-user"
SHELLBOOT_REPO_NAME="shellboot-profile"
SHELLBOOT_BASE_URL="https://raw.githubusercontent.com"
SHELLBOOT_BRANCH="main"
SHELLBOOT_THEME_FILE="theme.json"
SHELLBOOT_THEME_PATH="~/.config/shellboot/themes"
SHELLBOOT_PROMPT_COLOR="cyan"
SHELLBOOT_FONT_NAME="CaskaydiaCove Nerd Font"
SHELLBOOT_FONT_URL="https://github.com/ryanoasis/nerd-fonts/releases/latest/download/CascadiaCode.zip"
SHELLBOOT_FONT_FILE="CaskaydiaCoveNerdFont-Regular.ttf"
SHELLBOOT_FONT_DIR="~/.local/share/fonts"
SHELLBOOT_TIMEOUT=2
SHELLBOOT_AUTO_UPDATE=true
SHELLBOOT_NO_BANNER=false

# Optional
# SHELLBOOT_MODULES="rich,requests"
# SHELLBOOT_PROBE_HOST="github.com"
# SHELLBOOT_LOG_LEVEL="INFO"
"""


def default_config_path() -> str:
    """Config file path: `$SHELLBOOT_CONFIG` or `~/.config/shellboot/shellboot.env`."""
    return os.getenv("SHELLBOOT_CONFIG") or os.path.join(DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILENAME)


# ==== VALUE PARSING ==== #

def parse_bool(key: str, value: str) -> bool:
    """
    Parse a boolean configuration value.

    Raises:
        ConfigError: If `value` is not one of true/false/1/0/yes/no/on/off.
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(
        ConfigError.INVALID_VALUE,
        f"{key} must be a boolean (true/false), got {value!r}",
        key=key,
    )


def parse_int(key: str, value: str) -> int:
    """
    Parse a non-negative integer configuration value.

    Raises:
        ConfigError: If `value` is not a non-negative integer.
    """
    try:
        number = int(value.strip())
    except ValueError:
        raise ConfigError(
            ConfigError.INVALID_VALUE,
            f"{key} must be an integer, got {value!r}",
            key=key,
        ) from None
    if number < 0:
        raise ConfigError(ConfigError.INVALID_VALUE, f"{key} must not be negative", key=key)
    return number


def _expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))


# ==== CONFIG MAP ==== #

@dataclass(frozen=True)
class ConfigMap:
    """
    Validated, read-only view of the shellboot configuration.

    Attributes mirror the required keys; `raw` keeps every parsed string
    (required and optional) exactly as read from the file.
    """

    user: str
    repo_owner: str
    repo_name: str
    base_url: str
    branch: str
    theme_file: str
    theme_path: str
    prompt_color: str
    font_name: str
    font_url: str
    font_file: str
    font_dir: str
    timeout: int
    auto_update: bool
    no_banner: bool
    modules: Tuple[str, ...] = ()
    probe_host: str = ""
    raw: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> "ConfigMap":
        """
        Build a `ConfigMap` from parsed `key=value` pairs.

        Raises:
            ConfigError: `MISSING_KEY` for the first absent/empty required key,
                         `INVALID_VALUE` for a malformed integer or boolean.
        """
        cleaned: Dict[str, str] = {
            k: v.strip() for k, v in values.items() if v is not None
        }
        for key in REQUIRED_KEYS:
            if not cleaned.get(key):
                raise ConfigError(
                    ConfigError.MISSING_KEY,
                    f"Required configuration key {key} is missing",
                    key=key,
                )

        base_url = cleaned[KEY_BASE_URL].rstrip("/")
        modules = tuple(
            m.strip() for m in cleaned.get(KEY_MODULES, "").split(",") if m.strip()
        )
        probe_host = cleaned.get(KEY_PROBE_HOST) or urlparse(base_url).hostname or ""

        return cls(
            user=cleaned[KEY_USER],
            repo_owner=cleaned[KEY_REPO_OWNER],
            repo_name=cleaned[KEY_REPO_NAME],
            base_url=base_url,
            branch=cleaned[KEY_BRANCH],
            theme_file=cleaned[KEY_THEME_FILE],
            theme_path=_expand(cleaned[KEY_THEME_PATH]),
            prompt_color=cleaned[KEY_PROMPT_COLOR],
            font_name=cleaned[KEY_FONT_NAME],
            font_url=cleaned[KEY_FONT_URL],
            font_file=cleaned[KEY_FONT_FILE],
            font_dir=_expand(cleaned[KEY_FONT_DIR]),
            timeout=parse_int(KEY_TIMEOUT, cleaned[KEY_TIMEOUT]),
            auto_update=parse_bool(KEY_AUTO_UPDATE, cleaned[KEY_AUTO_UPDATE]),
            no_banner=parse_bool(KEY_NO_BANNER, cleaned[KEY_NO_BANNER]),
            modules=modules,
            probe_host=probe_host,
            raw=MappingProxyType(dict(cleaned)),
        )

    def content_url(self, name: str) -> str:
        """URL of `name` in the configured repository at the configured branch."""
        return f"{self.base_url}/{self.repo_owner}/{self.repo_name}/{self.branch}/{name.lstrip('/')}"

    def as_rows(self) -> List[Dict[str, Any]]:
        """Rows for `tui_print_table`: one per raw key, in file order."""
        return [
            {"Key": key, "Value": value, "Required": key in REQUIRED_KEYS}
            for key, value in self.raw.items()
        ]


# ==== CONFIG BOOTSTRAP CLASS ==== #

class ConfigBootstrap:
    """
    Fetches (if needed), parses and validates the configuration file.

    Attributes:
        config_path (str): Local path of the `key=value` file.
        config_url (Optional[str]): Remote location used when the file is absent.
        timeout (float): HTTP timeout in seconds for the remote fetch.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config_url: Optional[str] = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        http: Any = None,
    ) -> None:
        """
        Args:
            config_path: Local config path. Defaults to `default_config_path()`.
            config_url: Remote URL. Defaults to `$SHELLBOOT_CONFIG_URL`.
            timeout: HTTP timeout in seconds.
            http: Object exposing `get(url, timeout=...)` like `requests`.
                  Defaults to the `requests` module.
        """
        self.config_path: str = _expand(config_path or default_config_path())
        self.config_url: Optional[str] = config_url or os.getenv("SHELLBOOT_CONFIG_URL")
        self.timeout: float = timeout
        self.http: Any = http if http is not None else requests

    def fetch(self) -> None:
        """
        Download the configuration file to `config_path`.

        Raises:
            ConfigError: `SOURCE_UNREACHABLE` if no URL is known or the fetch fails.
        """
        if not self.config_url:
            raise ConfigError(
                ConfigError.SOURCE_UNREACHABLE,
                f"Configuration file {self.config_path} not found and no "
                "SHELLBOOT_CONFIG_URL is set",
            )
        tui.tui_fetching_data(f"configuration from {self.config_url}")
        try:
            response = self.http.get(self.config_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ConfigError(
                ConfigError.SOURCE_UNREACHABLE,
                f"Could not fetch configuration from {self.config_url}: {e}",
            ) from e

        directory = os.path.dirname(self.config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tui.tui_saving_data(f"configuration to {self.config_path}")
        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write(response.text)

    def read(self) -> Dict[str, Optional[str]]:
        """Parse `config_path` into an ordered dict of raw values."""
        try:
            return dict(dotenv_values(self.config_path, encoding="utf-8"))
        except OSError as e:
            raise ConfigError(
                ConfigError.SOURCE_UNREACHABLE,
                f"Could not read configuration file {self.config_path}: {e}",
            ) from e
        except UnicodeDecodeError as e:
            raise ConfigError(
                ConfigError.INVALID_VALUE,
                f"Configuration file {self.config_path} is not valid UTF-8: {e}",
            ) from e

    def load(self, export: bool = True) -> ConfigMap:
        """
        Load and validate the configuration.

        Args:
            export: When True, copy the values into `os.environ` (existing
                    variables win, like `load_dotenv(override=False)`).

        Returns:
            ConfigMap: The validated configuration.

        Raises:
            ConfigError: On fetch failure, a missing key or an invalid value.
        """
        if not os.path.isfile(self.config_path):
            self.fetch()

        raw = self.read()
        config = ConfigMap.from_mapping(raw)
        if export:
            export_environment(config)
        logger.debug("Configuration loaded with %d keys", len(config.raw))
        return config


def export_environment(config: ConfigMap) -> None:
    """Copy configuration values into `os.environ` without overriding."""
    for key, value in config.raw.items():
        os.environ.setdefault(key, value)


def write_template(path: Optional[str] = None, overwrite: bool = False) -> str:
    """
    Write `CONFIG_TEMPLATE` to `path` (default config location).

    Returns:
        str: The path written to.

    Raises:
        FileExistsError: If the file exists and `overwrite` is False.
    """
    target = _expand(path or default_config_path())
    if os.path.exists(target) and not overwrite:
        raise FileExistsError(target)
    directory = os.path.dirname(target)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(CONFIG_TEMPLATE)
    return target
