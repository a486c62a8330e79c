"""Shared fixtures for the shellboot test suite.

No test touches the network: every remote fetch goes through `FakeHttp`, and
the connectivity probe is replaced by a plain callable.
"""

import os
from typing import Dict, List, Optional, Union

import pytest
import requests

from shellboot.core.config import REQUIRED_KEYS

BASE_URL = "https://content.example.invalid"

REQUIRED_VALUES: Dict[str, str] = {
    "SHELLBOOT_USER": "ada",
    "SHELLBOOT_REPO_OWNER": "ada-l",
    "SHELLBOOT_REPO_NAME": "dotfiles",
    "SHELLBOOT_BASE_URL": BASE_URL,
    "SHELLBOOT_BRANCH": "main",
    "SHELLBOOT_THEME_FILE": "theme.json",
    "SHELLBOOT_THEME_PATH": "themes",
    "SHELLBOOT_PROMPT_COLOR": "green",
    "SHELLBOOT_FONT_NAME": "Test Mono",
    "SHELLBOOT_FONT_URL": "https://fonts.example.invalid/TestMono.zip",
    "SHELLBOOT_FONT_FILE": "TestMono-Regular.ttf",
    "SHELLBOOT_FONT_DIR": "fonts",
    "SHELLBOOT_TIMEOUT": "2",
    "SHELLBOOT_AUTO_UPDATE": "false",
    "SHELLBOOT_NO_BANNER": "true",
}

assert set(REQUIRED_VALUES) == set(REQUIRED_KEYS)


class FakeResponse:
    def __init__(self, body: Union[str, bytes] = "", status_code: int = 200) -> None:
        self.content: bytes = body.encode("utf-8") if isinstance(body, str) else body
        self.status_code = status_code
        self.headers = {"content-length": str(len(self.content))}

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size: int = 1024):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


class FakeHttp:
    """Stand-in for the `requests` module: url -> body, status or exception."""

    def __init__(self, routes: Optional[Dict[str, object]] = None) -> None:
        self.routes: Dict[str, object] = dict(routes or {})
        self.calls: List[str] = []

    def get(self, url: str, timeout: Optional[float] = None, stream: bool = False) -> FakeResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse("not found", status_code=404)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(route)  # type: ignore[arg-type]


def content_url(name: str) -> str:
    return f"{BASE_URL}/ada-l/dotfiles/main/{name}"


def render_config(values: Dict[str, str]) -> str:
    lines = ["# test configuration"]
    lines.extend(f'{key}="{value}"' for key, value in values.items())
    return "\n".join(lines) + "\n"


@pytest.fixture(autouse=True)
def restore_environ():
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def config_values(tmp_path) -> Dict[str, str]:
    values = dict(REQUIRED_VALUES)
    values["SHELLBOOT_THEME_PATH"] = str(tmp_path / "themes")
    values["SHELLBOOT_FONT_DIR"] = str(tmp_path / "fonts")
    return values


@pytest.fixture
def write_config(tmp_path):
    """Write a config file from a dict and return its path."""

    def _write(values: Dict[str, str], name: str = "shellboot.env") -> str:
        path = tmp_path / name
        path.write_text(render_config(values), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def config_file(write_config, config_values) -> str:
    return write_config(config_values)
