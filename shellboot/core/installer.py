# ==== MODULE & FONT INSTALLER ==== #
"""
Best-effort installation of supporting Python modules and the prompt font.

Nothing here raises for ordinary failures: each step logs what went wrong and
reports a status so the startup can carry on.
"""

import importlib.util
import logging
import os
import shutil
import subprocess
import sys
import tempfile
import zipfile
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from shellboot.core.config import ConfigMap
from shellboot.utils import tui

logger = logging.getLogger(__name__)

STATUS_PRESENT = "present"
STATUS_INSTALLED = "installed"
STATUS_FAILED = "failed"

_CHUNK_SIZE = 64 * 1024


# ==== PYTHON MODULES ==== #

def import_name(requirement: str) -> str:
    """Best guess of the import name for a distribution name (`python-dotenv` -> `dotenv`)."""
    known = {"python-dotenv": "dotenv", "pyyaml": "yaml", "pillow": "PIL"}
    base = requirement.split("[", 1)[0].split("=", 1)[0].split("<", 1)[0].split(">", 1)[0].strip()
    return known.get(base.lower(), base.replace("-", "_"))


def module_available(requirement: str) -> bool:
    try:
        return importlib.util.find_spec(import_name(requirement)) is not None
    except (ImportError, ValueError):
        return False


def install_modules(
    names: Iterable[str],
    runner: Callable[..., Any] = subprocess.run,
    timeout: float = 300,
) -> Dict[str, str]:
    """
    Install every module in `names` that is not importable yet.

    Args:
        names: Distribution names, optionally with version specifiers.
        runner: `subprocess.run`-compatible callable.
        timeout: Seconds allowed per pip invocation.

    Returns:
        Dict[str, str]: name -> `present`, `installed` or `failed`.
    """
    results: Dict[str, str] = {}
    for name in names:
        if module_available(name):
            results[name] = STATUS_PRESENT
            continue
        logger.info("Installing module %s", name)
        try:
            completed = runner(
                [sys.executable, "-m", "pip", "install", "--user", "--quiet", name],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Installing %s failed: %s", name, e)
            results[name] = STATUS_FAILED
            continue
        if completed.returncode == 0:
            results[name] = STATUS_INSTALLED
        else:
            logger.warning("pip could not install %s: %s", name, (completed.stderr or "").strip()[-400:])
            results[name] = STATUS_FAILED
    return results


# ==== FONTS ==== #

def font_installed(config: ConfigMap) -> bool:
    return os.path.isfile(os.path.join(config.font_dir, config.font_file))


def _download(url: str, target: str, http: Any, timeout: float, progress: bool) -> None:
    with http.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        total = int(response.headers.get("content-length", 0) or 0)
        with open(target, "wb") as f:
            if not progress:
                for chunk in response.iter_content(_CHUNK_SIZE):
                    f.write(chunk)
                return
            with tui.tui_download_progress() as bar:
                task_id = bar.add_task("Downloading font", total=total or None)
                for chunk in response.iter_content(_CHUNK_SIZE):
                    f.write(chunk)
                    bar.update(task_id, advance=len(chunk))


def _extract_font(archive: str, font_file: str, destination: str) -> bool:
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            if os.path.basename(member) == font_file:
                with zf.open(member) as src, open(destination, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                return True
    return False


def refresh_font_cache(runner: Callable[..., Any] = subprocess.run) -> None:
    """Rebuild the fontconfig cache when `fc-cache` exists (Linux)."""
    fc_cache = shutil.which("fc-cache")
    if not fc_cache:
        return
    try:
        runner([fc_cache, "-f"], capture_output=True, timeout=120)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("fc-cache failed: %s", e)


def install_font(
    config: ConfigMap,
    http: Any = None,
    progress: bool = False,
    runner: Optional[Callable[..., Any]] = None,
) -> bool:
    """
    Make sure `<font_dir>/<font_file>` exists, downloading it if needed.

    The download at `font_url` may be a zip archive containing `font_file`
    or the font file itself.

    Returns:
        bool: True if the font is installed afterwards.
    """
    if font_installed(config):
        logger.debug("Font %s already installed", config.font_name)
        return True

    http = http if http is not None else requests
    destination = os.path.join(config.font_dir, config.font_file)
    logger.info("Installing font %s", config.font_name)
    try:
        os.makedirs(config.font_dir, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="shellboot-font-") as tmp:
            download = os.path.join(tmp, "download")
            _download(config.font_url, download, http, max(config.timeout, 1) * 15, progress)
            if zipfile.is_zipfile(download):
                if not _extract_font(download, config.font_file, destination):
                    logger.warning("%s not found in %s", config.font_file, config.font_url)
                    return False
            else:
                shutil.copyfile(download, destination)
    except (requests.RequestException, OSError, zipfile.BadZipFile) as e:
        logger.warning("Font installation failed: %s", e)
        return False

    refresh_font_cache(runner if runner is not None else subprocess.run)
    logger.info("Font %s installed to %s", config.font_name, config.font_dir)
    return True
