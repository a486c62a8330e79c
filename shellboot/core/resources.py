# ==== HELPER SCRIPT RESOURCES MODULE ==== #
"""
Decide where helper scripts come from and load them.

Responsibilities:
- Pick the injection method: `LOCAL` when every helper script exists on disk,
  `REMOTE` when some are missing but the network is reachable.
- Load script text from disk or from the configured content URL.
- Refresh stale local copies when auto-update is enabled.
"""

import enum
import hashlib
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import requests

from shellboot.core.config import ConfigMap
from shellboot.core.errors import ResourceUnavailable

logger = logging.getLogger(__name__)

INSTALLER_SCRIPT = "installer.py"
BACKGROUND_SCRIPT = "background_tasks.py"
FUNCTIONS_SCRIPT = "functions.py"

HELPER_SCRIPTS = (INSTALLER_SCRIPT, BACKGROUND_SCRIPT, FUNCTIONS_SCRIPT)


class InjectionMethod(str, enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"


def missing_files(base_dir: str, files: Iterable[str]) -> List[str]:
    return [name for name in files if not os.path.isfile(os.path.join(base_dir, name))]


def resolve_injection(base_dir: str, files: Iterable[str], connected: bool) -> InjectionMethod:
    """
    Choose between local copies and remote fetches.

    Args:
        base_dir: Directory holding local copies.
        files: Script names that must be available.
        connected: Result of the connectivity probe.

    Returns:
        InjectionMethod: `LOCAL` if all files exist, else `REMOTE`.

    Raises:
        ResourceUnavailable: Files are missing and there is no connectivity.
    """
    missing = missing_files(base_dir, files)
    if not missing:
        return InjectionMethod.LOCAL
    if connected:
        logger.debug("Missing local scripts %s; using remote copies", ", ".join(missing))
        return InjectionMethod.REMOTE
    raise ResourceUnavailable(
        missing,
        f"No network connection and local scripts are missing: {', '.join(missing)}",
    )


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ==== SCRIPT SOURCE CLASS ==== #

class ScriptSource:
    """
    Loads helper scripts according to an injection method.

    Attributes:
        config (ConfigMap): Supplies the content URL and HTTP timeout.
        base_dir (str): Directory of local copies.
        method (InjectionMethod): Where scripts are read from.
    """

    def __init__(
        self,
        config: ConfigMap,
        base_dir: str,
        method: InjectionMethod,
        http: Any = None,
    ) -> None:
        self.config: ConfigMap = config
        self.base_dir: str = base_dir
        self.method: InjectionMethod = method
        self.http: Any = http if http is not None else requests

    def local_path(self, name: str) -> str:
        return os.path.join(self.base_dir, name)

    def fetch(self, name: str) -> str:
        """
        Download `name` from the content URL.

        Raises:
            requests.RequestException: On network or HTTP errors.
        """
        url = self.config.content_url(name)
        logger.debug("Fetching %s", url)
        response = self.http.get(url, timeout=max(self.config.timeout, 1))
        response.raise_for_status()
        return response.text

    def save(self, name: str, text: str) -> None:
        os.makedirs(self.base_dir, exist_ok=True)
        with open(self.local_path(name), "w", encoding="utf-8") as f:
            f.write(text)

    def read_local(self, name: str) -> Optional[str]:
        path = self.local_path(name)
        if not os.path.isfile(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def load(self, name: str) -> str:
        """
        Script text for `name`.

        Local copies win. In `REMOTE` mode a missing script is fetched and a
        copy is kept under `base_dir` for the next startup.

        Raises:
            ResourceUnavailable: Missing locally in `LOCAL` mode, or the fetch failed.
        """
        text = self.read_local(name)
        if text is not None:
            return text
        if self.method is InjectionMethod.LOCAL:
            raise ResourceUnavailable([name], f"Local script {self.local_path(name)} not found")
        try:
            text = self.fetch(name)
        except requests.RequestException as e:
            raise ResourceUnavailable([name], f"Could not fetch {name}: {e}") from e
        try:
            self.save(name, text)
        except OSError as e:
            logger.warning("Could not cache %s locally: %s", name, e)
        return text

    def refresh_stale(self, names: Iterable[str] = HELPER_SCRIPTS) -> List[str]:
        """
        Replace local copies whose content differs from the remote one.

        Best-effort: fetch failures are logged and the local copy is kept.

        Returns:
            List[str]: Names that were updated.
        """
        updated: List[str] = []
        hashes: Dict[str, str] = {}
        for name in names:
            local = self.read_local(name)
            try:
                remote = self.fetch(name)
            except requests.RequestException as e:
                logger.debug("Update check for %s skipped: %s", name, e)
                continue
            hashes[name] = _sha256(remote)
            if local is not None and _sha256(local) == hashes[name]:
                continue
            try:
                self.save(name, remote)
            except OSError as e:
                logger.warning("Could not update %s: %s", name, e)
                continue
            updated.append(name)
        if updated:
            logger.info("Updated helper scripts: %s (active next session)", ", ".join(updated))
        return updated
