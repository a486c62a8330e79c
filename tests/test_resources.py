import pytest
import requests

from conftest import REQUIRED_VALUES, FakeHttp, content_url
from shellboot.core.config import ConfigMap
from shellboot.core.errors import ResourceUnavailable
from shellboot.core.resources import (
    HELPER_SCRIPTS,
    InjectionMethod,
    ScriptSource,
    resolve_injection,
)


@pytest.fixture
def config():
    return ConfigMap.from_mapping(REQUIRED_VALUES)


def _write_all(directory, names=HELPER_SCRIPTS):
    for name in names:
        (directory / name).write_text(f"# {name}\n", encoding="utf-8")


def test_all_local_files_means_local(tmp_path):
    _write_all(tmp_path)
    assert resolve_injection(str(tmp_path), HELPER_SCRIPTS, connected=False) is InjectionMethod.LOCAL


def test_missing_files_with_network_means_remote(tmp_path):
    _write_all(tmp_path, HELPER_SCRIPTS[:1])
    assert resolve_injection(str(tmp_path), HELPER_SCRIPTS, connected=True) is InjectionMethod.REMOTE


def test_missing_files_without_network_is_fatal(tmp_path):
    _write_all(tmp_path, HELPER_SCRIPTS[:1])
    with pytest.raises(ResourceUnavailable) as excinfo:
        resolve_injection(str(tmp_path), HELPER_SCRIPTS, connected=False)
    assert excinfo.value.missing == list(HELPER_SCRIPTS[1:])


def test_load_prefers_local_copy(tmp_path, config):
    _write_all(tmp_path)
    http = FakeHttp()
    source = ScriptSource(config, str(tmp_path), InjectionMethod.REMOTE, http=http)

    assert source.load("functions.py") == "# functions.py\n"
    assert http.calls == []


def test_remote_load_fetches_and_caches(tmp_path, config):
    http = FakeHttp({content_url("functions.py"): "def hello():\n    return 'hi'\n"})
    source = ScriptSource(config, str(tmp_path / "scripts"), InjectionMethod.REMOTE, http=http)

    text = source.load("functions.py")

    assert "def hello" in text
    assert (tmp_path / "scripts" / "functions.py").read_text(encoding="utf-8") == text


def test_remote_load_failure(tmp_path, config):
    http = FakeHttp({content_url("functions.py"): requests.ConnectionError("down")})
    source = ScriptSource(config, str(tmp_path), InjectionMethod.REMOTE, http=http)
    with pytest.raises(ResourceUnavailable):
        source.load("functions.py")


def test_local_mode_never_fetches(tmp_path, config):
    http = FakeHttp({content_url("functions.py"): "x = 1\n"})
    source = ScriptSource(config, str(tmp_path), InjectionMethod.LOCAL, http=http)
    with pytest.raises(ResourceUnavailable):
        source.load("functions.py")
    assert http.calls == []


def test_refresh_stale_updates_only_changed(tmp_path, config):
    _write_all(tmp_path)
    http = FakeHttp({
        content_url("installer.py"): "# installer.py\n",
        content_url("background_tasks.py"): "# new background tasks\n",
        content_url("functions.py"): requests.Timeout("slow"),
    })
    source = ScriptSource(config, str(tmp_path), InjectionMethod.LOCAL, http=http)

    updated = source.refresh_stale()

    assert updated == ["background_tasks.py"]
    assert (tmp_path / "background_tasks.py").read_text(encoding="utf-8") == "# new background tasks\n"
    assert (tmp_path / "functions.py").read_text(encoding="utf-8") == "# functions.py\n"
