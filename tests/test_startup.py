from types import SimpleNamespace

import pytest

from conftest import FakeHttp, content_url
from shellboot.core import startup
from shellboot.core.config import REQUIRED_KEYS
from shellboot.core.deferred import DeferredInitializer
from shellboot.core.errors import StartupAborted
from shellboot.core.resources import InjectionMethod

FUNCTIONS = "def hello():\n    return 'hi ' + user_name\n\nuser_name = 'ada'\n"
BACKGROUND = (
    "def ll(path='.'):\n"
    "    return 'listing ' + path\n"
    "\n"
    "registries.get_or_create('completion').register('ll', lambda text, line: ['-a', '-l'])\n"
    "X = 42\n"
)
INSTALLER = "installer_ran = True\n"


def _write_scripts(directory, background=BACKGROUND):
    (directory / "functions.py").write_text(FUNCTIONS, encoding="utf-8")
    (directory / "background_tasks.py").write_text(background, encoding="utf-8")
    (directory / "installer.py").write_text(INSTALLER, encoding="utf-8")


def _run(config_path, **kwargs):
    options = dict(
        namespace={"__name__": "__main__"},
        config_path=config_path,
        http=FakeHttp(),
        prober=lambda host, timeout: False,
        delay=0.0,
        install_editor=False,
        prompt_target=SimpleNamespace(),
        show_banner=False,
    )
    options.update(kwargs)
    return startup.run_startup(**options)


@pytest.fixture
def schedule_calls(monkeypatch):
    calls = []
    original = DeferredInitializer.schedule

    def recording(self, block, *args, **kwargs):
        calls.append(block)
        return original(self, block, *args, **kwargs)

    monkeypatch.setattr(DeferredInitializer, "schedule", recording)
    return calls


def test_local_startup_merges_deferred_definitions(config_file, tmp_path, schedule_calls):
    _write_scripts(tmp_path)

    result = _run(config_file)

    assert result.injection is InjectionMethod.LOCAL
    assert result.connected is False
    assert result.session.lookup("hello")() == "hi ada"
    assert len(schedule_calls) == 1

    assert result.handle.wait(5)
    assert result.handle.error is None
    session = result.session
    assert session.lookup("X") == 42
    assert session.lookup("ll")("/tmp") == "listing /tmp"
    assert "ll" in session.hub.get("completion")
    assert "installer_ran" not in session.namespace
    for name in ("user", "files", "base_dir", "connected", "base_url", "registries"):
        assert name not in session.namespace


def test_prompt_installed_on_target(config_file, tmp_path):
    _write_scripts(tmp_path)
    target = SimpleNamespace()

    result = _run(config_file, prompt_target=target)
    result.handle.wait(5)

    assert "ada" in str(target.ps1)


@pytest.mark.parametrize("missing_key", REQUIRED_KEYS)
def test_missing_key_aborts_before_scheduling(write_config, config_values, tmp_path, schedule_calls, missing_key):
    _write_scripts(tmp_path)
    del config_values[missing_key]
    path = write_config(config_values)

    with pytest.raises(StartupAborted) as excinfo:
        _run(path)

    assert excinfo.value.exit_code == startup.EXIT_CONFIG_ERROR
    assert schedule_calls == []


def test_unreachable_config_aborts(tmp_path, schedule_calls, monkeypatch):
    monkeypatch.delenv("SHELLBOOT_CONFIG_URL", raising=False)
    with pytest.raises(StartupAborted) as excinfo:
        _run(str(tmp_path / "missing.env"))
    assert excinfo.value.exit_code == startup.EXIT_CONFIG_ERROR
    assert schedule_calls == []


def test_undecodable_config_aborts(tmp_path, schedule_calls):
    path = tmp_path / "broken.env"
    path.write_bytes(b"SHELLBOOT_USER=\xff\xfe\n")
    with pytest.raises(StartupAborted) as excinfo:
        _run(str(path))
    assert excinfo.value.exit_code == startup.EXIT_CONFIG_ERROR
    assert schedule_calls == []


def test_offline_without_local_scripts_aborts(config_file, schedule_calls):
    with pytest.raises(StartupAborted) as excinfo:
        _run(config_file)
    assert excinfo.value.exit_code == startup.EXIT_RESOURCES_UNAVAILABLE
    assert schedule_calls == []


def test_remote_startup_fetches_scripts(config_file, tmp_path):
    http = FakeHttp({
        content_url("functions.py"): FUNCTIONS,
        content_url("background_tasks.py"): BACKGROUND,
        content_url("installer.py"): INSTALLER,
    })
    scripts_dir = tmp_path / "scripts"

    result = _run(config_file, http=http, prober=lambda host, timeout: True, base_dir=str(scripts_dir))

    assert result.injection is InjectionMethod.REMOTE
    assert result.handle.wait(5)
    assert result.handle.error is None
    assert result.session.lookup("X") == 42
    assert (scripts_dir / "background_tasks.py").is_file()
    assert content_url("theme.json") in http.calls


def test_broken_background_script_keeps_session_usable(config_file, tmp_path):
    _write_scripts(tmp_path, background="partial = 1\nraise ValueError('bad task')\n")

    result = _run(config_file)

    assert result.handle.wait(5)
    assert isinstance(result.handle.error, ValueError)
    assert "partial" not in result.session.namespace
    assert result.session.lookup("hello")() == "hi ada"


def test_banner_respects_config(write_config, config_values, tmp_path, monkeypatch):
    _write_scripts(tmp_path)
    shown = []
    monkeypatch.setattr(startup.tui, "tui_banner", lambda *args, **kwargs: shown.append(args))

    result = _run(write_config(config_values), show_banner=True)
    result.handle.wait(5)
    assert shown == []

    config_values["SHELLBOOT_NO_BANNER"] = "false"
    result = _run(write_config(config_values, name="banner.env"), show_banner=True)
    result.handle.wait(5)
    assert shown == [("ada", "local", False)]
