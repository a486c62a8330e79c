import io
import subprocess
import zipfile
from types import SimpleNamespace

import pytest
import requests

from conftest import FakeHttp, FakeResponse
from shellboot.core import installer
from shellboot.core.config import ConfigMap


@pytest.fixture
def config(config_values):
    return ConfigMap.from_mapping(config_values)


def _zip_with(name, payload):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(f"fonts/{name}", payload)
        zf.writestr("README.md", "readme")
    return buffer.getvalue()


@pytest.mark.parametrize(
    "requirement, expected",
    [("python-dotenv", "dotenv"), ("rich>=13", "rich"), ("typing-extensions", "typing_extensions")],
)
def test_import_name(requirement, expected):
    assert installer.import_name(requirement) == expected


def test_install_modules_skips_present_and_reports(monkeypatch):
    calls = []

    def runner(cmd, **kwargs):
        calls.append(cmd)
        return SimpleNamespace(returncode=0 if cmd[-1] == "good-pkg" else 1, stderr="nope")

    monkeypatch.setattr(installer, "module_available", lambda name: name == "json")
    results = installer.install_modules(["json", "good-pkg", "bad-pkg"], runner=runner)

    assert results == {
        "json": installer.STATUS_PRESENT,
        "good-pkg": installer.STATUS_INSTALLED,
        "bad-pkg": installer.STATUS_FAILED,
    }
    assert [c[-1] for c in calls] == ["good-pkg", "bad-pkg"]
    assert calls[0][1:4] == ["-m", "pip", "install"]


def test_install_modules_runner_errors_are_failures(monkeypatch):
    def runner(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, 1)

    monkeypatch.setattr(installer, "module_available", lambda name: False)
    assert installer.install_modules(["slow"], runner=runner) == {"slow": installer.STATUS_FAILED}


def test_module_available_for_stdlib():
    assert installer.module_available("json")
    assert not installer.module_available("definitely-not-a-real-module-xyz")


def test_install_font_from_zip(config, tmp_path):
    http = FakeHttp({config.font_url: FakeResponse(_zip_with(config.font_file, b"font-bytes"))})

    assert installer.install_font(config, http=http, runner=lambda *a, **k: None)
    assert (tmp_path / "fonts" / config.font_file).read_bytes() == b"font-bytes"


def test_install_font_plain_file(config, tmp_path):
    http = FakeHttp({config.font_url: FakeResponse(b"raw-font")})

    assert installer.install_font(config, http=http, runner=lambda *a, **k: None)
    assert (tmp_path / "fonts" / config.font_file).read_bytes() == b"raw-font"


def test_install_font_missing_member(config, tmp_path):
    http = FakeHttp({config.font_url: FakeResponse(_zip_with("Other.ttf", b"x"))})
    assert not installer.install_font(config, http=http)
    assert not (tmp_path / "fonts" / config.font_file).exists()


def test_install_font_network_error(config):
    http = FakeHttp({config.font_url: requests.ConnectionError("down")})
    assert not installer.install_font(config, http=http)


def test_install_font_already_present(config, tmp_path):
    (tmp_path / "fonts").mkdir()
    (tmp_path / "fonts" / config.font_file).write_bytes(b"x")
    http = FakeHttp()

    assert installer.install_font(config, http=http)
    assert http.calls == []
