import json
from types import SimpleNamespace

import requests

from conftest import FakeHttp, content_url
from shellboot.core.config import ConfigMap
from shellboot.core.theme import DEFAULT_TEMPLATE, PromptTheme, readline_safe, valid_color


def test_render_plain_template():
    theme = PromptTheme(template="{user}> ", color=None)
    assert theme.render("ada") == "ada> "


def test_render_with_color_emits_ansi():
    theme = PromptTheme(template="{user}> ", color="green")
    rendered = theme.render("ada")
    assert "\x1b[" in rendered
    assert "ada> " in rendered


def test_bad_template_falls_back_to_default():
    theme = PromptTheme(template="{nope}> ", color=None)
    assert theme.render("ada").endswith(">>> ")


def test_invalid_color_disables_color():
    assert valid_color("not-a-colour") is None
    assert PromptTheme(color="not-a-colour").color is None


def test_readline_safe_wraps_escapes():
    assert readline_safe("\x1b[32mhi\x1b[0m") == "\x01\x1b[32m\x02hi\x01\x1b[0m\x02"


def test_install_sets_dynamic_prompts():
    target = SimpleNamespace()
    PromptTheme(template="{user}$ ", continuation=".. ", color=None).install("ada", target=target)
    assert str(target.ps1) == "ada$ "
    assert str(target.ps2) == ".. "


def test_load_local_theme_file(config_values, tmp_path):
    config = ConfigMap.from_mapping(config_values)
    (tmp_path / "themes").mkdir()
    (tmp_path / "themes" / "theme.json").write_text(
        json.dumps({"template": "[{user}] ", "color": "magenta"}), encoding="utf-8"
    )

    theme = PromptTheme.load(config, connected=False)

    assert theme.template == "[{user}] "
    assert theme.color == "magenta"


def test_load_fetches_missing_theme(config_values, tmp_path):
    config = ConfigMap.from_mapping(config_values)
    http = FakeHttp({content_url("theme.json"): json.dumps({"template": "remote> "})})

    theme = PromptTheme.load(config, connected=True, http=http)

    assert theme.template == "remote> "
    assert theme.color == "green"
    assert (tmp_path / "themes" / "theme.json").is_file()


def test_load_falls_back_when_offline_or_broken(config_values, tmp_path):
    config = ConfigMap.from_mapping(config_values)
    assert PromptTheme.load(config, connected=False).template == DEFAULT_TEMPLATE

    http = FakeHttp({content_url("theme.json"): requests.ConnectionError("down")})
    assert PromptTheme.load(config, connected=True, http=http).template == DEFAULT_TEMPLATE

    (tmp_path / "themes").mkdir()
    (tmp_path / "themes" / "theme.json").write_text("{not json", encoding="utf-8")
    assert PromptTheme.load(config, connected=False).template == DEFAULT_TEMPLATE
