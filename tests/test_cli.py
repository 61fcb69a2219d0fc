"""
Tests for the nimproxy CLI.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from nimproxy import config as cfg_mod
from nimproxy.cli import build_parser, main


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "backend:\n"
        "  url: http://nim.local/v1\n"
        "  api_key: nvapi-secret\n"
        "models:\n"
        "  fallback: x/default\n"
        "  mapping:\n"
        "    gpt-4: x/big\n"
    )
    orig = cfg_mod._config
    cfg_mod._config = None
    yield str(path)
    cfg_mod._config = orig


def test_aliases_share_a_handler():
    parser = build_parser()
    assert parser.parse_args(["serve"]).func is parser.parse_args(["dial"]).func
    assert parser.parse_args(["ping"]).func is parser.parse_args(["ring"]).func
    assert parser.parse_args(["info"]).func is parser.parse_args(["flash"]).func


def test_route_prints_mapping_and_fallback(config_file, capsys):
    main(["route", "--config", config_file, "gpt-4", "gpt-9"])
    out = capsys.readouterr().out
    assert "gpt-4 → x/big" in out
    assert "gpt-9 → x/default  (fallback)" in out


def test_flash_redacts_key(config_file, capsys):
    main(["flash", "--config", config_file])
    out = capsys.readouterr().out
    assert "http://nim.local/v1" in out
    assert "nvapi-secret" not in out
    assert "***redacted***" in out
    assert "x/big" in out


def test_serve_runs_uvicorn_with_overrides(config_file, monkeypatch):
    monkeypatch.setenv("NIMPROXY_CONFIG", config_file)
    with patch("uvicorn.run") as run:
        main(["serve", "--config", config_file, "--port", "9999"])
    run.assert_called_once()
    args, kwargs = run.call_args
    assert args[0] == "nimproxy.main:app"
    assert kwargs["port"] == 9999
    assert kwargs["host"] == "0.0.0.0"


def test_ring_reports_up(capsys):
    health = MagicMock(status_code=200)
    health.json.return_value = {"service": "svc", "reasoning_display": False, "thinking_mode": False}
    models = MagicMock(status_code=200)
    models.json.return_value = {"data": [{"id": "gpt-4"}]}

    with patch("httpx.get", side_effect=[health, models]):
        main(["ring", "--url", "http://localhost:3000"])
    out = capsys.readouterr().out
    assert "is UP" in out
    assert "gpt-4" in out


def test_ring_dead_line(capsys):
    with patch("httpx.get", side_effect=httpx.ConnectError("refused")):
        main(["ring"])
    assert "Dead line" in capsys.readouterr().out


def test_serve_is_the_primary_command():
    parser = build_parser()
    assert parser.parse_args(["serve"]).command == "serve"
    assert parser.parse_args(["start"]).func is parser.parse_args(["serve"]).func
    assert parser.parse_args(["status"]).func is parser.parse_args(["ring"]).func
    assert parser.parse_args(["resolve", "gpt-4"]).func is parser.parse_args(["route", "gpt-4"]).func


@pytest.mark.parametrize("name", ["up", "health"])
def test_retired_aliases_are_rejected(name):
    with pytest.raises(SystemExit):
        build_parser().parse_args([name])
