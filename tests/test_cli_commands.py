"""Tests for the icarebridge CLI."""

import json

import pytest
from typer.testing import CliRunner

from icarebridge import __version__
from icarebridge.cli import commands
from icarebridge.facade import ICare
from icarebridge.runtime.values import GuestError, GuestMap

runner = CliRunner()


@pytest.fixture
def guest(monkeypatch, fake_runtime, fake_transport):
    """Patch the CLI to bootstrap against an in-memory guest."""
    monkeypatch.setattr(commands, "configure_console", lambda level="INFO": None)

    async def fake_load_icare(config=None, **kwargs):
        return ICare(fake_runtime, fake_transport, serialize_invocations=config.bridge.serialize_invocations)

    monkeypatch.setattr(commands, "load_icare", fake_load_icare)
    return fake_runtime


def _params(tmp_path, data) -> str:
    path = tmp_path / "params.json"
    path.write_text(json.dumps(data))
    return str(path)


def test_version():
    result = runner.invoke(commands.app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_compute_risk_writes_output(tmp_path, guest):
    guest.result = GuestMap((("profile", '[{"id": 1}]'), ("method", "iCARE - absolute risk")))
    out = tmp_path / "result.json"
    result = runner.invoke(
        commands.app,
        [
            "compute-risk",
            _params(tmp_path, {"applyAgeStart": 50}),
            "--config",
            str(tmp_path / "absent.json"),
            "--output",
            str(out),
        ],
    )
    assert result.exit_code == 0, result.stdout
    assert json.loads(out.read_text()) == {"profile": [{"id": 1}], "method": "iCARE - absolute risk"}
    assert "apply_age_start=50" in guest.sources[0]


def test_guest_error_exits_1(tmp_path, guest):
    guest.result = GuestError("file not found")
    result = runner.invoke(
        commands.app,
        ["compute-risk-split", _params(tmp_path, {"cutpoint": 50}), "-c", str(tmp_path / "absent.json")],
    )
    assert result.exit_code == 1
    assert "GUEST_ERROR" in result.stdout
    assert "file not found" in result.stdout


def test_validate_conflict_exits_1(tmp_path, guest):
    params = {"icareModelParameters": {"applyAgeStart": 50}, "predictedRiskVariableName": "risk"}
    result = runner.invoke(commands.app, ["validate", _params(tmp_path, params), "-c", str(tmp_path / "absent.json")])
    assert result.exit_code == 1
    assert "PARAMETER_CONFLICT" in result.stdout
    assert guest.sources == []


def test_invalid_params_file_exits_2(tmp_path, guest):
    path = tmp_path / "params.json"
    path.write_text("{broken")
    result = runner.invoke(commands.app, ["validate", str(path), "-c", str(tmp_path / "absent.json")])
    assert result.exit_code == 2


def test_config_init(tmp_path, monkeypatch):
    target = tmp_path / "config.json"
    monkeypatch.setattr(commands, "get_config_path", lambda: target)
    assert runner.invoke(commands.app, ["config-init"]).exit_code == 0
    assert json.loads(target.read_text())["runtime"]["guestModule"] == "icare"
    assert runner.invoke(commands.app, ["config-init"]).exit_code == 1
    assert runner.invoke(commands.app, ["config-init", "--force"]).exit_code == 0
