from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from asrun import __version__
from asrun.core.exceptions import PreconditionError, StartupTimeoutError
from asrun.core.types import RunPhase
from asrun.lifecycle.orchestrator import RunResult
from asrun.main import app


runner = CliRunner()


@pytest.fixture
def orchestrator_cls():
    """Patch the orchestrator so no server is launched."""
    with patch("asrun.main.LifecycleOrchestrator") as cls:
        cls.return_value.run = AsyncMock(
            return_value=RunResult(exit_code=0, interrupted_phase=RunPhase.RUNNING)
        )
        yield cls


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.delenv("ASRUN_SETTINGS", raising=False)
    monkeypatch.chdir(tmp_path)


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_passes_options_to_settings(orchestrator_cls, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "run",
            "--jboss-home", "/opt/jboss",
            "--server-version", "7.1.3.Final",
            "--startup-timeout", "90",
            "--port", "10090",
            "--topology", "domain",
            "--target-dir", str(tmp_path),
            "--filename", "app.war",
        ],
    )

    assert result.exit_code == 0, result.output
    settings = orchestrator_cls.call_args.args[0]
    assert settings.jboss_home == "/opt/jboss"
    assert settings.version == "7.1.3.Final"
    assert settings.startup_timeout == 90
    assert settings.port == 10090
    assert settings.topology == "domain"
    assert settings.filename == "app.war"


def test_run_interrupted_exit_code(orchestrator_cls) -> None:
    orchestrator_cls.return_value.run.return_value = RunResult(
        exit_code=130, interrupted_phase=RunPhase.LAUNCHING
    )

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 130


def test_run_precondition_failure(orchestrator_cls) -> None:
    orchestrator_cls.return_value.run.side_effect = PreconditionError(
        "The deployment '/work/target/app.war' could not be found.", "/work/target/app.war"
    )

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "Precondition failed" in result.output
    assert "/work/target/app.war" in result.output


def test_run_startup_failure(orchestrator_cls) -> None:
    orchestrator_cls.return_value.run.side_effect = StartupTimeoutError(60.1, 60)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "Server startup failed" in result.output


def test_run_missing_config_file(orchestrator_cls) -> None:
    result = runner.invoke(app, ["run", "--config", "nonexistent.yaml"])

    assert result.exit_code == 1
    assert "not found" in result.output
    orchestrator_cls.assert_not_called()


def test_run_invalid_config(orchestrator_cls, tmp_path: Path) -> None:
    config = tmp_path / "bad.yaml"
    config.write_text("port: not-a-number\n")

    result = runner.invoke(app, ["run", "--config", str(config)])

    assert result.exit_code == 1
    assert "Error loading settings" in result.output
    orchestrator_cls.assert_not_called()
