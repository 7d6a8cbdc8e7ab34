"""Unit tests for the throttler CLI."""

from pathlib import Path
from textwrap import dedent
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from throttler.cli import EXIT_CONFIG_ERROR, EXIT_FAILED, EXIT_OK, main
from throttler.scheduler import RunState
from throttler.state_store import Instance, Job, StateStoreQueryError


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Minimal valid configuration file."""
    path = tmp_path / "throttler.yaml"
    path.write_text(
        dedent("""
            throttle:
              max: 2
            db:
              url: "sqlite://"
            tgs:
              host: http://tgs.local
              user: throttler
              pass: pw
        """).strip()
    )
    return path


@pytest.fixture
def mock_throttler() -> MagicMock:
    """Runnable throttler returned from Throttler.connect."""
    throttler = MagicMock()
    throttler.runnable = True
    throttler.startup_error = None
    throttler.user_id = 5
    throttler.compile_job_description = "Compile active repository code"
    throttler.run.return_value = RunState(total=3, processed=3)
    return throttler


@pytest.fixture
def patched(mock_throttler: MagicMock):
    """Patch Throttler and logging setup in the CLI module."""
    with (
        patch("throttler.cli.Throttler") as throttler_cls,
        patch("throttler.cli.setup_logging") as setup,
    ):
        throttler_cls.connect.return_value = mock_throttler
        yield throttler_cls, setup


@pytest.mark.unit
class TestRunCommand:
    """Tests for `throttler run`."""

    def test_success(self, config_path: Path, patched, mock_throttler: MagicMock) -> None:
        throttler_cls, _ = patched

        result = CliRunner().invoke(main, ["run", "-c", str(config_path)])

        assert result.exit_code == EXIT_OK
        config = throttler_cls.connect.call_args.args[0]
        assert config.throttle.max == 2
        assert throttler_cls.connect.call_args.kwargs == {"dry_run": False}
        mock_throttler.run.assert_called_once()
        mock_throttler.close.assert_called_once()

    def test_max_jobs_override(self, config_path: Path, patched) -> None:
        throttler_cls, _ = patched

        result = CliRunner().invoke(main, ["run", "-c", str(config_path), "--max-jobs", "7"])

        assert result.exit_code == EXIT_OK
        assert throttler_cls.connect.call_args.args[0].throttle.max == 7

    def test_max_jobs_must_be_positive(self, config_path: Path, patched) -> None:
        result = CliRunner().invoke(main, ["run", "-c", str(config_path), "--max-jobs", "0"])

        assert result.exit_code == 2
        patched[0].connect.assert_not_called()

    def test_dry_run(self, config_path: Path, patched) -> None:
        throttler_cls, _ = patched

        CliRunner().invoke(main, ["run", "-c", str(config_path), "--dry-run"])

        assert throttler_cls.connect.call_args.kwargs == {"dry_run": True}

    def test_verbose_sets_debug(self, config_path: Path, patched) -> None:
        _, setup = patched

        CliRunner().invoke(main, ["run", "-c", str(config_path), "-v"])

        assert setup.call_args.kwargs["level"] == "DEBUG"
        assert setup.call_args.kwargs["log_dir"] == config_path.parent / "logs"

    def test_not_runnable(self, config_path: Path, patched, mock_throttler: MagicMock) -> None:
        mock_throttler.run.return_value = None

        result = CliRunner().invoke(main, ["run", "-c", str(config_path)])

        assert result.exit_code == EXIT_FAILED
        mock_throttler.close.assert_called_once()

    def test_run_error(self, config_path: Path, patched, mock_throttler: MagicMock) -> None:
        mock_throttler.run.return_value = RunState(error="state store query failed")

        result = CliRunner().invoke(main, ["run", "-c", str(config_path)])

        assert result.exit_code == EXIT_FAILED

    def test_instance_failures_still_succeed(
        self, config_path: Path, patched, mock_throttler: MagicMock
    ) -> None:
        """Per-instance failures do not fail the run."""
        mock_throttler.run.return_value = RunState(total=2, processed=2, failed=2)

        result = CliRunner().invoke(main, ["run", "-c", str(config_path)])

        assert result.exit_code == EXIT_OK

    def test_invalid_config(self, tmp_path: Path, patched) -> None:
        path = tmp_path / "throttler.yaml"
        path.write_text("throttle: {max: 0}\ndb: {url: 'sqlite://'}\n")

        result = CliRunner().invoke(main, ["run", "-c", str(path)])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Configuration error" in result.output
        patched[0].connect.assert_not_called()

    def test_config_not_found(
        self, tmp_path: Path, patched, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("THROTTLER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)

        result = CliRunner().invoke(main, ["run"])

        assert result.exit_code == EXIT_CONFIG_ERROR


@pytest.mark.unit
class TestStatusCommand:
    """Tests for `throttler status`."""

    def test_lists_instances_and_capacity(
        self, config_path: Path, patched, mock_throttler: MagicMock
    ) -> None:
        mock_throttler.state_store.list_online_instances.return_value = [
            Instance(id=1, name="Alpha", path="/srv/a", online=True),
            Instance(id=2, name="Beta", path="/srv/b", online=True),
        ]
        mock_throttler.state_store.list_active_compile_jobs.return_value = [
            Job(id=10, instance_id=2, description="Compile active repository code")
        ]

        result = CliRunner().invoke(main, ["status", "-c", str(config_path)])

        assert result.exit_code == EXIT_OK
        assert "Online instances: 2" in result.output
        assert "Alpha\n" in result.output
        assert "Beta [compiling]" in result.output
        assert "Active compile jobs: 1/2 (1 free)" in result.output
        mock_throttler.state_store.list_active_compile_jobs.assert_called_once_with(
            5, "Compile active repository code"
        )
        mock_throttler.close.assert_called_once()

    def test_not_runnable(self, config_path: Path, patched, mock_throttler: MagicMock) -> None:
        mock_throttler.runnable = False
        mock_throttler.startup_error = "state store unavailable: refused"

        result = CliRunner().invoke(main, ["status", "-c", str(config_path)])

        assert result.exit_code == EXIT_FAILED
        assert "state store unavailable" in result.output
        mock_throttler.close.assert_called_once()

    def test_query_error(self, config_path: Path, patched, mock_throttler: MagicMock) -> None:
        mock_throttler.state_store.list_online_instances.side_effect = StateStoreQueryError(
            "lost connection"
        )

        result = CliRunner().invoke(main, ["status", "-c", str(config_path)])

        assert result.exit_code == EXIT_FAILED
        assert "lost connection" in result.output
