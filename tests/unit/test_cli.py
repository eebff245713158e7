"""
Unit tests for the terminal front end.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from rich.console import Console

from ivy_guide.cli import TerminalSession, build_parser, main
from ivy_guide.models.profile import StudentProfile
from ivy_guide.models.report import FinalReport, RecommendedPath
from ivy_guide.models.session import Notice


@pytest.fixture
def console():
    """Recording console wide enough to avoid wrapping."""
    return Console(record=True, width=160)


@pytest.fixture
def terminal(console, tmp_path):
    """TerminalSession around a mocked orchestrator."""
    orchestrator = MagicMock()
    orchestrator.session.id = "session-1"
    return TerminalSession(orchestrator, console, tmp_path)


class TestBuildParser:
    """Test cases for argument parsing."""

    def test_defaults(self):
        """Test default argument values."""
        # Act
        args = build_parser().parse_args([])

        # Assert
        assert args.config == "config/session_params.json"
        assert args.profile is None
        assert args.output_dir == "output"
        assert args.log_level is None

    def test_rejects_unknown_log_level(self):
        """Test that --log-level is limited to standard levels."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "LOUD"])


class TestMain:
    """Test cases for the entry point."""

    def test_invalid_config_returns_error(self, tmp_path, mocker):
        """Test that a config failing schema validation exits with status 1."""
        # Arrange
        config = tmp_path / "session_params.json"
        config.write_text(json.dumps({"log_level": "LOUD"}))
        run_sessions = mocker.patch("ivy_guide.cli.run_sessions", new_callable=AsyncMock)

        # Act
        status = main(["--config", str(config)])

        # Assert
        assert status == 1
        run_sessions.assert_not_called()

    def test_runs_sessions_with_validated_config(self, tmp_path, mocker):
        """Test that valid configs are passed on to the session loop."""
        # Arrange
        config = tmp_path / "session_params.json"
        config.write_text(json.dumps({"timing": {"session_duration_s": 90}}))
        profile = tmp_path / "profile.json"
        profile.write_text(json.dumps({"name": "Alex"}))
        run_sessions = mocker.patch(
            "ivy_guide.cli.run_sessions", new_callable=AsyncMock, return_value=0
        )
        configure_logging = mocker.patch("ivy_guide.cli.configure_logging")

        # Act
        status = main(
            [
                "--config", str(config),
                "--profile", str(profile),
                "--output-dir", str(tmp_path / "out"),
                "--log-level", "DEBUG",
            ]
        )

        # Assert
        assert status == 0
        configure_logging.assert_called_once_with(log_level="DEBUG")
        params, prefilled, output_dir, _ = run_sessions.call_args.args
        assert params.timing.session_duration_s == 90
        assert prefilled == {"name": "Alex"}
        assert output_dir == tmp_path / "out"


class TestTerminalSession:
    """Test cases for TerminalSession rendering and prompts."""

    def test_render_report(self, terminal, console):
        """Test that every report section is rendered."""
        # Arrange
        report = FinalReport(
            profile=StudentProfile(name="Alex", grade="11th", curriculum="IB", country="USA"),
            interests=("robotics", "drawing"),
            strengths=("persistence",),
            constraints=("no relocation",),
            career_clusters=("Engineering",),
            recommended_paths=(
                RecommendedPath(
                    name="Mechatronics Engineer",
                    why_it_fits=["Combines robotics and design"],
                    application_readiness=["Take AP Physics"],
                ),
            ),
            generated_at="2026-01-01T00:00:00+00:00",
        )

        # Act
        terminal.render_report(report)

        # Assert
        output = console.export_text()
        assert "Alex - 11th, IB, USA" in output
        assert "robotics" in output
        assert "no relocation" in output
        assert "Engineering" in output
        assert "Mechatronics Engineer" in output
        assert "Take AP Physics" in output

    def test_show_notice(self, terminal, console):
        """Test that notices show title and description."""
        # Act
        terminal.show_notice(
            Notice(level="error", title="Microphone access denied", description="Type instead")
        )

        # Assert
        output = console.export_text()
        assert "Microphone access denied" in output
        assert "Type instead" in output

    def test_save_transcript(self, terminal, tmp_path):
        """Test that the transcript is written to the output directory."""
        # Arrange
        terminal.orchestrator.session.messages = []

        # Act
        terminal.save_transcript()

        # Assert
        assert (tmp_path / "ivy-conversation-transcript.txt").exists()

    @pytest.mark.asyncio
    async def test_prefilled_profile_skips_questions(self, terminal):
        """Test that a prefilled profile is submitted through the form path."""
        # Arrange
        terminal.prefilled_profile = {"name": "Alex"}
        terminal.orchestrator.session.profile.name = "Alex"
        terminal.ask = AsyncMock()

        # Act
        result = await terminal.collect_profile()

        # Assert
        assert result is True
        terminal.orchestrator.choose_entry_method.assert_called_once_with("form")
        terminal.orchestrator.submit_profile_form.assert_called_once_with({"name": "Alex"})
        terminal.ask.assert_not_called()

    @pytest.mark.asyncio
    async def test_after_report_choices(self, terminal):
        """Test the restart and quit choices after the report."""
        # Arrange
        terminal.ask = AsyncMock(side_effect=["maybe", "r"])

        # Act
        restart = await terminal.after_report()

        # Assert
        assert restart is True
        assert terminal.ask.await_count == 2

        # Arrange
        terminal.ask = AsyncMock(return_value="q")

        # Act & Assert
        assert await terminal.after_report() is False
