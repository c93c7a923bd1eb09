"""
Tests for the CLI interface.
"""
import os
import tempfile
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from ai_answer_cache.cli.main import EXIT_CODE_FAIL, EXIT_CODE_PASS, app
from ai_answer_cache.core.errors import UpstreamError
from ai_answer_cache.storage.models import DAILY, MONTHLY, UsageEvent
from ai_answer_cache.storage.repository import UsageRepository, initialize_schema

runner = CliRunner()


@pytest.fixture
def db_path():
    """Path to a database file in a temporary directory."""
    temp_dir = tempfile.mkdtemp()
    yield os.path.join(temp_dir, "cli.db")
    import shutil
    shutil.rmtree(temp_dir, ignore_errors=True)


def _env(db_path):
    return {
        "AI_ANSWER_CACHE_DB": db_path,
        "OPENAI_API_KEY": "",
        "CACHE_ENABLED": "",
        "MONITORING_ENABLED": "",
    }


class TestCLI:
    """Test CLI commands."""

    def test_no_command_shows_hint(self, db_path):
        """Test running without a command."""
        result = runner.invoke(app, [], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "--help" in result.output

    def test_init_creates_database(self, db_path):
        """Test that init creates the store."""
        result = runner.invoke(app, ["init"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "Database initialized" in result.output
        assert os.path.exists(db_path)

    def test_status_reports_cache_size(self, db_path):
        """Test status on an initialized store."""
        initialize_schema(db_path)
        result = runner.invoke(app, ["status"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "Cached answers: 0 (0 hits)" in result.output
        assert "missing" in result.output

    def test_status_without_store(self, db_path):
        """Test status before init."""
        result = runner.invoke(app, ["status"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "Cache store unavailable" in result.output

    def test_invalid_config_exits_with_failure(self, db_path):
        """Test that a bad configuration is reported."""
        env = _env(db_path)
        env["CACHE_ENABLED"] = "maybe"
        result = runner.invoke(app, ["status"], env=env)
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid configuration" in result.output

    def test_missing_config_file(self, db_path):
        """Test a --config path that does not exist."""
        result = runner.invoke(app, ["--config", "/nonexistent/config.yaml", "status"],
                               env=_env(db_path))
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid configuration" in result.output

    def test_usage_without_data(self, db_path):
        """Test usage for a period with no events."""
        initialize_schema(db_path)
        result = runner.invoke(app, ["usage", "--date", "2026-10-19"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "No usage recorded" in result.output

    def test_usage_shows_bucket(self, db_path):
        """Test usage display for daily and monthly buckets."""
        initialize_schema(db_path)
        event = UsageEvent(
            timestamp=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
            model="gpt-4o",
            method="generate_answer",
            prompt_tokens=100,
            completion_tokens=50,
            total_tokens=150,
            estimated_cost=0.00075,
        )
        UsageRepository(db_path).apply_event(event, [(DAILY, "2026-10-19"), (MONTHLY, "2026-10")])

        result = runner.invoke(app, ["usage", "--date", "2026-10-19"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "Usage for 2026-10-19" in result.output
        assert "Tokens: 150" in result.output
        assert "$0.000750" in result.output
        assert "gpt-4o" in result.output

        result = runner.invoke(app, ["usage", "--month", "2026-10"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "Usage for 2026-10" in result.output

    def test_usage_lists_recorded_periods(self, db_path):
        """Test usage --list on a store with two days in one month."""
        initialize_schema(db_path)
        repo = UsageRepository(db_path)
        for day in ("2026-10-18", "2026-10-19"):
            event = UsageEvent(
                timestamp=datetime(2026, 10, 19, tzinfo=timezone.utc),
                model="gpt-4o",
                method="generate_answer",
                total_tokens=10,
            )
            repo.apply_event(event, [(DAILY, day), (MONTHLY, "2026-10")])

        result = runner.invoke(app, ["usage", "--list"], env=_env(db_path))

        assert result.exit_code == EXIT_CODE_PASS
        assert "Days: 2026-10-19, 2026-10-18" in result.output
        assert "Months: 2026-10" in result.output

    def test_usage_list_on_empty_store(self, db_path):
        """Test usage --list before anything is recorded."""
        initialize_schema(db_path)
        result = runner.invoke(app, ["usage", "--list"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "Days: none" in result.output

    def test_cleanup(self, db_path):
        """Test cleanup on an empty store."""
        initialize_schema(db_path)
        result = runner.invoke(app, ["cleanup"], env=_env(db_path))
        assert result.exit_code == EXIT_CODE_PASS
        assert "Removed 0 expired cache entries" in result.output

    @patch('ai_answer_cache.cli.main.AnswerService')
    def test_ask_prints_answer(self, mock_service_class, db_path):
        """Test ask with an image and a grade."""
        service = mock_service_class.from_settings.return_value
        service.generate_answer.return_value = "2 + 2 = 4"

        result = runner.invoke(
            app, ["ask", "2+2=?", "--image", "http://x/img.png", "--grade", "3"],
            env=_env(db_path),
        )

        assert result.exit_code == EXIT_CODE_PASS
        assert "2 + 2 = 4" in result.output
        args, kwargs = service.generate_answer.call_args
        assert args == ("2+2=?",)
        assert kwargs["images"] == ["http://x/img.png"]
        assert kwargs["user_context"].grade == 3

    @patch('ai_answer_cache.cli.main.AnswerService')
    def test_ask_reports_errors(self, mock_service_class, db_path):
        """Test that service errors exit with failure."""
        service = mock_service_class.from_settings.return_value
        service.generate_answer.side_effect = UpstreamError("rate limit reached")

        result = runner.invoke(app, ["ask", "2+2=?"], env=_env(db_path))

        assert result.exit_code == EXIT_CODE_FAIL
        assert "rate limit reached" in result.output
