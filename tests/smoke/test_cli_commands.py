"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

FAST_TIMINGS = {
    "COUNTDOWN_TICKS": "1",
    "COUNTDOWN_INTERVAL": "0.05",
    "ANSWER_SETTLE_DELAY": "0",
    "SOURCE_PHASE_FLOOR": "0",
    "TARGET_PHASE_FLOOR": "0",
    "REPEAT_PHASE_FLOOR": "0",
    "AUTOPLAY_START_DELAY": "0",
    "AUTOPLAY_NEXT_CARD_DELAY": "0",
    "SPEECH_IDLE_SETTLE": "0",
    "SPEECH_DONE_GRACE": "0",
}


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "drill-data"


def run_cli_command(
    command: list[str], data_dir: Path, input: str | None = None, timeout: int = 30
) -> tuple[int, str, str]:
    """
    Run a CLI command against an isolated data directory.

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    env = {
        **os.environ,
        **FAST_TIMINGS,
        "DATA_DIR": str(data_dir),
        "SPEECH_BACKEND": "silent",
        "COLUMNS": "200",
    }
    result = subprocess.run(
        [sys.executable, "-m", "src.cli.drill_cli", *command],
        cwd=PROJECT_ROOT,
        env=env,
        input=input,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, data_dir):
        code, stdout, stderr = run_cli_command(["--help"], data_dir)

        assert code == 0, f"Help failed: {stderr}"
        assert "drill" in stdout.lower()
        assert "study" in stdout
        assert "listen" in stdout

    def test_deck_help(self, data_dir):
        code, stdout, stderr = run_cli_command(["deck", "--help"], data_dir)

        assert code == 0, f"Help failed: {stderr}"
        assert "add" in stdout
        assert "delete" in stdout


class TestDeckCommands:
    """Deck management against a fresh data directory."""

    def test_list_seeds_default_deck(self, data_dir):
        code, stdout, stderr = run_cli_command(["deck", "list"], data_dir)

        assert code == 0, f"deck list failed: {stderr}"
        assert "Good morning" in stdout
        assert "Buenos días" in stdout

    def test_add_edit_delete(self, data_dir):
        code, stdout, _ = run_cli_command(["deck", "add", "Yes", "Sí"], data_dir)
        assert code == 0
        assert "Added card 18" in stdout

        code, stdout, _ = run_cli_command(["deck", "edit", "18", "--back", "Sí, claro"], data_dir)
        assert code == 0
        assert "Updated card 18" in stdout

        code, stdout, _ = run_cli_command(["deck", "list"], data_dir)
        assert "Sí, claro" in stdout

        code, stdout, _ = run_cli_command(["deck", "delete", "18"], data_dir)
        assert code == 0
        assert "Deleted card 18" in stdout

    def test_delete_unknown_card_fails(self, data_dir):
        code, stdout, _ = run_cli_command(["deck", "delete", "999"], data_dir)

        assert code == 1
        assert "No card with id 999" in stdout

    def test_seed_force(self, data_dir):
        run_cli_command(["deck", "add", "Yes", "Sí"], data_dir)

        code, stdout, _ = run_cli_command(["deck", "seed", "--force"], data_dir)

        assert code == 0
        assert "17 default cards" in stdout


class TestSessionCommands:
    """Status, study, listen and reset."""

    def test_status_without_session(self, data_dir):
        code, stdout, stderr = run_cli_command(["status"], data_dir)

        assert code == 0, f"status failed: {stderr}"
        assert "Saved session" in stdout
        assert "None" in stdout

    def test_study_quit_saves_session(self, data_dir):
        code, stdout, stderr = run_cli_command(["study"], data_dir, input="q\n")

        assert code == 0, f"study failed: {stderr}"
        assert "Session saved" in stdout

        code, stdout, _ = run_cli_command(["status"], data_dir)
        assert "Manual" in stdout

        code, stdout, _ = run_cli_command(["reset"], data_dir)
        assert code == 0
        assert "Session cleared" in stdout

        code, stdout, _ = run_cli_command(["status"], data_dir)
        assert "None" in stdout

    def test_study_full_pass(self, data_dir):
        code, stdout, stderr = run_cli_command(["study", "--fresh"], data_dir, input="y\n" * 17)

        assert code == 0, f"study failed: {stderr}"
        assert "Session Complete" in stdout
        assert "100.0%" in stdout

    def test_listen_full_pass(self, data_dir):
        code, stdout, stderr = run_cli_command(["listen", "--fresh"], data_dir, timeout=60)

        assert code == 0, f"listen failed: {stderr}"
        assert "Session Complete" in stdout
