"""Tests for the convoflow CLI."""

import io

import pytest

from convoflow.main import cli


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "convoflow.yaml"


class TestCli:
    """Command-line entry point behaviour."""

    def test_chat_prints_replies(self, config_path, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("help me get started\n\nexit\ndone\n"))

        assert cli(["--config", str(config_path), "chat"]) == 0

        output = capsys.readouterr().out
        assert "Welcome! I'll guide you through the general onboarding process." in output
        assert "Great! Let's move" not in output

    def test_chat_is_the_default_command(self, config_path, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("what is the price\n"))

        assert cli(["--config", str(config_path)]) == 0
        assert "(understood as faq)" in capsys.readouterr().out

    def test_stats_replays_transcript(self, config_path, tmp_path, capsys):
        transcript = tmp_path / "transcript.txt"
        transcript.write_text("help me get started\ndone\n\n", encoding="utf-8")

        assert cli(["--config", str(config_path), "stats", str(transcript)]) == 0

        output = capsys.readouterr().out
        assert "Messages handled: 2" in output
        assert "Sessions: 1 total, 1 active" in output
        assert "Flow: onboarding" in output

    def test_stats_missing_transcript(self, config_path, tmp_path):
        assert cli(["--config", str(config_path), "stats", str(tmp_path / "nope.txt")]) == 1

    def test_config_error_exit_code(self, config_path):
        config_path.write_text("context:\n  max_messages: 0\n", encoding="utf-8")

        assert cli(["--config", str(config_path), "chat"]) == 1
