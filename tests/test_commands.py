"""Tests for the subprocess adapter."""
from __future__ import annotations

import subprocess
from unittest.mock import Mock, patch

import pytest

from webtop_gen.commands import CommandResult, CommandRunner


class TestCommandRunner:
    @patch("subprocess.run")
    def test_success(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout="hello\n", stderr="")

        result = CommandRunner(timeout_s=3).run(["echo", "hello"])

        assert result == CommandResult(stdout="hello\n")
        assert result.ok is True
        assert mock_run.call_args.kwargs["timeout"] == 3

    @patch("subprocess.run")
    def test_empty_output_is_still_present(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout="", stderr="")

        result = CommandRunner().run(["true"])

        assert result.ok is True
        assert result.stdout == ""

    @patch("subprocess.run")
    def test_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError()

        result = CommandRunner().run(["upsc", "ups@host"])

        assert result.ok is False
        assert result.error == "upsc: command not found"

    @patch("subprocess.run")
    def test_non_zero_exit_keeps_stderr(self, mock_run):
        mock_run.return_value = Mock(
            returncode=1, stdout="partial", stderr="Error: Driver not connected\n"
        )

        result = CommandRunner().run(["upsc", "ups@host"])

        assert result.ok is False
        assert result.stdout is None
        assert result.error == "Error: Driver not connected"

    @patch("subprocess.run")
    def test_non_zero_exit_without_stderr(self, mock_run):
        mock_run.return_value = Mock(returncode=2, stdout="", stderr="")

        result = CommandRunner().run(["df"])

        assert result.error == "df: exited with status 2"

    @patch("subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["sensors"], timeout=1)

        result = CommandRunner(timeout_s=1).run(["sensors"])

        assert result.ok is False
        assert "timed out" in result.error

    @patch("subprocess.run")
    def test_output_over_limit_is_failure(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout="x" * 2048, stderr="")

        result = CommandRunner(max_output_bytes=1024).run(["sensors"])

        assert result.ok is False
        assert "exceeded" in result.error

    @patch("subprocess.run")
    def test_decodes_output_leniently(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout="ok", stderr="")

        CommandRunner().run(["df"])

        assert mock_run.call_args.kwargs["encoding"] == "utf-8"
        assert mock_run.call_args.kwargs["errors"] == "replace"

    @pytest.mark.linux
    def test_non_utf8_output_is_replaced(self, tmp_path):
        script = tmp_path / "fake-df"
        script.write_bytes(
            b"#!/bin/sh\n"
            b"printf 'Filesystem 1-blocks Used Available Capacity Mounted on\\n'\n"
            b"printf '/dev/sdb1 1073741824 536870912 536870912 50%% /mnt/caf\\351\\n'\n"
        )
        script.chmod(0o755)

        result = CommandRunner().run([str(script)])

        assert result.ok is True
        assert "/mnt/caf\ufffd" in result.stdout
