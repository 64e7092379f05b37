"""Tests for the command runner."""

import pytest

from trellis.errors import FatalVcsFailure, ToleratedVcsFailure
from trellis.git import Command, CommandLog, Policy

from fakes import RecordingRunner


def test_command_string() -> None:
    """Test that commands render as their literal invocation."""
    assert str(Command.git("pull", ".", "FOO")) == "git pull . FOO"


def test_runs_in_order() -> None:
    """Test that every command is logged in submission order."""
    runner = RecordingRunner()
    for args in (("checkout", "master"), ("pull",), ("remote", "prune", "origin")):
        runner.run(Command.git(*args))
    assert runner.log.as_strings() == ["git checkout master", "git pull", "git remote prune origin"]


def test_tolerant_failure_continues() -> None:
    """Test that a tolerated failure is recorded and does not raise."""
    runner = RecordingRunner(failures={"git branch -D prototype"})
    result = runner.run(Command.git("branch", "-D", "prototype"), Policy.TOLERANT)
    runner.run(Command.git("checkout", "prototype"))

    assert not result.ok
    assert isinstance(result.failure, ToleratedVcsFailure)
    assert runner.log.as_strings() == ["git branch -D prototype", "git checkout prototype"]


def test_strict_failure_raises_with_log() -> None:
    """Test that a strict failure raises and carries the log up to the failed command."""
    runner = RecordingRunner(failures={"git pull . FOO"})
    runner.run(Command.git("checkout", "prototype"))
    with pytest.raises(FatalVcsFailure) as excinfo:
        runner.run(Command.git("pull", ".", "FOO"))

    assert excinfo.value.command == "git pull . FOO"
    assert excinfo.value.log == ["git checkout prototype", "git pull . FOO"]
    assert "simulated failure" in str(excinfo.value)


def test_log_slices() -> None:
    """Test slicing the log from a mark."""
    log = CommandLog()
    log.append(Command.git("pull"))
    mark = log.mark()
    log.append(Command.git("push", "origin", "HEAD"))
    assert log.since(mark) == ["git push origin HEAD"]
    assert len(log) == 2
