"""Git repository operations."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from trellis.config import DEFAULT_REMOTE
from trellis.errors import FatalVcsFailure, GitError, ToleratedVcsFailure

logger = logging.getLogger(__name__)

_GITHUB_SLUG = re.compile(r"github\.com[:/](?P<slug>[^/]+/[^/]+?)(?:\.git)?/?$")


class Policy(Enum):
    """What a failed command does to the rest of the sequence."""

    STRICT = "strict"
    TOLERANT = "tolerant"


@dataclass(frozen=True)
class Command:
    """A single git invocation."""

    args: tuple[str, ...]

    @classmethod
    def git(cls, *args: str) -> "Command":
        return cls(("git", *args))

    def __str__(self) -> str:
        return " ".join(self.args)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command."""

    command: Command
    ok: bool = True
    failure: Optional[ToleratedVcsFailure] = None


class CommandLog:
    """Ordered record of every command issued, whatever its outcome."""

    def __init__(self) -> None:
        self._commands: list[Command] = []

    def append(self, command: Command) -> None:
        self._commands.append(command)

    def mark(self) -> int:
        """Position to later slice the log from with `since`."""
        return len(self._commands)

    def since(self, mark: int) -> list[str]:
        return [str(command) for command in self._commands[mark:]]

    def as_strings(self) -> list[str]:
        return self.since(0)

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)


class CommandRunner:
    """Run git commands one at a time, in submission order."""

    def __init__(self, repo: Optional[Repo] = None, log: Optional[CommandLog] = None) -> None:
        self.repo = repo
        self.log = log if log is not None else CommandLog()

    def run(self, command: Command, policy: Policy = Policy.STRICT) -> CommandResult:
        """Run a command.

        The command is logged before it executes.

        Raises:
            FatalVcsFailure: If a strict command fails
        """
        self.log.append(command)
        logger.debug("Running: %s", command)
        try:
            self._execute(command)
        except GitCommandError as err:
            reason = (err.stderr or str(err)).strip()
            if policy is Policy.TOLERANT:
                failure = ToleratedVcsFailure(str(command), reason)
                logger.info("%s", failure)
                return CommandResult(command, ok=False, failure=failure)
            raise FatalVcsFailure(str(command), reason, self.log.as_strings()) from err
        return CommandResult(command)

    def _execute(self, command: Command) -> None:
        if self.repo is None:
            raise GitError("No repository to run commands in")
        output = self.repo.git.execute(list(command.args))
        if output:
            logger.debug("%s", output)


class GitRepo:
    """Git repository queries."""

    def __init__(self, path: Path, remote: str = DEFAULT_REMOTE) -> None:
        """Initialize repository."""
        self.remote = remote
        try:
            self.repo: Repo = Repo(path)
            if self.repo.bare:
                raise GitError("Cannot operate on bare repository")
        except (GitCommandError, ValueError, InvalidGitRepositoryError, NoSuchPathError) as err:
            raise GitError(f"Failed to open repository: {err}") from err

    def get_current_branch_name(self) -> str:
        """Get current branch name."""
        try:
            try:
                return self.repo.active_branch.name
            except TypeError:
                # Detached HEAD
                return ""
        except (GitCommandError, ValueError) as err:
            raise GitError(f"Failed to get current branch: {err}") from err

    def list_branches(self, remote: bool = False, merged: Optional[str] = None) -> list[str]:
        """List branch names, optionally only those merged into `merged`.

        Remote branch names are returned without the remote prefix. The base
        branch is not filtered out.
        """
        args = ["--format=%(refname:short)"]
        if remote:
            args.append("--remotes")
        if merged:
            args.extend(["--merged", merged])
        try:
            output = self.repo.git.branch(*args)
        except GitCommandError as err:
            raise GitError(f"Failed to list branches: {err}") from err

        prefix = f"{self.remote}/"
        names: set[str] = set()
        for line in output.splitlines():
            name = line.strip()
            if not name or name.startswith("("):
                continue
            if remote:
                # refs/remotes/origin/HEAD shortens to the bare remote name
                if not name.startswith(prefix):
                    continue
                name = name[len(prefix) :]
            if name == "HEAD":
                continue
            names.add(name)
        return sorted(names)

    def remote_branch_names(self) -> list[str]:
        return self.list_branches(remote=True)

    def get_remote_slug(self) -> str:
        """Get the `owner/name` GitHub identifier of the remote."""
        try:
            url = self.repo.remote(self.remote).url
        except ValueError as err:
            raise GitError(f"Remote {self.remote} is not configured") from err
        match = _GITHUB_SLUG.search(url)
        if not match:
            raise GitError(f"Remote {self.remote} ({url}) is not a GitHub repository")
        return match.group("slug")

    def changelog_summary(self, branch: str, base_branch: str) -> str:
        """One line per commit on `branch` that is not on the remote base branch."""
        try:
            return str(
                self.repo.git.log(
                    f"{self.remote}/{base_branch}..{branch}",
                    "--no-merges",
                    "--pretty=format:* %s",
                )
            ).strip()
        except GitCommandError:
            return ""
