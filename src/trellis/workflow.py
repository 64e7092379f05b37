"""Workflow entry points, one per command."""

import logging
import random
import re
from typing import Callable, Optional

from trellis.branches import BranchClassifier
from trellis.config import WorkflowConfig
from trellis.engines import CleanupEngine, EngineResult, IntegrationEngine, ReleaseEngine, ResetEngine
from trellis.errors import ConfigurationError, GitError
from trellis.git import Command, CommandLog, CommandRunner, GitRepo
from trellis.github import PULL_REQUEST_DESCRIPTION, create_pull_request, strip_comments
from trellis.messaging import Messenger
from trellis.operator import Operator

logger = logging.getLogger(__name__)

TAG = "#trellis"
BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
EXAMPLE_BRANCH_NAMES = ("api-fix-invalid-auth", "desktop-cleanup-avatar-markup", "share-form-add-edit-link")

PullRequestCreator = Callable[..., str]


def is_valid_branch_name(name: str) -> bool:
    return bool(BRANCH_NAME_PATTERN.match(name))


class Workflow:
    """The team's branching workflow."""

    def __init__(
        self,
        config: WorkflowConfig,
        repo: GitRepo,
        runner: CommandRunner,
        operator: Operator,
        messenger: Messenger,
        pull_request_creator: PullRequestCreator = create_pull_request,
    ) -> None:
        self.config = config
        self.repo = repo
        self.runner = runner
        self.operator = operator
        self.messenger = messenger
        self.classifier = BranchClassifier(config)
        self.integration = IntegrationEngine(config, runner, self.classifier)
        self.reset = ResetEngine(config, runner, self.classifier, repo)
        self.cleaner = CleanupEngine(config, runner, self.classifier, repo)
        self.releaser = ReleaseEngine(config, runner, self.classifier, self.integration, self.cleaner, operator)
        self._create_pull_request = pull_request_creator

    @property
    def log(self) -> CommandLog:
        return self.runner.log

    def current_branch(self) -> str:
        branch = self.repo.get_current_branch_name()
        if not branch:
            raise GitError("Not on a branch (detached HEAD)")
        return branch

    def _git(self, *args: str) -> None:
        self.runner.run(Command.git(*args))

    def _post(self, text: str, url: Optional[str] = None, message_type: Optional[str] = None) -> None:
        if self.messenger.post(text, url=url, message_type=message_type):
            self.operator.say("Message has been posted")

    def update(self) -> EngineResult:
        """Update the current branch from its remote copy and the base branch."""
        branch = self.current_branch()
        self.operator.say(
            f"updating [green]{branch}[/green] to have most recent changes from [green]{self.config.base_branch}[/green]"
        )
        return self.integration.refresh(branch)

    def start(self, branch_name: Optional[str] = None) -> EngineResult:
        """Start a new branch from the latest base branch."""
        if not branch_name:
            taken = set(self.repo.remote_branch_names())
            example = random.choice(EXAMPLE_BRANCH_NAMES)
            branch_name = self.operator.ask(
                f"What would you like to name your branch? (ex: {example})",
                validate=lambda name: is_valid_branch_name(name) and name not in taken,
            )

        mark = self.log.mark()
        self._git("checkout", self.config.base_branch)
        self._git("pull")
        self._git("checkout", "-b", branch_name)

        self._post(f"#worklog starting work on {branch_name} {TAG}")
        return EngineResult(self.log.since(mark))

    def share(self) -> EngineResult:
        """Publish the current branch."""
        branch = self.current_branch()
        mark = self.log.mark()
        self._git("push", "--set-upstream", self.config.remote, branch)
        return EngineResult(self.log.since(mark))

    def track(self) -> EngineResult:
        """Track the remote branch with the same name."""
        branch = self.current_branch()
        mark = self.log.mark()
        self._git("branch", f"--set-upstream-to={self.config.remote}/{branch}", branch)
        return EngineResult(self.log.since(mark))

    def integrate(self, target_branch: Optional[str] = None) -> EngineResult:
        """Integrate the current branch into an aggregate branch."""
        target_branch = target_branch or self.config.default_integration_target
        self.classifier.assert_aggregate(target_branch, "integrate")
        branch = self.current_branch()

        mark = self.log.mark()
        self.update()
        self.integration.integrate(branch, target_branch)
        self._git("checkout", branch)

        self._post(f"#worklog integrating {branch} into {target_branch} {TAG}")
        return EngineResult(self.log.since(mark))

    def promote(self) -> EngineResult:
        """Deprecated alias of integrating into the last aggregate branch."""
        target = self.config.release_target
        self.operator.say(f"[red]DEPRECATED: Use `trellis integrate {target}` instead[/red]")
        return self.integrate(target)

    def nuke(self, bad_branch: str, destination: Optional[str] = None) -> EngineResult:
        """Reset an aggregate branch to a known good state.

        Prompts for the destination when none is given; an empty answer
        picks the branch's own snapshot.
        """
        self.classifier.assert_aggregate(bad_branch, "reset")
        if destination is None:
            default = self.classifier.snapshot_name(bad_branch)
            destination = self.operator.ask(f"What branch do you want to reset {bad_branch} to? (default: {default})")

        result = self.reset.nuke(bad_branch, destination)

        message = [f"#worklog resetting {bad_branch} branch to {result.good_branch} {TAG}"]
        if result.affected_branches:
            message.append("")
            message.append("the following branches were affected:")
            message.extend(f"* {name}" for name in result.affected_branches)
        self._post("\n".join(message))
        return result

    def release(self) -> EngineResult:
        """Release the current branch to production."""
        branch = self.current_branch()
        result = self.releaser.release(branch)
        if not result.completed:
            logger.info("Release of %s declined", branch)
            self.operator.say("[yellow]Release cancelled[/yellow]")
            return result

        self._post(f"#worklog releasing {branch} to production {TAG}")
        return result

    def cleanup(self) -> EngineResult:
        """Delete branches already merged into the base branch."""
        self.operator.say(f"Deleting branches that have been merged into [green]{self.config.base_branch}[/green]")
        return self.cleaner.cleanup()

    def reviewrequest(self, description: Optional[str] = None) -> str:
        """Open a pull request for the current branch and announce it.

        Returns:
            The pull request URL

        Raises:
            ConfigurationError: If no GitHub token is configured
            ReviewRequestError: If GitHub rejects the request
        """
        token = self.config.github_token
        if not token:
            raise ConfigurationError("No GitHub token configured: set `git config trellis.token` or GITHUB_TOKEN")

        self.update()

        if description is None:
            description = strip_comments(self.operator.edit(PULL_REQUEST_DESCRIPTION))
        branch = self.current_branch()
        repo = self.repo.get_remote_slug()
        url = self._create_pull_request(token, branch, repo, description, base=self.config.base_branch)
        self.operator.say(f"Pull request created: [blue]{url}[/blue]")

        mention = f"@{self.config.review_team} " if self.config.review_team else ""
        short_description = "\n".join(description.split("\n")[:5])
        review_message = "\n\n".join(
            [
                f"{mention}#reviewrequest for {branch} {TAG}",
                short_description,
                self.repo.changelog_summary(branch, self.config.base_branch),
            ]
        )
        self._post(review_message, url=url, message_type="review_request")
        return url
