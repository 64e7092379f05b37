"""Branch lifecycle engines.

Each engine issues git commands through a shared CommandRunner and returns
the slice of the command log it produced. Validation happens before the
first command, so a rejected request never touches the repository.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from trellis.branches import BranchClassifier
from trellis.config import WorkflowConfig
from trellis.git import Command, CommandResult, CommandRunner, GitRepo, Policy
from trellis.operator import Operator

logger = logging.getLogger(__name__)

RETENTION_GUIDANCE = """
You should retain [green]{branch}[/green] for backporting if

  * It aims to fix some kind of problem with functionality already released to production

  * You have been instructed to retain this branch

  * You're not sure (better safe than sorry!)
"""


@dataclass
class EngineResult:
    """Commands issued by one engine call."""

    commands: list[str] = field(default_factory=list)
    affected_branches: list[str] = field(default_factory=list)
    deleted_branches: list[str] = field(default_factory=list)
    good_branch: Optional[str] = None
    completed: bool = True


class _Engine:
    def __init__(self, config: WorkflowConfig, runner: CommandRunner, classifier: BranchClassifier) -> None:
        self.config = config
        self.runner = runner
        self.classifier = classifier

    def _git(self, *args: str, policy: Policy = Policy.STRICT) -> CommandResult:
        return self.runner.run(Command.git(*args), policy)


class IntegrationEngine(_Engine):
    """Merge one branch into another and publish both."""

    def refresh(self, branch: str) -> EngineResult:
        """Bring `branch` up to date with its own remote copy and the base branch.

        The branch may not be published yet, so pulling its remote copy may fail.
        """
        mark = self.runner.log.mark()
        self._git("pull", self.config.remote, branch, policy=Policy.TOLERANT)
        self._git("pull", self.config.remote, self.config.base_branch)
        self._git("push", self.config.remote, "HEAD")
        return EngineResult(self.runner.log.since(mark))

    def integrate(self, source: str, target: str, validate: bool = True) -> EngineResult:
        """Merge `source` into `target`, then cascade into the upstream aggregate.

        Leaves `source` checked out, or `target` when a cascade ran.

        Args:
            source: Branch whose local content is merged
            target: Branch receiving the merge
            validate: Whether `target` must be an aggregate branch

        Raises:
            InvalidTargetError: If `validate` is set and `target` is not an aggregate branch
            FatalVcsFailure: If a git command fails
        """
        if validate:
            self.classifier.assert_aggregate(target, "integrate")
        mark = self.runner.log.mark()

        logger.info("Integrating %s into %s", source, target)
        self._merge_into(source, target)

        cascade = self.classifier.cascade_target(target)
        if cascade:
            logger.info("Cascading %s into %s", target, cascade)
            self._merge_into(target, cascade)
        return EngineResult(self.runner.log.since(mark))

    def _merge_into(self, source: str, target: str) -> None:
        remote = self.config.remote
        # Local copy may not exist; checkout recreates it from the remote
        self._git("branch", "-D", target, policy=Policy.TOLERANT)
        self._git("checkout", target)
        self._git("pull", remote, target)
        self._git("pull", ".", source)
        self._git("push", remote, "HEAD")
        self._git("checkout", source)


class ResetEngine(_Engine):
    """Replace an aggregate branch with a known good snapshot."""

    def __init__(
        self,
        config: WorkflowConfig,
        runner: CommandRunner,
        classifier: BranchClassifier,
        branches: GitRepo,
    ) -> None:
        super().__init__(config, runner, classifier)
        self.branches = branches

    def good_branch_for(self, bad_branch: str, destination: Optional[str] = None) -> str:
        if not destination:
            return self.classifier.snapshot_name(bad_branch)
        return self.classifier.snapshot_name(destination)

    def affected_branches(self, bad_branch: str, good_branch: str) -> list[str]:
        """Feature branches merged into `bad_branch` but not into `good_branch`."""
        remote = self.config.remote
        on_bad = self.branches.list_branches(remote=True, merged=f"{remote}/{bad_branch}")
        on_good = set(self.branches.list_branches(remote=True, merged=f"{remote}/{good_branch}"))
        return sorted(name for name in set(on_bad) - on_good if self.classifier.is_feature(name))

    def nuke(self, bad_branch: str, destination: Optional[str] = None) -> EngineResult:
        """Reset `bad_branch` and its snapshot to the good branch.

        Raises:
            InvalidTargetError: If `bad_branch` is not an aggregate branch
            FatalVcsFailure: If a git command fails
        """
        self.classifier.assert_aggregate(bad_branch, "reset")
        good_branch = self.good_branch_for(bad_branch, destination)
        affected = self.affected_branches(bad_branch, good_branch)

        mark = self.runner.log.mark()
        self.reset_branch(bad_branch, good_branch)
        snapshot = self.classifier.snapshot_name(bad_branch)
        if snapshot != good_branch:
            self.reset_branch(snapshot, good_branch)
        return EngineResult(self.runner.log.since(mark), affected_branches=affected, good_branch=good_branch)

    def reset_branch(self, target: str, good_branch: str) -> EngineResult:
        """Delete `target` locally and remotely and recreate it from `good_branch`.

        Leaves the base branch checked out.
        """
        base = self.config.base_branch
        remote = self.config.remote
        mark = self.runner.log.mark()

        logger.info("Resetting %s to %s", target, good_branch)
        self._git("checkout", base)
        self._git("branch", "-D", good_branch, policy=Policy.TOLERANT)
        self._git("checkout", good_branch)
        self._git("pull", remote, good_branch)
        self._git("branch", "-D", target, policy=Policy.TOLERANT)
        self._git("push", remote, "--delete", target)
        self._git("checkout", "-b", target)
        self._git("push", "--set-upstream", remote, target)
        self._git("checkout", base)
        return EngineResult(self.runner.log.since(mark))


class CleanupEngine(_Engine):
    """Delete feature branches already merged into the base branch."""

    def __init__(
        self,
        config: WorkflowConfig,
        runner: CommandRunner,
        classifier: BranchClassifier,
        branches: GitRepo,
    ) -> None:
        super().__init__(config, runner, classifier)
        self.branches = branches

    def cleanup(self) -> EngineResult:
        base = self.config.base_branch
        remote = self.config.remote
        mark = self.runner.log.mark()

        self._git("checkout", base)
        self._git("pull")
        self._git("remote", "prune", remote)

        deleted = []
        # Aggregate, snapshot and backport branches are long lived even once merged
        for name in self.branches.list_branches(remote=True, merged=base):
            if self.classifier.is_feature(name):
                self._git("push", remote, "--delete", name)
                deleted.append(f"{remote}/{name}")
        for name in self.branches.list_branches(merged=base):
            if self.classifier.is_feature(name):
                self._git("branch", "-d", name)
                deleted.append(name)
        return EngineResult(self.runner.log.since(mark), deleted_branches=deleted)


class ReleaseEngine(_Engine):
    """Promote a feature branch to production."""

    def __init__(
        self,
        config: WorkflowConfig,
        runner: CommandRunner,
        classifier: BranchClassifier,
        integration: IntegrationEngine,
        cleanup: CleanupEngine,
        operator: Operator,
    ) -> None:
        super().__init__(config, runner, classifier)
        self.integration = integration
        self.cleanup = cleanup
        self.operator = operator

    def release(self, branch: str) -> EngineResult:
        """Merge `branch` into the base branch and cascade the base into the aggregates.

        Returns an incomplete result with no commands if the operator declines.

        Raises:
            ProtectedBranchError: If `branch` is the base or an aggregate branch
            FatalVcsFailure: If a git command fails
        """
        self.classifier.assert_not_protected(branch, "release")
        if not self.operator.confirm(f"Release {branch} to production?"):
            return EngineResult(completed=False)

        mark = self.runner.log.mark()
        self.operator.say(RETENTION_GUIDANCE.format(branch=branch))
        if self.operator.confirm(f"Retain a copy of {branch} for backporting?"):
            self.retain(branch)

        base = self.config.base_branch
        self.integration.refresh(branch)
        self.integration.integrate(branch, base, validate=False)
        self.integration.integrate(base, self.config.release_target)
        self.cleanup.cleanup()
        return EngineResult(self.runner.log.since(mark))

    def retain(self, branch: str) -> EngineResult:
        """Publish a frozen backport copy of `branch`."""
        mark = self.runner.log.mark()
        self._git("push", self.config.remote, f"{branch}:{self.classifier.backport_name(branch)}")
        return EngineResult(self.runner.log.since(mark))
