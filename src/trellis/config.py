"""Workflow configuration."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from git import GitCommandError, Repo

from trellis.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_BRANCH = "master"
DEFAULT_AGGREGATE_BRANCHES = ("prototype", "staging")
DEFAULT_REMOTE = "origin"
SNAPSHOT_PREFIX = "last_known_good_"
BACKPORT_PREFIX = "backport_"


@dataclass(frozen=True)
class WorkflowConfig:
    """Process-wide branching convention.

    Aggregate branches are listed upstream-first: integrating into an
    aggregate cascades into the one listed just before it.
    """

    base_branch: str = DEFAULT_BASE_BRANCH
    aggregate_branches: tuple[str, ...] = DEFAULT_AGGREGATE_BRANCHES
    remote: str = DEFAULT_REMOTE
    snapshot_prefix: str = SNAPSHOT_PREFIX
    backport_prefix: str = BACKPORT_PREFIX
    webhook_url: Optional[str] = None
    github_token: Optional[str] = None
    review_team: Optional[str] = None
    quiet: bool = False

    def __post_init__(self) -> None:
        if not self.aggregate_branches:
            raise ConfigurationError("At least one aggregate branch must be configured")
        if self.base_branch in self.aggregate_branches:
            raise ConfigurationError(f"Base branch {self.base_branch} cannot also be an aggregate branch")
        if len(set(self.aggregate_branches)) != len(self.aggregate_branches):
            raise ConfigurationError("Aggregate branches must be unique")

    @property
    def default_integration_target(self) -> str:
        return self.aggregate_branches[0]

    @property
    def release_target(self) -> str:
        """Aggregate branch that receives the base branch after a release."""
        return self.aggregate_branches[-1]


def _git_config_value(repo: Repo, key: str) -> Optional[str]:
    try:
        value = repo.git.config("--get", key).strip()
    except GitCommandError:
        # Unset keys make `git config --get` exit with status 1
        return None
    return value or None


def load_config(repo: Repo, quiet: bool = False) -> WorkflowConfig:
    """Build the workflow configuration from `git config` and the environment.

    Args:
        repo: Repository whose configuration (local, global and system) is read
        quiet: Whether work-log messages should be suppressed

    Raises:
        ConfigurationError: If the configured branches are inconsistent
    """
    aggregates = _git_config_value(repo, "trellis.aggregates")
    aggregate_branches = (
        tuple(name.strip() for name in aggregates.split(",") if name.strip())
        if aggregates
        else DEFAULT_AGGREGATE_BRANCHES
    )
    config = WorkflowConfig(
        base_branch=_git_config_value(repo, "trellis.base") or DEFAULT_BASE_BRANCH,
        aggregate_branches=aggregate_branches,
        remote=_git_config_value(repo, "trellis.remote") or DEFAULT_REMOTE,
        webhook_url=_git_config_value(repo, "trellis.webhook") or os.environ.get("TRELLIS_WEBHOOK_URL"),
        github_token=_git_config_value(repo, "trellis.token") or os.environ.get("GITHUB_TOKEN"),
        review_team=_git_config_value(repo, "trellis.reviewteam"),
        quiet=quiet,
    )
    logger.debug(
        "Loaded config: base=%s aggregates=%s remote=%s",
        config.base_branch,
        ",".join(config.aggregate_branches),
        config.remote,
    )
    return config
