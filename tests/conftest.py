"""Test configuration and fixtures."""

from pathlib import Path
from typing import Callable, Generator, Optional

import pytest
from git import Actor, Repo

from trellis.config import WorkflowConfig
from trellis.workflow import Workflow

from fakes import FakeRepo, RecordingMessenger, RecordingRunner, ScriptedOperator

AGGREGATE_AND_SNAPSHOT_BRANCHES = (
    "prototype",
    "staging",
    "last_known_good_prototype",
    "last_known_good_staging",
    "last_known_good_master",
)


@pytest.fixture
def config() -> WorkflowConfig:
    return WorkflowConfig()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def fake_repo() -> FakeRepo:
    return FakeRepo()


@pytest.fixture
def operator() -> ScriptedOperator:
    return ScriptedOperator()


@pytest.fixture
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture
def make_workflow(
    fake_repo: FakeRepo,
    runner: RecordingRunner,
    operator: ScriptedOperator,
    messenger: RecordingMessenger,
) -> Callable[..., Workflow]:
    """Build a workflow over the recording fakes."""

    def make(config: Optional[WorkflowConfig] = None, **kwargs) -> Workflow:
        return Workflow(config or WorkflowConfig(), fake_repo, runner, operator, messenger, **kwargs)

    return make


@pytest.fixture
def workflow(make_workflow: Callable[..., Workflow]) -> Workflow:
    return make_workflow()


@pytest.fixture
def test_env(tmp_path: Path) -> Generator[tuple[Path, Path], None, None]:
    """Create a test environment with local and remote repositories.

    The remote has master, the aggregate branches and their snapshots (all at
    the initial commit), `dev-merged` (merged into master) and `dev-open`
    (not merged anywhere). `dev-open` is checked out.

    Returns:
        Tuple of (local_repo_path, remote_repo_path)
    """
    remote_path = tmp_path / "remote"
    local_path = tmp_path / "local"
    remote_path.mkdir()
    local_path.mkdir()

    Repo.init(remote_path, bare=True, initial_branch="master")
    local_repo = Repo.init(local_path, initial_branch="master")

    author = Actor("Test User", "test@example.com")
    with local_repo.config_writer() as writer:
        writer.set_value("user", "name", author.name)
        writer.set_value("user", "email", author.email)
        writer.set_value("pull", "rebase", "false")

    readme = local_path / "README.md"
    readme.write_text("# Test Repository")
    local_repo.index.add(["README.md"])
    local_repo.index.commit("Initial commit", author=author)

    master = local_repo.heads.master
    origin = local_repo.create_remote("origin", url=str(remote_path))
    origin.push("master")
    origin.fetch()
    master.set_tracking_branch(origin.refs.master)

    for name in AGGREGATE_AND_SNAPSHOT_BRANCHES:
        origin.push(f"master:refs/heads/{name}")

    def create_branch(name: str, content: str, merge: bool = False) -> None:
        """Create and publish a branch with one commit, optionally merged into master."""
        master.checkout()
        branch = local_repo.create_head(name)
        branch.checkout()

        (local_path / f"{name}.txt").write_text(content)
        local_repo.index.add([f"{name}.txt"])
        local_repo.index.commit(f"Add {name}", author=author)

        origin.push(name)
        origin.fetch()
        branch.set_tracking_branch(origin.refs[name])

        if merge:
            master.checkout()
            local_repo.git.merge(name, "--no-ff")
            origin.push("master")

    create_branch("dev-merged", "Merged branch content", merge=True)
    create_branch("dev-open", "Open branch content")
    origin.fetch()

    local_repo.heads["dev-open"].checkout()

    yield local_path, remote_path
