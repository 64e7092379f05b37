"""Branch roles."""

from enum import Enum
from typing import Optional

from trellis.config import WorkflowConfig
from trellis.errors import InvalidTargetError, ProtectedBranchError


class BranchKind(Enum):
    """Role of a branch in the workflow."""

    BASE = "base"
    AGGREGATE = "aggregate"
    SNAPSHOT = "snapshot"
    BACKPORT = "backport"
    FEATURE = "feature"


_AGGREGATE_ACTIONS = {
    "integrate": "Only aggregate branches are allowed for integration",
    "reset": "Only aggregate branches are allowed to be reset",
}


class BranchClassifier:
    """Derive branch roles from names."""

    def __init__(self, config: WorkflowConfig) -> None:
        self.config = config

    def kind(self, name: str) -> BranchKind:
        if name == self.config.base_branch:
            return BranchKind.BASE
        if name in self.config.aggregate_branches:
            return BranchKind.AGGREGATE
        if name.startswith(self.config.snapshot_prefix):
            return BranchKind.SNAPSHOT
        if name.startswith(self.config.backport_prefix):
            return BranchKind.BACKPORT
        return BranchKind.FEATURE

    def is_aggregate(self, name: str) -> bool:
        return name in self.config.aggregate_branches

    def is_protected(self, name: str) -> bool:
        return name == self.config.base_branch or self.is_aggregate(name)

    def is_snapshot(self, name: str) -> bool:
        return name.startswith(self.config.snapshot_prefix)

    def is_backport(self, name: str) -> bool:
        return name.startswith(self.config.backport_prefix)

    def is_feature(self, name: str) -> bool:
        return self.kind(name) is BranchKind.FEATURE

    def snapshot_name(self, name: str) -> str:
        """Name of the last known good snapshot of a branch."""
        if self.is_snapshot(name):
            return name
        return f"{self.config.snapshot_prefix}{name}"

    def backport_name(self, name: str) -> str:
        return f"{self.config.backport_prefix}{name}"

    def cascade_target(self, name: str) -> Optional[str]:
        """Aggregate branch that receives changes integrated into `name`.

        Only one level: the aggregate listed just before `name`.
        """
        if not self.is_aggregate(name):
            return None
        index = self.config.aggregate_branches.index(name)
        if index == 0:
            return None
        return self.config.aggregate_branches[index - 1]

    def assert_aggregate(self, name: str, action: str = "integrate") -> None:
        """Raise InvalidTargetError unless `name` is an aggregate branch."""
        if self.is_aggregate(name):
            return
        prefix = _AGGREGATE_ACTIONS.get(action, f"Only aggregate branches are allowed to {action}")
        raise InvalidTargetError(f"{prefix}: {', '.join(self.config.aggregate_branches)}")

    def assert_not_protected(self, name: str, action: str) -> None:
        """Raise ProtectedBranchError if `name` is the base or an aggregate branch."""
        if self.is_protected(name):
            raise ProtectedBranchError(f"Cannot {action} protected branch {name}")
