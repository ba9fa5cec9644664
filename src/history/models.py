from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, List

from src.git_objects.models import CommitObject
from src.history.tree import TreeNode

if TYPE_CHECKING:
    from src.history.index import CommitGraphIndex


@dataclass(frozen=True)
class CommitNode:
    oid: str
    commit: CommitObject = field(repr=False, compare=False)
    timestamp: int = field(compare=False)
    index: "CommitGraphIndex" = field(repr=False, compare=False)

    @property
    def parent_oids(self) -> List[str]:
        return list(self.commit.parent_oids)

    @property
    def tree_oid(self) -> str:
        return self.commit.tree_oid

    @property
    def committed_at(self) -> datetime:
        return self.commit.committer_signature.when_utc

    def parents(self) -> List["CommitNode"]:
        """Loads the parent commits, in the order recorded in the commit."""
        return [self.index.get(oid) for oid in self.commit.parent_oids]

    def tree(self, subtree_path: str = "") -> TreeNode:
        """Returns the tree at ``subtree_path``; raises PathNotFoundError if absent."""
        root = TreeNode.load(self.index.store, self.tree_oid, "", self.oid)
        return root.subtree(subtree_path)
