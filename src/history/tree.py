from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Union

from src.git_objects.errors import PathNotFoundError
from src.git_objects.models import BlobObject, EntryMode, TreeEntry, TreeObject
from src.git_objects.parser import ObjectStore

if TYPE_CHECKING:
    from src.history.index import CommitGraphIndex
    from src.history.models import CommitNode


def split_path(path: str) -> List[str]:
    """Splits a slash separated relative path, ignoring empty segments."""
    return [part for part in path.split("/") if part and part != "."]


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p.strip("/"))


@dataclass
class TreeNode:
    """A directory snapshot bound to the commit and path it was reached from."""

    oid: str
    path: str
    commit_oid: str
    store: ObjectStore = field(repr=False, compare=False)
    tree: TreeObject = field(repr=False, compare=False)

    @classmethod
    def load(cls, store: ObjectStore, oid: str, path: str, commit_oid: str) -> "TreeNode":
        return cls(oid=oid, path=path, commit_oid=commit_oid, store=store, tree=store.read_tree(oid))

    def entries(self) -> List[TreeEntry]:
        return list(self.tree.entries)

    def descend(self, name: str) -> Union["TreeNode", BlobObject]:
        entry = self.tree.get(name)
        if entry is None:
            raise PathNotFoundError(join_path(self.path, name))

        kind = entry.kind
        if kind is EntryMode.DIRECTORY:
            return TreeNode.load(self.store, entry.oid, join_path(self.path, name), self.commit_oid)
        if kind is EntryMode.SUBMODULE:
            # The submodule's commit lives in another repository
            raise PathNotFoundError(join_path(self.path, name))
        return self.store.read_blob(entry.oid)

    def _child_tree(self, name: str) -> "TreeNode":
        entry = self.tree.get(name)
        if entry is None or not entry.is_tree:
            raise PathNotFoundError(join_path(self.path, name))
        return TreeNode.load(self.store, entry.oid, join_path(self.path, name), self.commit_oid)

    def subtree(self, path: str) -> "TreeNode":
        node = self
        for part in split_path(path):
            node = node._child_tree(part)
        return node

    def find_entry(self, path: str) -> TreeEntry:
        """Looks up a relative, possibly nested, path below this tree."""
        parts = split_path(path)
        if not parts:
            raise PathNotFoundError(self.path)

        parent = self.subtree("/".join(parts[:-1]))
        entry = parent.tree.get(parts[-1])
        if entry is None:
            raise PathNotFoundError(join_path(self.path, path))
        return entry


class TreeSnapshotResolver:
    """Lists the entries of a subtree as they are at one commit."""

    def __init__(self, index: "CommitGraphIndex"):
        self.index = index

    def entries(self, commit: Union["CommitNode", str], subtree_path: str = "") -> List[TreeEntry]:
        if isinstance(commit, str):
            commit = self.index.resolve(commit)
        return commit.tree(subtree_path).entries()
