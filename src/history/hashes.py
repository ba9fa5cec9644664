from typing import Dict, Iterable

from src.git_objects.errors import PathNotFoundError
from src.history.models import CommitNode


class PathHashTracker:
    """Looks up the content hash of a set of paths at one commit."""

    def hashes(self, commit: CommitNode, subtree_path: str, paths: Iterable[str]) -> Dict[str, str]:
        """Returns {path: hash} for every path present under ``subtree_path``.

        Absent paths are left out. If the subtree itself is absent the result
        is empty, which reads as "every path was removed here". The empty path
        stands for the subtree itself and maps to its tree hash; directories
        otherwise hash like files, by their tree oid.
        """
        try:
            tree = commit.tree(subtree_path)
        except PathNotFoundError:
            return {}

        hashes: Dict[str, str] = {}
        for path in paths:
            if path == "":
                hashes[path] = tree.oid
                continue
            try:
                hashes[path] = tree.find_entry(path).oid
            except PathNotFoundError:
                continue
        return hashes
