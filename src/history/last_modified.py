"""Per-path "last modified" attribution.

Instead of walking history once per path, all paths of a directory listing
are pushed through a single traversal of the commit graph, newest commit
first. Each branch of the traversal carries only the paths that are still
unchanged along it, so a path that was touched recently drops out early and
never costs more than its own ancestry.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from src.history.hashes import PathHashTracker
from src.history.index import CommitGraphIndex
from src.history.models import CommitNode

logger = logging.getLogger(__name__)


@dataclass
class FrontierEntry:
    """One in-flight branch of the traversal.

    ``paths`` are the still unresolved paths that reached ``commit`` and
    ``hashes`` their content hashes at that commit. Every entry owns its own
    list and dict; nothing is shared between branches.
    """

    commit: CommitNode
    paths: List[str]
    hashes: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LastModified:
    commit_hash: str
    author_name: str
    committed_at: datetime
    message: str

    @classmethod
    def from_commit(cls, node: CommitNode) -> "LastModified":
        return cls(
            commit_hash=node.oid,
            author_name=node.commit.author_signature.name,
            committed_at=node.committed_at,
            message=node.commit.message,
        )


def _unique(paths: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(paths))


class LastModifiedResolver:
    """Finds, for each path, the newest ancestor commit that changed it.

    A path is attributed to a commit when its hash at that commit differs
    from its hash in every parent: it was added, modified, or (at a merge)
    resolved to content matching none of the merged sides. Root commits
    have no parents, so anything still carried to a root resolves there.

    When a path is unchanged toward several parents of a merge, it is only
    followed down the first of them. This keeps the frontier from fanning
    out across merges, at the price of ignoring the other sides' history
    for that path.
    """

    def __init__(self, index: CommitGraphIndex, tracker: Optional[PathHashTracker] = None):
        self.index = index
        self.tracker = tracker or PathHashTracker()

    def resolve(
        self,
        start: Union[str, CommitNode],
        subtree_path: str,
        paths: Iterable[str],
    ) -> Dict[str, CommitNode]:
        start_node = self.index.resolve(start)
        wanted = _unique(paths)

        initial_hashes = self.tracker.hashes(start_node, subtree_path, wanted)
        remaining = [p for p in wanted if p in initial_hashes]
        results: Dict[str, CommitNode] = {}
        if not remaining:
            return results

        # Max-heap on commit time; equal times are ordered by commit id, then
        # by push order so the same commit reached twice never compares entries
        sequence = itertools.count()
        heap: List[Tuple[int, str, int, FrontierEntry]] = []

        def push(entry: FrontierEntry) -> None:
            heapq.heappush(heap, (-entry.commit.timestamp, entry.commit.oid, next(sequence), entry))

        push(FrontierEntry(start_node, remaining, initial_hashes))
        visited = 0

        while heap:
            _, _, _, current = heapq.heappop(heap)
            visited += 1

            open_paths = [p for p in current.paths if p not in results]
            if not open_paths:
                continue

            parents = current.commit.parents()
            parent_hashes = [
                self.tracker.hashes(parent, subtree_path, open_paths) for parent in parents
            ]

            assigned: List[List[str]] = [[] for _ in parents]
            for path in open_paths:
                current_hash = current.hashes[path]
                for i, hashes in enumerate(parent_hashes):
                    if hashes.get(path) == current_hash:
                        assigned[i].append(path)
                        break
                else:
                    results[path] = current.commit

            for parent, parent_paths, hashes in zip(parents, assigned, parent_hashes):
                if parent_paths:
                    push(FrontierEntry(parent, parent_paths, {p: hashes[p] for p in parent_paths}))

        logger.debug(
            "Resolved %d/%d paths under %r from %s in %d steps",
            len(results),
            len(wanted),
            subtree_path,
            start_node.oid[:7],
            visited,
        )
        return results


def resolve_last_modified(
    index: CommitGraphIndex,
    start: Union[str, CommitNode],
    subtree_path: str,
    paths: Iterable[str],
) -> Dict[str, LastModified]:
    """Maps each path that exists at ``start`` to the commit that last changed it.

    Paths missing at ``start`` are not in the result. Any store error aborts
    the whole call.
    """
    nodes = LastModifiedResolver(index).resolve(start, subtree_path, paths)
    return {path: LastModified.from_commit(node) for path, node in nodes.items()}
