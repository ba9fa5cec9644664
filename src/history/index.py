import heapq
import logging
from typing import Iterator, List, Optional, Set, Tuple, Union

from src.git_objects.errors import ObjectNotFoundError, RevisionNotFoundError
from src.git_objects.models import CommitObject, TagObject
from src.git_objects.parser import ObjectStore
from src.history.models import CommitNode
from src.history.refs import resolve_revision

logger = logging.getLogger(__name__)

# Annotated tags may point at other tags
MAX_TAG_DEPTH = 10


class CommitGraphIndex:
    """Lazy, read-only access to the commit DAG of one repository.

    Nothing is cached: every lookup reads from the object store, so an index
    can be shared freely between concurrent callers.
    """

    def __init__(self, store: ObjectStore):
        self.store = store

    @property
    def git_dir(self):
        return self.store.git_dir

    def get(self, oid: str) -> CommitNode:
        commit = self.store.read_commit(oid)
        return CommitNode(
            oid=oid,
            commit=commit,
            timestamp=commit.committer_signature.timestamp,
            index=self,
        )

    def parents(self, node: CommitNode) -> List[CommitNode]:
        return node.parents()

    def resolve(self, revision: Union[str, CommitNode]) -> CommitNode:
        """Resolves a revision (ref, branch, tag or object id) to a commit."""
        if isinstance(revision, CommitNode):
            return revision

        oid = resolve_revision(self.git_dir, revision)
        if oid is None:
            raise RevisionNotFoundError(f"Unknown revision: {revision}")

        for _ in range(MAX_TAG_DEPTH):
            try:
                obj = self.store.read(oid)
            except ObjectNotFoundError as e:
                # A well formed object id that is simply not in this repository
                if revision == oid:
                    raise RevisionNotFoundError(f"Unknown revision: {revision}") from e
                raise
            if isinstance(obj, CommitObject):
                return CommitNode(
                    oid=oid,
                    commit=obj,
                    timestamp=obj.committer_signature.timestamp,
                    index=self,
                )
            if not isinstance(obj, TagObject):
                raise RevisionNotFoundError(
                    f"Revision {revision} points at a {obj.type.decode()}, not a commit"
                )
            oid = obj.object_oid

        raise RevisionNotFoundError(f"Tag chain too deep for revision: {revision}")

    def log(self, start: Union[str, CommitNode], limit: Optional[int] = None) -> Iterator[CommitNode]:
        """Yields commits reachable from ``start``, newest committer time first."""
        start_node = self.resolve(start)
        heap: List[Tuple[int, str, CommitNode]] = [(-start_node.timestamp, start_node.oid, start_node)]
        seen: Set[str] = {start_node.oid}
        emitted = 0

        while heap and (limit is None or emitted < limit):
            _, _, node = heapq.heappop(heap)
            yield node
            emitted += 1

            for parent in node.parents():
                if parent.oid not in seen:
                    seen.add(parent.oid)
                    heapq.heappush(heap, (-parent.timestamp, parent.oid, parent))

        logger.debug("log from %s emitted %d commits", start_node.oid[:7], emitted)
