import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from src.api.schemas import (
    BlobResponse,
    CommitResponse,
    LastCommitResponse,
    RefResponse,
    TreeEntryResponse,
    TreeResponse,
)
from src.git_objects.errors import MalformedObjectError, ObjectNotFoundError, RevisionNotFoundError
from src.git_objects.models import TreeEntry
from src.git_objects.parser import ObjectStore
from src.history.index import CommitGraphIndex
from src.history.last_modified import LastModified, resolve_last_modified
from src.history.models import CommitNode
from src.history.refs import OID_RE, get_branches, get_tags
from src.history.tree import TreeSnapshotResolver, split_path

logger = logging.getLogger(__name__)


class GitService:
    def __init__(self, git_dir: Path = Path(".git")):
        self.open(git_dir)

    def open(self, git_dir: Path):
        """Points the service at a (possibly different) repository."""
        self.git_dir = git_dir.resolve()
        self.store = ObjectStore(self.git_dir)
        self.index = CommitGraphIndex(self.store)
        self.snapshots = TreeSnapshotResolver(self.index)

    def get_refs(self) -> List[RefResponse]:
        refs = [RefResponse(name=name, type="branch", oid=oid) for name, oid in get_branches(self.git_dir).items()]
        refs += [RefResponse(name=name, type="tag", oid=oid) for name, oid in get_tags(self.git_dir).items()]
        return refs

    def get_commit(self, oid: str) -> Optional[CommitResponse]:
        if not OID_RE.match(oid):
            return None
        try:
            node = self.index.resolve(oid)
        except RevisionNotFoundError:
            return None
        if node.oid != oid:
            # A tag object id, not a commit
            return None
        return self._to_response(node)

    def get_commits(self, ref: str = "HEAD", limit: int = 50, skip: int = 0) -> List[CommitResponse]:
        """Newest-first log reachable from ``ref``."""
        selection = []
        for i, node in enumerate(self.index.log(ref, limit=skip + limit)):
            if i >= skip:
                selection.append(self._to_response(node))
        return selection

    def list_tree(self, ref: str, path: str = "") -> Tuple[CommitNode, List[TreeEntry]]:
        commit = self.index.resolve(ref)
        return commit, self.snapshots.entries(commit, path)

    def last_modified(self, commit: CommitNode, path: str, names: List[str]) -> Dict[str, LastModified]:
        return resolve_last_modified(self.index, commit, path, names)

    def tree_response(
        self,
        ref: str,
        commit: CommitNode,
        path: str,
        entries: List[TreeEntry],
        annotations: Optional[Dict[str, LastModified]] = None,
    ) -> TreeResponse:
        items = []
        for e in entries:
            info = annotations.get(e.name) if annotations else None
            items.append(TreeEntryResponse(
                mode=e.mode.decode(),
                name=e.name,
                type=e.kind.value,
                oid=e.oid,
                last_commit=LastCommitResponse(
                    commit_hash=info.commit_hash,
                    author_name=info.author_name,
                    committed_at=info.committed_at,
                    message=info.message,
                ) if info else None,
            ))
        return TreeResponse(
            ref=ref,
            commit=commit.oid,
            path="/".join(split_path(path)),
            annotated=annotations is not None,
            entries=items,
        )

    def get_blob(self, oid: str) -> Optional[BlobResponse]:
        if not OID_RE.match(oid):
            return None
        try:
            obj = self.store.read_blob(oid)
        except (ObjectNotFoundError, MalformedObjectError) as e:
            logger.info(f"Blob {oid} not readable: {e}")
            return None

        content_str = "<Binary Data>"
        try:
            content_str = obj.data.decode("utf-8")
        except UnicodeDecodeError:
            pass

        return BlobResponse(oid=oid, size=len(obj.data), content=content_str)

    def _to_response(self, node: CommitNode) -> CommitResponse:
        return CommitResponse(
            oid=node.oid,
            tree_oid=node.commit.tree_oid,
            parent_oids=node.commit.parent_oids,
            author=node.commit.author,
            committer=node.commit.committer,
            committed_at=node.committed_at,
            message=node.commit.message,
        )
