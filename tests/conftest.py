import itertools
import zlib
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

import pytest

from src.git_objects.models import BlobObject, CommitObject, GitObject, TagObject, TreeEntry, TreeObject
from src.git_objects.parser import ObjectStore
from src.history.index import CommitGraphIndex

FileContent = Union[bytes, str, Tuple[bytes, bytes]]


class RepoBuilder:
    """Writes loose objects and refs into a bare-bones .git directory."""

    def __init__(self, git_dir: Path):
        self.git_dir = git_dir
        (git_dir / "objects").mkdir(parents=True, exist_ok=True)
        (git_dir / "refs" / "heads").mkdir(parents=True, exist_ok=True)
        (git_dir / "refs" / "tags").mkdir(parents=True, exist_ok=True)
        (git_dir / "HEAD").write_text("ref: refs/heads/main\n")
        self._clock = itertools.count(1_700_000_000, 60)

    def write(self, obj: GitObject) -> str:
        oid = obj.compute_oid()
        data = obj.serialize()
        store = f"{obj.type.decode()} {len(data)}".encode() + b"\x00" + data

        obj_file = self.git_dir / "objects" / oid[:2] / oid[2:]
        obj_file.parent.mkdir(parents=True, exist_ok=True)
        if not obj_file.exists():
            obj_file.write_bytes(zlib.compress(store))
        return oid

    def tree(self, files: Dict[str, FileContent]) -> str:
        """Builds nested trees from {"dir/name": content}; returns the root tree oid."""
        nested: Dict[str, object] = {}
        for path, content in files.items():
            *dirs, name = path.split("/")
            node = nested
            for d in dirs:
                node = node.setdefault(d, {})
            node[name] = content
        return self._write_tree(nested)

    def _write_tree(self, nested: Dict[str, object]) -> str:
        entries = []
        for name, value in nested.items():
            if isinstance(value, dict):
                entries.append(TreeEntry(mode=b"40000", name=name, oid=self._write_tree(value)))
                continue
            mode = b"100644"
            if isinstance(value, tuple):
                mode, value = value
            if isinstance(value, str):
                value = value.encode()
            entries.append(TreeEntry(mode=mode, name=name, oid=self.write(BlobObject(value))))
        return self.write(TreeObject(entries=entries))

    def commit(
        self,
        files: Dict[str, FileContent],
        parents: Iterable[str] = (),
        message: str = "",
        when: Optional[int] = None,
        author: str = "Alice",
        branch: Optional[str] = "main",
    ) -> str:
        ts = when if when is not None else next(self._clock)
        commit = CommitObject(
            tree_oid=self.tree(files),
            parent_oids=list(parents),
            author=f"{author} <{author.lower()}@example.com> {ts} +0000",
            committer=f"{author} <{author.lower()}@example.com> {ts} +0000",
            message=message,
        )
        oid = self.write(commit)
        if branch:
            self.set_ref(f"refs/heads/{branch}", oid)
        return oid

    def tag(self, name: str, target: str, annotated: bool = False) -> str:
        oid = target
        if annotated:
            oid = self.write(TagObject(object_oid=target, object_type="commit", tag=name, message="release\n"))
        self.set_ref(f"refs/tags/{name}", oid)
        return oid

    def set_ref(self, ref: str, oid: str):
        path = self.git_dir / ref
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(oid + "\n")


@pytest.fixture
def repo(tmp_path) -> RepoBuilder:
    return RepoBuilder(tmp_path / ".git")


@pytest.fixture
def index(repo) -> CommitGraphIndex:
    return CommitGraphIndex(ObjectStore(repo.git_dir))
