import logging
import subprocess
import zlib
from pathlib import Path
from typing import Type, TypeVar

from .errors import MalformedObjectError, ObjectNotFoundError, StoreUnavailableError
from .models import OID_LENGTH, BlobObject, CommitObject, GitObject, TagObject, TreeObject

logger = logging.getLogger(__name__)

_OBJECT_TYPES = {
    b"blob": BlobObject,
    b"tree": TreeObject,
    b"commit": CommitObject,
    b"tag": TagObject,
}

T = TypeVar("T", bound=GitObject)


def _decode(obj_type: bytes, content: bytes) -> GitObject:
    cls = _OBJECT_TYPES.get(obj_type)
    if cls is None:
        raise MalformedObjectError(f"Unknown object type: {obj_type!r}")
    return cls.deserialize(content)


def _read_packed(oid: str, git_dir: Path) -> GitObject:
    """Reads an object that is not loose by asking git (handles packfiles)."""
    logger.debug("Object %s is not loose, falling back to git cat-file", oid)
    try:
        type_proc = subprocess.run(
            ["git", "--git-dir", str(git_dir), "cat-file", "-t", oid],
            capture_output=True,
            check=True,
        )
        obj_type = type_proc.stdout.strip()
        # `git cat-file <type>` prints the raw object body
        content_proc = subprocess.run(
            ["git", "--git-dir", str(git_dir), "cat-file", obj_type.decode(), oid],
            capture_output=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        stderr_msg = e.stderr.decode(errors="replace").strip() if e.stderr else "No stderr"
        raise ObjectNotFoundError(
            f"Object {oid} not found as loose object or in packfiles. Git Error: {stderr_msg}"
        ) from e
    except OSError as e:
        raise StoreUnavailableError(f"Cannot run git to read object {oid}: {e}") from e

    return _decode(obj_type, content_proc.stdout)


def read_object(oid: str, git_dir: Path = Path(".git")) -> GitObject:
    """Read an object from the git directory by its SHA-1 hash."""
    if len(oid) != OID_LENGTH:
        raise MalformedObjectError(f"Invalid Object ID: {oid}")

    path = git_dir / "objects" / oid[:2] / oid[2:]
    if not path.exists():
        obj = _read_packed(oid, git_dir)
        obj.oid = oid
        return obj

    try:
        compressed_data = path.read_bytes()
    except OSError as e:
        raise StoreUnavailableError(f"Cannot read object {oid}: {e}") from e

    try:
        raw_data = zlib.decompress(compressed_data)
    except zlib.error as e:
        raise MalformedObjectError(f"Object {oid} is not valid zlib data: {e}") from e

    # format: "type size\0content"
    null_idx = raw_data.find(b"\x00")
    if null_idx == -1:
        raise MalformedObjectError(f"Invalid object format (no null byte): {oid}")

    header = raw_data[:null_idx]
    content = raw_data[null_idx + 1:]
    try:
        type_str, size_str = header.split(b" ")
        size = int(size_str)
    except ValueError as e:
        raise MalformedObjectError(f"Invalid object header {header!r}: {oid}") from e
    if size != len(content):
        raise MalformedObjectError(f"Object {oid} size mismatch: header {size}, body {len(content)}")

    obj = _decode(type_str, content)
    obj.oid = oid
    return obj


class ObjectStore:
    """Read-only view of a repository's objects.

    Holds no mutable state besides the path, so one instance may be shared by
    any number of concurrent readers.
    """

    def __init__(self, git_dir: Path = Path(".git")):
        self.git_dir = git_dir

    def read(self, oid: str) -> GitObject:
        return read_object(oid, self.git_dir)

    def read_typed(self, oid: str, cls: Type[T]) -> T:
        obj = self.read(oid)
        if not isinstance(obj, cls):
            raise MalformedObjectError(
                f"Object {oid} is a {obj.type.decode()}, expected {cls.__name__}"
            )
        return obj

    def read_commit(self, oid: str) -> CommitObject:
        return self.read_typed(oid, CommitObject)

    def read_tree(self, oid: str) -> TreeObject:
        return self.read_typed(oid, TreeObject)

    def read_blob(self, oid: str) -> BlobObject:
        return self.read_typed(oid, BlobObject)

    def read_tag(self, oid: str) -> TagObject:
        return self.read_typed(oid, TagObject)
