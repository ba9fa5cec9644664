from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
import binascii
import hashlib
import re

from src.git_objects.errors import MalformedObjectError

OID_LENGTH = 40
OID_BYTES = 20

_SIGNATURE_RE = re.compile(r"^(?P<name>.*?)\s*<(?P<email>[^>]*)>\s*(?P<ts>-?\d+)?\s*(?P<tz>[+-]\d{4})?\s*$")


class EntryMode(str, Enum):
    FILE = "file"
    EXECUTABLE = "executable"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    SUBMODULE = "submodule"

    @classmethod
    def from_raw(cls, mode: bytes) -> "EntryMode":
        # Older git wrote group-writable files as 100664
        kind = _RAW_MODES.get(mode.lstrip(b"0"))
        if kind is None:
            raise MalformedObjectError(f"Unknown tree entry mode: {mode!r}")
        return kind


_RAW_MODES = {
    b"100644": EntryMode.FILE,
    b"100664": EntryMode.FILE,
    b"100755": EntryMode.EXECUTABLE,
    b"40000": EntryMode.DIRECTORY,
    b"120000": EntryMode.SYMLINK,
    b"160000": EntryMode.SUBMODULE,
}


@dataclass(frozen=True)
class Signature:
    name: str
    email: str
    timestamp: int
    tz_offset: str = "+0000"

    @property
    def when_utc(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    @classmethod
    def parse(cls, raw: str) -> "Signature":
        """Parses an ``author``/``committer`` header value.

        Format: ``Name <email> 1700000000 +0100``.
        """
        match = _SIGNATURE_RE.match(raw)
        if not match or match.group("ts") is None:
            raise MalformedObjectError(f"Invalid signature: {raw!r}")
        return cls(
            name=match.group("name"),
            email=match.group("email"),
            timestamp=int(match.group("ts")),
            tz_offset=match.group("tz") or "+0000",
        )


@dataclass
class GitObject(ABC):
    oid: Optional[str] = field(default=None, init=False)

    @property
    @abstractmethod
    def type(self) -> bytes:
        pass

    @abstractmethod
    def serialize(self) -> bytes:
        pass

    @classmethod
    @abstractmethod
    def deserialize(cls, data: bytes) -> "GitObject":
        pass

    def compute_oid(self) -> str:
        """Computes and sets the SHA-1 hash of the object."""
        data = self.serialize()
        header = f"{self.type.decode()} {len(data)}".encode() + b"\x00"
        self.oid = hashlib.sha1(header + data).hexdigest()
        return self.oid


@dataclass
class BlobObject(GitObject):
    data: bytes

    @property
    def type(self) -> bytes:
        return b"blob"

    def serialize(self) -> bytes:
        return self.data

    @classmethod
    def deserialize(cls, data: bytes) -> "BlobObject":
        return cls(data=data)


@dataclass
class TreeEntry:
    mode: bytes
    name: str
    oid: str

    @property
    def kind(self) -> EntryMode:
        return EntryMode.from_raw(self.mode)

    @property
    def is_tree(self) -> bool:
        return self.kind is EntryMode.DIRECTORY


@dataclass
class TreeObject(GitObject):
    entries: List[TreeEntry] = field(default_factory=list)
    _by_name: Optional[Dict[str, TreeEntry]] = field(default=None, init=False, repr=False, compare=False)

    @property
    def type(self) -> bytes:
        return b"tree"

    def serialize(self) -> bytes:
        # Git orders directories as if their name ended with "/"
        def sort_key(entry: TreeEntry) -> bytes:
            name = entry.name.encode("utf-8", "surrogateescape")
            return name + b"/" if entry.mode.lstrip(b"0") == b"40000" else name

        output = b""
        for entry in sorted(self.entries, key=sort_key):
            output += (
                entry.mode
                + b" "
                + entry.name.encode("utf-8", "surrogateescape")
                + b"\x00"
                + binascii.unhexlify(entry.oid)
            )
        return output

    @classmethod
    def deserialize(cls, data: bytes) -> "TreeObject":
        entries = []
        i = 0
        while i < len(data):
            space_idx = data.find(b" ", i)
            null_idx = data.find(b"\x00", space_idx)
            if space_idx == -1 or null_idx == -1 or null_idx + 1 + OID_BYTES > len(data):
                raise MalformedObjectError("Truncated tree entry")

            mode = data[i:space_idx]
            name = data[space_idx + 1:null_idx].decode("utf-8", "surrogateescape")
            oid = binascii.hexlify(data[null_idx + 1:null_idx + 1 + OID_BYTES]).decode()

            entries.append(TreeEntry(mode=mode, name=name, oid=oid))
            i = null_idx + 1 + OID_BYTES

        return cls(entries=entries)

    def get(self, name: str) -> Optional[TreeEntry]:
        # Built on first lookup; entries are not mutated after that
        if self._by_name is None:
            by_name = {}
            for entry in self.entries:
                by_name.setdefault(entry.name, entry)
            self._by_name = by_name
        return self._by_name.get(name)


def _decode_text(raw: bytes, encoding: str) -> str:
    """Decodes commit text in its declared encoding, degrading to lossy UTF-8."""
    try:
        return raw.decode(encoding)
    except (LookupError, UnicodeDecodeError):
        return raw.decode("utf-8", "replace")


@dataclass
class CommitObject(GitObject):
    tree_oid: str
    parent_oids: List[str]
    author: str
    committer: str
    message: str
    # Value of the optional "encoding" header; None means UTF-8
    encoding: Optional[str] = None

    @property
    def type(self) -> bytes:
        return b"commit"

    @property
    def author_signature(self) -> Signature:
        return Signature.parse(self.author)

    @property
    def committer_signature(self) -> Signature:
        return Signature.parse(self.committer)

    def serialize(self) -> bytes:
        encoding = self.encoding or "utf-8"
        lines = [f"tree {self.tree_oid}".encode()]
        for p in self.parent_oids:
            lines.append(f"parent {p}".encode())
        lines.append(b"author " + self.author.encode(encoding))
        lines.append(b"committer " + self.committer.encode(encoding))
        if self.encoding:
            lines.append(f"encoding {self.encoding}".encode())
        lines.append(b"")
        lines.append(self.message.encode(encoding))
        return b"\n".join(lines)

    @classmethod
    def deserialize(cls, data: bytes) -> "CommitObject":
        header_block, _, body = data.partition(b"\n\n")

        tree_oid = ""
        parent_oids = []
        raw_author = b""
        raw_committer = b""
        encoding = None

        # Continuation lines (gpgsig, mergetag) start with a space and are skipped
        for line in header_block.split(b"\n"):
            key, _, value = line.partition(b" ")
            if key == b"tree":
                tree_oid = value.decode("ascii", "replace")
            elif key == b"parent":
                parent_oids.append(value.decode("ascii", "replace"))
            elif key == b"author":
                raw_author = value
            elif key == b"committer":
                raw_committer = value
            elif key == b"encoding":
                encoding = value.decode("ascii", "replace").strip()

        if len(tree_oid) != OID_LENGTH:
            raise MalformedObjectError(f"Commit has no valid tree: {tree_oid!r}")

        text_encoding = encoding or "utf-8"
        return cls(
            tree_oid=tree_oid,
            parent_oids=parent_oids,
            author=_decode_text(raw_author, text_encoding),
            committer=_decode_text(raw_committer, text_encoding),
            message=_decode_text(body, text_encoding),
            encoding=encoding,
        )


@dataclass
class TagObject(GitObject):
    object_oid: str
    object_type: str
    tag: str
    message: str = ""

    @property
    def type(self) -> bytes:
        return b"tag"

    def serialize(self) -> bytes:
        return (
            f"object {self.object_oid}\ntype {self.object_type}\ntag {self.tag}\n\n{self.message}"
        ).encode()

    @classmethod
    def deserialize(cls, data: bytes) -> "TagObject":
        headers, _, message = data.decode("utf-8", "replace").partition("\n\n")
        fields = {}
        for line in headers.split("\n"):
            key, _, value = line.partition(" ")
            fields.setdefault(key, value)
        if "object" not in fields:
            raise MalformedObjectError("Tag has no object header")
        return cls(
            object_oid=fields["object"],
            object_type=fields.get("type", "commit"),
            tag=fields.get("tag", ""),
            message=message,
        )
