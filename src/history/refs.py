import re
from pathlib import Path
from typing import Dict, Optional

OID_RE = re.compile(r"^[0-9a-f]{40}$")


def read_packed_refs(git_dir: Path) -> Dict[str, str]:
    """Parses .git/packed-refs into {ref name: oid}. Peeled (^) lines are skipped."""
    packed = git_dir / "packed-refs"
    refs: Dict[str, str] = {}
    if not packed.exists():
        return refs

    for line in packed.read_text().splitlines():
        if not line or line.startswith("#") or line.startswith("^"):
            continue
        oid, _, name = line.partition(" ")
        if name:
            refs[name.strip()] = oid
    return refs


def resolve_ref(git_dir: Path, ref_path: str, _depth: int = 0) -> Optional[str]:
    """Resolves a reference (e.g., 'refs/heads/main') to an OID."""
    if _depth > 5:
        return None

    full_path = git_dir / ref_path
    if not full_path.is_file():
        return read_packed_refs(git_dir).get(ref_path)

    content = full_path.read_text().strip()
    if content.startswith("ref: "):
        # Symbolic ref (e.g. HEAD -> refs/heads/main)
        return resolve_ref(git_dir, content[5:], _depth + 1)
    return content or None


def resolve_head(git_dir: Path = Path(".git")) -> Optional[str]:
    """Resolves HEAD to the current commit OID."""
    return resolve_ref(git_dir, "HEAD")


def _list_refs(git_dir: Path, namespace: str) -> Dict[str, str]:
    prefix = f"{namespace}/"
    refs = {
        name[len(prefix):]: oid
        for name, oid in read_packed_refs(git_dir).items()
        if name.startswith(prefix)
    }

    # Loose refs override packed ones
    ns_dir = git_dir / namespace
    if ns_dir.exists():
        for path in ns_dir.glob("**/*"):
            if path.is_file():
                refs[path.relative_to(ns_dir).as_posix()] = path.read_text().strip()
    return dict(sorted(refs.items()))


def get_branches(git_dir: Path = Path(".git")) -> Dict[str, str]:
    """Returns a dictionary of branch names and their tip OIDs."""
    return _list_refs(git_dir, "refs/heads")


def get_tags(git_dir: Path = Path(".git")) -> Dict[str, str]:
    """Returns tag names and the OID each points at (possibly a tag object)."""
    return _list_refs(git_dir, "refs/tags")


def resolve_revision(git_dir: Path, revision: str) -> Optional[str]:
    """Resolves a user supplied revision to an object id.

    Tries, in order: a full object id, HEAD, a full ref name, a branch
    name and a tag name. Returns None when nothing matches.
    """
    revision = revision.strip()
    if not revision or ".." in revision:
        return None
    if OID_RE.match(revision):
        return revision
    if revision == "HEAD":
        return resolve_head(git_dir)

    for candidate in (revision, f"refs/heads/{revision}", f"refs/tags/{revision}"):
        if candidate.startswith("refs/"):
            oid = resolve_ref(git_dir, candidate)
            if oid:
                return oid
    return None
