import sys
from pathlib import Path
from src.git_objects.errors import GitStoreError
from src.git_objects.parser import ObjectStore
from src.history.index import CommitGraphIndex
from src.history.last_modified import resolve_last_modified
from src.history.tree import TreeSnapshotResolver

def main():
    git_dir = Path(".git")
    if not git_dir.exists():
        print("No .git directory found. Run this from the root of a git repo.")
        return

    ref = sys.argv[1] if len(sys.argv) > 1 else "HEAD"
    path = sys.argv[2] if len(sys.argv) > 2 else ""

    index = CommitGraphIndex(ObjectStore(git_dir))
    commit = index.resolve(ref)
    entries = TreeSnapshotResolver(index).entries(commit, path)
    print(f"{ref} is at {commit.oid[:7]}, listing '{path or '/'}'\n")

    try:
        annotations = resolve_last_modified(index, commit, path, [e.name for e in entries])
    except GitStoreError as e:
        print(f"Last-modified lookup failed ({e}), listing without it")
        annotations = {}

    for e in entries:
        info = annotations.get(e.name)
        if info:
            summary = info.message.splitlines()[0] if info.message else ""
            when = info.committed_at.strftime("%Y-%m-%d %H:%M")
            print(f"{e.kind.value:<10} {e.name:<30} {info.commit_hash[:7]} {when} {info.author_name}: {summary}")
        else:
            print(f"{e.kind.value:<10} {e.name}")

if __name__ == "__main__":
    main()
