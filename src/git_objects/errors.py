class GitStoreError(Exception):
    """Base class for failures reading the object store. Always fatal."""


class StoreUnavailableError(GitStoreError):
    """An object could not be read (missing, I/O failure, git failure)."""


class ObjectNotFoundError(StoreUnavailableError):
    """The object id is not present in the repository at all."""


class MalformedObjectError(GitStoreError, ValueError):
    """Object data exists but cannot be decoded."""


class PathNotFoundError(LookupError):
    """A path does not exist inside a tree. Never fatal on its own."""


class RevisionNotFoundError(LookupError):
    """A revision string does not name any commit."""
