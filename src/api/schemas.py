from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

class CommitResponse(BaseModel):
    oid: str
    tree_oid: str
    parent_oids: List[str]
    author: str
    committer: str
    committed_at: datetime
    message: str

class RefResponse(BaseModel):
    name: str
    type: str  # 'branch' or 'tag'
    oid: str

class LastCommitResponse(BaseModel):
    commit_hash: str
    author_name: str
    committed_at: datetime
    message: str

class TreeEntryResponse(BaseModel):
    mode: str
    name: str
    type: str  # file, executable, directory, symlink or submodule
    oid: str
    last_commit: Optional[LastCommitResponse] = None

class TreeResponse(BaseModel):
    ref: str
    commit: str
    path: str
    annotated: bool
    entries: List[TreeEntryResponse]

class BlobResponse(BaseModel):
    oid: str
    content: str
    size: int
