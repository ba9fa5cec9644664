import asyncio
from functools import partial
from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from typing import List
from pathlib import Path
import os

from src.api.service import GitService
from src.api.schemas import BlobResponse, CommitResponse, RefResponse, TreeResponse
from src.git_objects.errors import GitStoreError, PathNotFoundError, RevisionNotFoundError

import logging

# Configure Logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Seconds allowed for last-modified attribution before a listing is served
# without it. The traversal itself cannot be interrupted.
LAST_MODIFIED_TIMEOUT = float(os.getenv("LAST_MODIFIED_TIMEOUT", "10"))

app = FastAPI(title="Git Tree Browser API")

# In production, set ALLOWED_ORIGINS to a comma-separated list of domains
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "*")
allowed_origins = [origin.strip() for origin in allowed_origins_env.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# By default look in CWD. Can be overridden by env var GIT_DIR.
git_dir_path = os.getenv("GIT_DIR", ".git")
service = GitService(Path(git_dir_path))
logger.info(f"Serving git repo at {service.git_dir}")


@app.get("/api/refs", response_model=List[RefResponse])
def get_refs():
    """List branches and tags."""
    return service.get_refs()

@app.get("/api/commits", response_model=List[CommitResponse])
def get_commits(ref: str = "HEAD", limit: int = 50, skip: int = 0):
    """Get commits reachable from a ref, newest first."""
    try:
        return service.get_commits(ref, limit, skip)
    except RevisionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GitStoreError as e:
        logger.error(f"Failed to read log for {ref}: {e}")
        raise HTTPException(status_code=503, detail=str(e))

@app.get("/api/commits/{oid}", response_model=CommitResponse)
def get_commit(oid: str):
    """Get details of a specific commit."""
    try:
        commit = service.get_commit(oid)
    except GitStoreError as e:
        logger.error(f"Failed to read commit {oid}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    if not commit:
        raise HTTPException(status_code=404, detail="Commit not found")
    return commit

@app.get("/api/tree", response_model=TreeResponse)
async def get_tree(ref: str = "HEAD", path: str = ""):
    """List a directory with the commit that last modified each entry.

    If attribution fails or runs past LAST_MODIFIED_TIMEOUT the listing is
    still returned, with ``annotated`` set to false.
    """
    try:
        commit, entries = await run_in_threadpool(service.list_tree, ref, path)
    except (RevisionNotFoundError, PathNotFoundError) as e:
        raise HTTPException(status_code=404, detail=f"Not found: {e}")
    except GitStoreError as e:
        logger.error(f"Failed to list {ref}:{path}: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    # A plain executor future, so the deadline does not wait for the worker
    # thread; an abandoned lookup finishes in the background
    loop = asyncio.get_running_loop()
    lookup = loop.run_in_executor(
        None, partial(service.last_modified, commit, path, [e.name for e in entries])
    )
    annotations = None
    try:
        annotations = await asyncio.wait_for(lookup, timeout=LAST_MODIFIED_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning(f"Last-modified lookup for {ref}:{path} timed out after {LAST_MODIFIED_TIMEOUT}s")
    except GitStoreError as e:
        logger.error(f"Last-modified lookup for {ref}:{path} failed: {e}")

    try:
        return service.tree_response(ref, commit, path, entries, annotations)
    except GitStoreError as e:
        logger.error(f"Failed to describe entries of {ref}:{path}: {e}")
        raise HTTPException(status_code=503, detail=str(e))

@app.get("/api/blob/{oid}", response_model=BlobResponse)
def get_blob(oid: str):
    try:
        blob = service.get_blob(oid)
    except GitStoreError as e:
        logger.error(f"Failed to read blob {oid}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    if not blob:
        raise HTTPException(status_code=404, detail="Blob not found")
    return blob

@app.get("/health")
def health_check():
    return {"status": "ok", "repo": str(service.git_dir)}
