"""
Module for comparing local files against remote objects and planning actions.
"""
import hashlib
import logging
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .errors import EnumerationFailed
from .models import (
    DeleteAction,
    FileDescriptor,
    RemoteObjectMeta,
    SkipAction,
    SyncAction,
    UploadAction,
)
from .params import ParamResolver

logger = logging.getLogger(__name__)

_MD5_ETAG = re.compile(r'^[0-9a-f]{32}$')


def compute_md5(file_path: Path, chunk_size: int = 8 * 1024 * 1024) -> str:
    """Compute the hex MD5 digest of a file, reading it in chunks."""
    h = hashlib.md5()
    with open(file_path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def usable_etag(etag: Optional[str]) -> Optional[str]:
    """Return the ETag if it is a plain MD5 digest, None otherwise.

    Multipart uploads produce ETags of the form ``<md5>-<parts>`` which are
    not the MD5 of the object and cannot be compared with a local digest.
    """
    if etag and _MD5_ETAG.match(etag.lower()):
        return etag.lower()
    return None


class DiffPlanner:
    """Decides which files to upload, skip or delete."""

    def __init__(self, resolver: Optional[ParamResolver] = None, acl: str = "private",
                 hasher: Callable[[Path], str] = compute_md5):
        """Initialize the planner.

        Args:
            resolver: Resolver for per-object upload parameters
            acl: Canned ACL applied to uploads
            hasher: Function computing the hex MD5 of a local file
        """
        self.resolver = resolver or ParamResolver()
        self.acl = acl
        self.hasher = hasher

    def is_unchanged(self, descriptor: FileDescriptor, remote: RemoteObjectMeta) -> bool:
        """Check whether a local file matches its remote object.

        Sizes must match. When the remote ETag is a usable MD5 the local
        digest must match it too; otherwise size equality is all we can check.
        """
        if descriptor.size_bytes != remote.size_bytes:
            return False
        etag = usable_etag(remote.etag)
        if etag is None:
            return True
        try:
            digest = self.hasher(descriptor.absolute_path)
        except OSError as e:
            logger.error(f"Error hashing {descriptor.absolute_path}: {e}")
            raise EnumerationFailed(descriptor.absolute_path, e) from e
        return digest == etag

    def plan(self, descriptors: Iterable[FileDescriptor],
             remote: Dict[str, RemoteObjectMeta],
             delete_removed: bool, prefix: str = "") -> List[SyncAction]:
        """Build the ordered list of actions for one sync.

        Args:
            descriptors: Local files in enumeration order
            remote: Remote objects keyed by prefix-relative key
            delete_removed: Whether remote-only objects are deleted
            prefix: Normalized bucket prefix

        Returns:
            Uploads and skips in local order, then deletes in listing order
        """
        actions: List[SyncAction] = []
        seen = set()

        for descriptor in descriptors:
            rel = descriptor.relative_path
            seen.add(rel)
            existing = remote.get(rel)

            if existing is not None and self.is_unchanged(descriptor, existing):
                actions.append(SkipAction(relative_path=rel, key=existing.key))
                continue

            actions.append(UploadAction(
                descriptor=descriptor,
                key=prefix + rel,
                params=self.resolver.upload_params(rel, self.acl),
            ))

        if delete_removed:
            for rel, meta in remote.items():
                if rel not in seen:
                    actions.append(DeleteAction(key=meta.key, size_bytes=meta.size_bytes))

        logger.debug(
            f"Planned {sum(a.kind == 'upload' for a in actions)} uploads, "
            f"{sum(a.kind == 'skip' for a in actions)} skips, "
            f"{sum(a.kind == 'delete' for a in actions)} deletes"
        )
        return actions
