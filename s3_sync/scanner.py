"""
Module for enumerating the files of a local directory tree.
"""
import logging
import os
from pathlib import Path
from typing import Iterator, List, Tuple

from .errors import CyclicSymlink, DirectoryNotFound, EnumerationFailed
from .models import FileDescriptor

logger = logging.getLogger(__name__)


def _dir_identity(path: Path) -> Tuple[int, int]:
    st = os.stat(path)
    return (st.st_dev, st.st_ino)


class FileScanner:
    """Walks a local directory and yields a descriptor for every regular file."""

    def enumerate(self, root: Path, follow_symlinks: bool = False) -> Iterator[FileDescriptor]:
        """Lazily enumerate all regular files below a directory.

        Entries are visited depth first, sorted by name within each directory.

        Args:
            root: Directory to walk
            follow_symlinks: Whether to descend into symlinked directories
                and include symlinked files

        Yields:
            FileDescriptor for every file found

        Raises:
            DirectoryNotFound: If root does not exist or is not a directory
            CyclicSymlink: If a followed symlink points to an ancestor directory
            EnumerationFailed: If any directory in the tree cannot be read
        """
        root = Path(root)
        if not root.is_dir():
            raise DirectoryNotFound(root)

        yield from self._walk(root, root, [_dir_identity(root)], follow_symlinks)

    def scan_folder(self, root: Path, follow_symlinks: bool = False) -> List[FileDescriptor]:
        """Enumerate a directory into a list.

        Args:
            root: Directory to walk
            follow_symlinks: Whether to follow symlinks

        Returns:
            List of FileDescriptor objects in enumeration order
        """
        return list(self.enumerate(root, follow_symlinks))

    def _walk(self, root: Path, directory: Path, ancestors: List[Tuple[int, int]],
              follow_symlinks: bool) -> Iterator[FileDescriptor]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.error(f"Error reading directory {directory}: {e}")
            raise EnumerationFailed(directory, e) from e

        for entry in entries:
            path = Path(entry.path)
            try:
                is_link = entry.is_symlink()
                if is_link and not follow_symlinks:
                    logger.debug(f"Skipping symlink {path}")
                    continue

                if is_link and not path.exists():
                    logger.warning(f"Skipping dangling symlink {path}")
                    continue

                if entry.is_dir(follow_symlinks=True):
                    identity = _dir_identity(path)
                    if identity in ancestors:
                        raise CyclicSymlink(path, path.resolve())
                    yield from self._walk(root, path, ancestors + [identity], follow_symlinks)
                    continue

                if not entry.is_file(follow_symlinks=True):
                    logger.debug(f"Skipping special file {path}")
                    continue

                st = entry.stat(follow_symlinks=True)
            except OSError as e:
                logger.error(f"Error reading {path}: {e}")
                raise EnumerationFailed(path, e) from e

            yield FileDescriptor(
                relative_path=path.relative_to(root).as_posix(),
                absolute_path=path,
                size_bytes=st.st_size,
                mod_time=st.st_mtime,
                is_symlink=is_link,
            )
