"""
Module for resolving per-object upload parameters from glob rules.
"""
import mimetypes
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Sequence

from .models import ParamRule


def _match_segments(pattern: List[str], path: List[str]) -> bool:
    if not pattern:
        return not path
    head = pattern[0]
    if head == "**":
        # zero or more whole segments
        return any(_match_segments(pattern[1:], path[i:]) for i in range(len(path) + 1))
    if not path:
        return False
    return fnmatchcase(path[0], head) and _match_segments(pattern[1:], path[1:])


def glob_match(pattern: str, path: str) -> bool:
    """Check whether a relative path matches a glob pattern.

    ``*``, ``?`` and ``[...]`` never match across ``/``; only a ``**``
    segment spans directories.

    Args:
        pattern: Glob pattern such as ``*.html`` or ``assets/**/*.js``
        path: Relative path using forward slashes

    Returns:
        True if the pattern matches the whole path
    """
    return _match_segments(pattern.strip("/").split("/"), path.strip("/").split("/"))


class ParamResolver:
    """Merges the parameters of every rule matching a path."""

    def __init__(self, rules: Sequence[ParamRule] = ()):
        self.rules = tuple(rules)

    def resolve(self, relative_path: str) -> Dict[str, Any]:
        """Merge the params of all matching rules, later rules winning.

        Args:
            relative_path: Path of the file relative to the synced directory

        Returns:
            Merged overrides, empty if no rule matches
        """
        merged: Dict[str, Any] = {}
        for rule in self.rules:
            if glob_match(rule.glob, relative_path):
                merged.update(rule.params or {})
        return merged

    def upload_params(self, relative_path: str, acl: str = "private") -> Dict[str, Any]:
        """Build the ExtraArgs for uploading a file.

        Args:
            relative_path: Path of the file relative to the synced directory
            acl: Canned ACL of the target

        Returns:
            Base defaults with the rule overrides applied on top
        """
        params: Dict[str, Any] = {'ACL': acl}
        content_type, _ = mimetypes.guess_type(relative_path)
        if content_type:
            params['ContentType'] = content_type
        params.update(self.resolve(relative_path))
        return params
