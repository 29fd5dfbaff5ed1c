"""Exclude-pattern matching for build indexing.

Patterns are plain globs matched against the whole root-relative POSIX
path. ``*`` and ``?`` also match ``/``, so ``data/*.bin`` covers
``data/sub/x.bin`` and ``*.pdb`` covers a .pdb at any depth. ``{a,b}``
alternates, ``[...]`` is a character class and ``\\`` escapes the next
character. ``!`` and ``#`` have no special meaning.
"""

import fnmatch
import re
from typing import Iterable, List, Pattern

from .errors import PatternError


def _split_alternates(pattern: str, original: str) -> List[str]:
    """Expand the ``{a,b}`` groups of a pattern into plain globs."""
    start = None
    escaped = False
    in_class = False
    for i, char in enumerate(pattern):
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif in_class:
            if char == "]":
                in_class = False
        elif char == "[":
            in_class = True
        elif char == "{":
            if start is not None:
                raise PatternError(original, "nested alternate groups are not allowed")
            start = i
        elif char == "}":
            if start is None:
                raise PatternError(original, "unopened alternate group")
            head, body, tail = pattern[:start], pattern[start + 1:i], pattern[i + 1:]
            return [
                expanded
                for option in body.split(",")
                for expanded in _split_alternates(head + option + tail, original)
            ]
    if start is not None:
        raise PatternError(original, "unclosed alternate group")
    return [pattern]


def _to_fnmatch(glob: str, original: str) -> str:
    """Rewrite escapes as one-character classes and validate classes."""
    out = []
    chars = iter(glob)
    for char in chars:
        if char == "\\":
            escaped = next(chars, None)
            if escaped is None:
                raise PatternError(original, "dangling '\\'")
            out.append(f"[{escaped}]" if escaped in "*?[" else escaped)
        elif char == "[":
            body = []
            for inner in chars:
                if inner == "]" and body and body != ["!"]:
                    break
                body.append(inner)
            else:
                raise PatternError(original, "unclosed character class")
            out.append("[" + "".join(body) + "]")
        else:
            out.append(char)
    return "".join(out)


def _globstar_variants(glob: str) -> List[str]:
    """A ``**/`` segment may also match no directory at all."""
    variants = [glob]
    if glob.startswith("**/"):
        variants.extend(_globstar_variants(glob[3:]))
    if "/**/" in glob:
        variants.extend(_globstar_variants(glob.replace("/**/", "/", 1)))
    return variants


def compile_pattern(pattern: str) -> List[Pattern]:
    """Compile one exclude pattern into the regexes it stands for.

    Raises:
        PatternError: If the pattern has an unclosed class or group, a
            nested group or a trailing escape
    """
    return [
        re.compile(fnmatch.translate(_to_fnmatch(glob, pattern)))
        for alternate in _split_alternates(pattern, pattern)
        for glob in _globstar_variants(alternate)
    ]


class ExcludeSpec:
    """Compiled exclude patterns, tested against root-relative POSIX paths.

    Files and directories are matched the same way; an excluded directory
    hides everything below it.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        """Compile patterns, failing before any filesystem access.

        Args:
            patterns: Glob-style exclude patterns

        Raises:
            PatternError: If a pattern is malformed
        """
        self.patterns: List[str] = list(patterns)
        self._regexes: List[Pattern] = []
        for pattern in self.patterns:
            self._regexes.extend(compile_pattern(pattern))

    def is_excluded(self, relpath: str) -> bool:
        """Check if a root-relative POSIX path is excluded."""
        return any(regex.match(relpath) for regex in self._regexes)

    def should_traverse(self, dirpath: str) -> bool:
        """Check if a directory should be descended into."""
        return not self.is_excluded(dirpath.rstrip("/"))
