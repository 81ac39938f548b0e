"""Glob matching for manifest patterns such as ``collections/**/collection.json``."""

import os
import re
from pathlib import Path
from typing import Iterator, List, Pattern, Sequence, Tuple

_MAGIC = re.compile(r"[*?\[]")


def glob_to_regex(pattern: str) -> Pattern:
    """
    Translate a POSIX-style glob into a compiled regular expression.

    ``*`` and ``?`` never cross a ``/``; ``**/`` matches zero or more
    whole directories.
    """
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**/", i):
                out.append("(?:.*/)?")
                i += 3
                continue
            if pattern.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:j].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = j + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def split_glob(pattern: str, cwd: Path) -> Tuple[Path, str]:
    """
    Split a glob into its static base directory and the remaining pattern.

    Args:
        pattern: Glob, absolute or relative to cwd
        cwd: Base directory for relative globs

    Returns:
        (base, rest) where base has no glob characters
    """
    pattern = pattern.replace("\\", "/")
    if not os.path.isabs(pattern):
        pattern = f"{cwd.as_posix().rstrip('/')}/{pattern}"

    parts = pattern.split("/")
    static: List[str] = []
    for part in parts:
        if _MAGIC.search(part):
            break
        static.append(part)

    rest = "/".join(parts[len(static):])
    if not rest:
        # No magic at all: the pattern names a single file.
        static, rest = static[:-1], static[-1]

    base = Path("/".join(static) or "/")
    return base.resolve(), rest


class GlobMatcher:
    """Matches absolute file paths against a set of globs."""

    def __init__(self, patterns: Sequence[str], cwd: Path):
        self.patterns = list(patterns)
        self.cwd = cwd
        self._entries = []
        for pattern in self.patterns:
            base, rest = split_glob(pattern, cwd)
            full = f"{base.as_posix().rstrip('/')}/{rest}"
            self._entries.append((base, rest, glob_to_regex(full)))

    def matches(self, path: Path) -> bool:
        """Check if an absolute path matches any of the globs."""
        path_str = Path(path).as_posix()
        return any(regex.match(path_str) for _, _, regex in self._entries)

    def roots(self) -> List[Path]:
        """Static base directories of all globs, without duplicates."""
        seen: List[Path] = []
        for base, _, _ in self._entries:
            if base not in seen:
                seen.append(base)
        return seen

    def scan(self) -> Iterator[Path]:
        """
        Yield every existing file that matches one of the globs.

        Files are yielded once, sorted within each glob.
        """
        seen = set()
        for base, rest, regex in self._entries:
            if not base.is_dir():
                continue
            for candidate in sorted(base.glob(rest)):
                if not candidate.is_file():
                    continue
                if candidate in seen or not regex.match(candidate.as_posix()):
                    continue
                seen.add(candidate)
                yield candidate
