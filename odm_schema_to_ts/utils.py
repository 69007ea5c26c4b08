"""
Utility functions for the ODM schema to TypeScript generator.
"""

import fnmatch


def upper_first(text: str) -> str:
    """Upper-case the first letter, leaving the rest untouched.

    Examples:
        "user" -> "User"
        "blogPost" -> "BlogPost"
        "order_item" -> "Order_item"
    """
    if not text:
        return ""
    return text[0].upper() + text[1:]


def matches_glob(relative_path: str, pattern: str) -> bool:
    """Match a POSIX relative path against a glob pattern.

    A leading ``**/`` also matches zero directories, so ``**/tests/**``
    excludes both ``tests/a.py`` and ``pkg/tests/a.py``.
    """
    candidates = [pattern]
    while pattern.startswith("**/"):
        pattern = pattern[3:]
        candidates.append(pattern)
    return any(fnmatch.fnmatchcase(relative_path, candidate) for candidate in candidates)


def matches_any(relative_path: str, patterns: list[str]) -> bool:
    return any(matches_glob(relative_path, pattern) for pattern in patterns)
