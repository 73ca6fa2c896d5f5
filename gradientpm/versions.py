"""Dependency constraints and version ordering."""

from __future__ import annotations

import re
from dataclasses import dataclass

_OPERATORS = ("<=", ">=", "<", ">", "=")
_SEPARATORS = re.compile(r"[.\-+]")
_NUMERIC = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Constraint:
    """A package name with an optional comparison operator and version."""

    name: str
    op: str = ""
    version: str = ""


def parse_constraint(s: str) -> Constraint:
    """Split ``"foo>=1.2.3-4"`` (or a plain ``"foo"``) into its parts."""
    for op in _OPERATORS:
        pos = s.find(op)
        if pos != -1:
            return Constraint(s[:pos], op, s[pos + len(op):])
    return Constraint(s)


def _tokenize(version: str) -> list[str]:
    parts = _SEPARATORS.split(version)
    # A separator at the very end does not produce a trailing empty segment.
    if len(parts) > 1 and parts[-1] == "":
        parts.pop()
    return parts


def _is_numeric(token: str) -> bool:
    return _NUMERIC.fullmatch(token) is not None


def version_compare(a: str, b: str) -> int:
    """Compare two versions, returning -1, 0 or 1.

    Segments are split on ``.``, ``-`` and ``+``; numeric segments compare
    numerically, others lexically. Extra trailing segments that are all
    numeric (a package release) do not make the versions differ.
    """
    ta, tb = _tokenize(a), _tokenize(b)
    for sa, sb in zip(ta, tb):
        if _is_numeric(sa) and _is_numeric(sb):
            left, right = int(sa), int(sb)
            if left != right:
                return -1 if left < right else 1
        elif sa != sb:
            return -1 if sa < sb else 1

    if len(ta) > len(tb):
        return 0 if all(_is_numeric(t) for t in ta[len(tb):]) else 1
    if len(tb) > len(ta):
        return 0 if all(_is_numeric(t) for t in tb[len(ta):]) else -1
    return 0


_PREDICATES = {
    "=": lambda cmp: cmp == 0,
    "<": lambda cmp: cmp < 0,
    "<=": lambda cmp: cmp <= 0,
    ">": lambda cmp: cmp > 0,
    ">=": lambda cmp: cmp >= 0,
}


def eval_constraint(installed_version: str, constraint: Constraint) -> bool:
    """Tell whether an installed version satisfies a constraint."""
    if not constraint.op:
        return True
    predicate = _PREDICATES.get(constraint.op)
    if predicate is None:
        return False
    return predicate(version_compare(installed_version, constraint.version))