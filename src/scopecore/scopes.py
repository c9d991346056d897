"""Scope identity for the Global -> Area -> Project hierarchy.

``Scope`` is a tagged union: ``kind`` says which tier, ``key`` carries the
area name or project path. ``parse_scope()`` is the single place where
scope identifier strings are interpreted.

Canonical identifiers::

    global
    area:<name>
    project:<path>
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .exceptions import UnknownScopeError

AREA_PREFIX = "area:"
PROJECT_PREFIX = "project:"
GLOBAL_ID = "global"


class ScopeKind(str, Enum):
    """Tier of a scope. Declaration order is broadest first."""

    GLOBAL = "global"
    AREA = "area"
    PROJECT = "project"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {ScopeKind.GLOBAL: 0, ScopeKind.AREA: 1, ScopeKind.PROJECT: 2}


@dataclass(frozen=True)
class Scope:
    """One node in the permission hierarchy.

    Use the constructors rather than building instances by hand::

        Scope.global_()
        Scope.area("sophia")
        Scope.project("/home/me/sophia/api")
    """

    kind: ScopeKind
    key: str = ""

    @classmethod
    def global_(cls) -> "Scope":
        return cls(ScopeKind.GLOBAL)

    @classmethod
    def area(cls, name: str) -> "Scope":
        if not name:
            raise UnknownScopeError("area name must be non-empty")
        return cls(ScopeKind.AREA, name)

    @classmethod
    def project(cls, path: str) -> "Scope":
        if not path:
            raise UnknownScopeError("project path must be non-empty")
        return cls(ScopeKind.PROJECT, path)

    @property
    def is_global(self) -> bool:
        return self.kind is ScopeKind.GLOBAL

    @property
    def is_area(self) -> bool:
        return self.kind is ScopeKind.AREA

    @property
    def is_project(self) -> bool:
        return self.kind is ScopeKind.PROJECT

    @property
    def scope_id(self) -> str:
        if self.kind is ScopeKind.GLOBAL:
            return GLOBAL_ID
        if self.kind is ScopeKind.AREA:
            return f"{AREA_PREFIX}{self.key}"
        return f"{PROJECT_PREFIX}{self.key}"

    def __str__(self) -> str:
        return self.scope_id


def parse_scope(raw: str, known_areas: Optional[Iterable[str]] = None) -> Scope:
    """Parse a scope identifier.

    Accepts the canonical forms plus a bare absolute (or ``~``-relative)
    project path, which is how request handlers have historically passed
    project scopes.

    Args:
        raw: Scope identifier.
        known_areas: If given, area names outside this set are rejected.

    Raises:
        UnknownScopeError: malformed identifier or unknown area.

    Example::

        parse_scope("global")                 # Scope(GLOBAL)
        parse_scope("area:sophia")            # Scope(AREA, "sophia")
        parse_scope("project:/srv/app")       # Scope(PROJECT, "/srv/app")
        parse_scope("/srv/app")               # Scope(PROJECT, "/srv/app")
        parse_scope("team")                   # UnknownScopeError
    """
    if not isinstance(raw, str) or not raw.strip():
        raise UnknownScopeError("scope must be 'global', 'area:<name>', or a project path", scope=raw)

    value = raw.strip()
    if value == GLOBAL_ID:
        return Scope.global_()

    if value.startswith(AREA_PREFIX):
        name = value[len(AREA_PREFIX):]
        if not name or "/" in name or ":" in name:
            raise UnknownScopeError(f"Malformed area scope: {raw!r}", scope=raw)
        if known_areas is not None and name not in set(known_areas):
            raise UnknownScopeError(f"Unknown area: {name!r}", scope=raw)
        return Scope.area(name)

    if value.startswith(PROJECT_PREFIX):
        path = value[len(PROJECT_PREFIX):]
        if not path:
            raise UnknownScopeError(f"Malformed project scope: {raw!r}", scope=raw)
        return Scope.project(path)

    if value.startswith(("/", "~")):
        return Scope.project(value)

    raise UnknownScopeError(f"Unrecognized scope identifier: {raw!r}", scope=raw)


def coerce_scope(scope: Scope | str, known_areas: Optional[Iterable[str]] = None) -> Scope:
    """Accept either a Scope or an identifier string; validate areas either way."""
    if isinstance(scope, Scope):
        if scope.is_area and known_areas is not None and scope.key not in set(known_areas):
            raise UnknownScopeError(f"Unknown area: {scope.key!r}", scope=scope.scope_id)
        return scope
    return parse_scope(scope, known_areas)


__all__ = [
    "Scope",
    "ScopeKind",
    "coerce_scope",
    "parse_scope",
]
