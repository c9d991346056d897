"""Rule value type and its canonical text form.

A rule is ``tool`` or ``tool(pattern)``. Parsing never fails: anything that
does not have the ``tool(pattern)`` shape is a bare tool name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..exceptions import InvalidRuleError

_RULE_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\((.+)\)")


@dataclass(frozen=True)
class Rule:
    """A permitted tool invocation.

    ``pattern=None`` is a bare-tool grant. ``pattern=""`` is NOT the same
    grant: it renders as ``tool()``.
    """

    tool: str
    pattern: Optional[str] = None

    @property
    def text(self) -> str:
        return format_rule(self)

    @property
    def is_bare(self) -> bool:
        return self.pattern is None

    def __str__(self) -> str:
        return self.text


def parse_rule(raw: str) -> Rule:
    """Split rule text into tool and pattern.

    Example::

        parse_rule("Bash(git push:*)")  # Rule(tool="Bash", pattern="git push:*")
        parse_rule("WebFetch")          # Rule(tool="WebFetch", pattern=None)
        parse_rule("mcp__*")            # Rule(tool="mcp__*", pattern=None)
    """
    match = _RULE_RE.fullmatch(raw)
    if match:
        return Rule(tool=match.group(1), pattern=match.group(2))
    return Rule(tool=raw, pattern=None)


def format_rule(rule: Rule) -> str:
    """Inverse of :func:`parse_rule`."""
    if rule.pattern is None:
        return rule.tool
    return f"{rule.tool}({rule.pattern})"


def build_rule(tool: str, pattern: Optional[str] = None) -> Rule:
    """Build a rule from user-entered parts.

    Whitespace is stripped from both parts and an empty pattern means
    "no pattern", matching how rules are entered in a create/edit form.

    Raises:
        InvalidRuleError: if the tool is empty.
    """
    tool = (tool or "").strip()
    if not tool:
        raise InvalidRuleError("tool must be a non-empty string")
    pattern = (pattern or "").strip() or None
    return Rule(tool=tool, pattern=pattern)


__all__ = [
    "Rule",
    "build_rule",
    "format_rule",
    "parse_rule",
]
