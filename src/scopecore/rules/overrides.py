"""Override and duplicate resolution between a higher and a lower scope.

A lower-scope rule *overrides* a higher-scope rule when both name the same
tool but with different patterns (``Bash(git push)`` vs ``Bash(git push:*)``,
or ``Read`` vs ``Read(src/**)``). A lower-scope rule whose exact text is
already present at the higher scope is a duplicate and is dropped from the
lower scope's display list; storage is never touched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ..scopes import ScopeKind
from .classifier import is_custom_rule
from .model import Rule, parse_rule

_MISSING = object()


@dataclass(frozen=True)
class RuleWithSource:
    """A rule annotated for display."""

    rule: Rule
    source: ScopeKind
    is_override: bool = False
    is_custom: bool = False

    @property
    def raw(self) -> str:
        return self.rule.text

    def to_dict(self) -> dict:
        return {
            "rule": {"tool": self.rule.tool, "pattern": self.rule.pattern, "raw": self.raw},
            "source": self.source.value,
            "isOverride": self.is_override,
            "isCustom": self.is_custom,
        }


def _tool_patterns(rules: Sequence[str]) -> dict[str, Optional[str]]:
    # Last entry wins if a tool appears more than once
    patterns: dict[str, Optional[str]] = {}
    for raw in rules:
        parsed = parse_rule(raw)
        patterns[parsed.tool] = parsed.pattern
    return patterns


def compute_overrides(
    higher_rules: Sequence[str],
    lower_rules: Sequence[str],
    *,
    source: ScopeKind = ScopeKind.PROJECT,
) -> list[RuleWithSource]:
    """Annotate ``lower_rules`` against ``higher_rules``.

    Exact-text duplicates of a higher-scope rule are excluded. Every other
    lower rule is flagged ``is_override`` iff the higher scope has a rule for
    the same tool with a different pattern (a bare grant and a patterned
    grant count as different).

    Example::

        compute_overrides(["Bash(git push:*)"], ["Bash(git push)", "Read"])
        # [RuleWithSource(Bash(git push), is_override=True),
        #  RuleWithSource(Read, is_override=False)]
    """
    higher_text = set(higher_rules)
    higher_patterns = _tool_patterns(higher_rules)

    result: list[RuleWithSource] = []
    for raw in lower_rules:
        if raw in higher_text:
            continue
        parsed = parse_rule(raw)
        higher_pattern = higher_patterns.get(parsed.tool, _MISSING)
        is_override = higher_pattern is not _MISSING and higher_pattern != parsed.pattern
        result.append(
            RuleWithSource(
                rule=parsed,
                source=source,
                is_override=is_override,
                is_custom=is_custom_rule(raw),
            )
        )
    return result


def compute_rule_display_list(
    higher_rules: Sequence[str],
    lower_rules: Sequence[str],
    *,
    higher_source: ScopeKind = ScopeKind.GLOBAL,
    lower_source: ScopeKind = ScopeKind.PROJECT,
) -> list[RuleWithSource]:
    """Higher-scope rules followed by the de-duplicated, override-flagged lower rules."""
    display = [
        RuleWithSource(rule=parse_rule(raw), source=higher_source, is_custom=is_custom_rule(raw))
        for raw in dict.fromkeys(higher_rules)
    ]
    display.extend(compute_overrides(higher_rules, lower_rules, source=lower_source))
    return display


__all__ = [
    "RuleWithSource",
    "compute_overrides",
    "compute_rule_display_list",
]
