"""Rule classification into display categories.

Classification is an ordered chain of ``(predicate, category)`` pairs;
the first matching predicate wins and unmatched rules fall into
``Category.OTHER``. New categories are added by inserting a pair into the
chain, never by rewriting existing entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .categories import BUILTIN_RULES, Category

RulePredicate = Callable[[str], bool]


@dataclass(frozen=True)
class ClassificationRule:
    """One link of the classification chain."""

    name: str
    category: Category
    predicate: RulePredicate

    def matches(self, rule: str) -> bool:
        return self.predicate(rule)


def starts_with(*prefixes: str) -> RulePredicate:
    return lambda rule: rule.startswith(prefixes)


def contains(*needles: str) -> RulePredicate:
    return lambda rule: any(needle in rule for needle in needles)


def equals_or_starts_with(exact: str, *prefixes: str) -> RulePredicate:
    return lambda rule: rule == exact or rule.startswith(prefixes)


DEFAULT_CLASSIFICATION_CHAIN: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "file-operations",
        Category.FILE_OPERATIONS,
        starts_with("Read", "Edit", "Write"),
    ),
    ClassificationRule(
        "git",
        Category.GIT_COMMANDS,
        equals_or_starts_with("Bash(git)", "Bash(git ", "Bash(git:"),
    ),
    ClassificationRule(
        "testing",
        Category.TESTING,
        contains("npm test", "npm run test", "npx jest", "pytest", "cargo test", "go test"),
    ),
    ClassificationRule(
        "build-lint",
        Category.BUILD_LINT,
        contains(
            "npm run build",
            "npx tsc",
            "tsc:",
            "npx next build",
            "cargo build",
            "go build",
            "npm run lint",
            "npx eslint",
            "eslint:",
            "npx prettier",
            "prettier:",
            "npm run format",
            "npm run typecheck",
        ),
    ),
    ClassificationRule(
        "package-management",
        Category.PACKAGE_MANAGEMENT,
        contains(
            "npm install",
            "npm ci",
            "npm i:",
            "pip install",
            "cargo add",
            "go get",
            "npm list",
            "npm outdated",
            "npm info",
            "npm ls",
            "npm view",
        ),
    ),
    ClassificationRule(
        "github-cli",
        Category.EXTERNAL_CLI,
        starts_with("Bash(gh ", "Bash(gh:"),
    ),
    ClassificationRule(
        "flywheel-skills",
        Category.EXTENSION_SKILLS,
        starts_with("Skill(flywheel-"),
    ),
)


def classify(rule: str, chain: Sequence[ClassificationRule] = DEFAULT_CLASSIFICATION_CHAIN) -> Category:
    """Return the category of the first chain entry matching ``rule``.

    Example::

        classify("Bash(git push:*)")   # Category.GIT_COMMANDS
        classify("Bash(pytest:*)")     # Category.TESTING
        classify("Bash(docker ps)")    # Category.OTHER
    """
    for entry in chain:
        if entry.matches(rule):
            return entry.category
    return Category.OTHER


def insert_classification(
    entry: ClassificationRule,
    *,
    before: str | None = None,
    chain: Sequence[ClassificationRule] = DEFAULT_CLASSIFICATION_CHAIN,
) -> tuple[ClassificationRule, ...]:
    """Return a new chain with ``entry`` inserted before the named entry.

    With ``before=None`` the entry is appended (lowest priority, still ahead
    of the ``OTHER`` fallback).

    Raises:
        KeyError: if ``before`` names no entry in the chain.
    """
    entries = list(chain)
    if before is None:
        entries.append(entry)
        return tuple(entries)
    for idx, existing in enumerate(entries):
        if existing.name == before:
            entries.insert(idx, entry)
            return tuple(entries)
    raise KeyError(before)


def is_custom_rule(rule: str) -> bool:
    """True iff ``rule`` is not part of the built-in rule universe.

    Independent of :func:`classify`: ``Bash(git push --force)`` classifies as
    a git command but is still custom.
    """
    return rule not in BUILTIN_RULES


def group_by_category(
    rules: Iterable[str],
    chain: Sequence[ClassificationRule] = DEFAULT_CLASSIFICATION_CHAIN,
    overrides: dict[str, str] | None = None,
) -> dict[str, list[str]]:
    """Group rules by category label, keeping input order within each group.

    Every built-in category is present in the result (possibly empty), in
    display order. ``overrides`` maps a rule to a human-assigned category
    label, which may be a custom label not among the built-ins; custom
    labels are appended after the built-in groups.
    """
    groups: dict[str, list[str]] = {category.value: [] for category in Category.ordered()}
    for rule in rules:
        label = (overrides or {}).get(rule) or classify(rule, chain).value
        groups.setdefault(label, []).append(rule)
    return groups


__all__ = [
    "ClassificationRule",
    "DEFAULT_CLASSIFICATION_CHAIN",
    "classify",
    "contains",
    "equals_or_starts_with",
    "group_by_category",
    "insert_classification",
    "is_custom_rule",
    "starts_with",
]
