"""Display categories and built-in rule presets.

Provides:
- ``Category``: ordered display categories.
- ``RulePreset`` / ``RULE_PRESETS``: named bundles of built-in rules.
- ``BUILTIN_RULES``: the static built-in rule universe.
- ``enabled_presets()`` / ``rules_for_presets()``: preset <-> rule list conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    """Display category for a rule.

    Declaration order is display order.
    """

    FILE_OPERATIONS = "File Operations"
    GIT_COMMANDS = "Git Commands"
    TESTING = "Testing"
    BUILD_LINT = "Build & Lint"
    PACKAGE_MANAGEMENT = "Package Management"
    EXTERNAL_CLI = "GitHub CLI"
    EXTENSION_SKILLS = "Flywheel Skills"
    OTHER = "Other"

    @classmethod
    def ordered(cls) -> tuple["Category", ...]:
        return tuple(cls)

    @classmethod
    def from_label(cls, label: str) -> "Category | None":
        """Return the built-in category with this label, or None for a custom label."""
        for category in cls:
            if category.value == label:
                return category
        return None


@dataclass(frozen=True)
class RulePreset:
    """A named bundle of built-in rules that is enabled as a unit."""

    id: str
    label: str
    description: str
    category: Category
    rules: tuple[str, ...]


# ── Built-in Presets ────────────────────────────────────
# A preset is "enabled" at a scope when ALL of its rules are present.

RULE_PRESETS: tuple[RulePreset, ...] = (
    # File Operations
    RulePreset("read-files", "Read files", "Read any file in the project", Category.FILE_OPERATIONS, ("Read",)),
    RulePreset("edit-files", "Edit files", "Edit existing files", Category.FILE_OPERATIONS, ("Edit",)),
    RulePreset("write-files", "Create files", "Create new files", Category.FILE_OPERATIONS, ("Write",)),
    # Git
    RulePreset(
        "git-read",
        "Git read ops",
        "git status, log, diff, branch",
        Category.GIT_COMMANDS,
        (
            "Bash(git status)",
            "Bash(git status:*)",
            "Bash(git log:*)",
            "Bash(git diff:*)",
            "Bash(git branch:*)",
            "Bash(git show:*)",
        ),
    ),
    RulePreset(
        "git-write",
        "Git write ops",
        "git add, commit, push",
        Category.GIT_COMMANDS,
        (
            "Bash(git add:*)",
            "Bash(git commit:*)",
            "Bash(git push:*)",
            "Bash(git checkout:*)",
            "Bash(git switch:*)",
            "Bash(git merge:*)",
            "Bash(git rebase:*)",
            "Bash(git stash:*)",
        ),
    ),
    # Build & Test
    RulePreset(
        "run-tests",
        "Run tests",
        "npm test, pytest, jest, etc.",
        Category.TESTING,
        (
            "Bash(npm test:*)",
            "Bash(npm run test:*)",
            "Bash(npx jest:*)",
            "Bash(pytest:*)",
            "Bash(cargo test:*)",
            "Bash(go test:*)",
        ),
    ),
    RulePreset(
        "build",
        "Build commands",
        "npm run build, tsc, next build",
        Category.BUILD_LINT,
        (
            "Bash(npm run build:*)",
            "Bash(npx tsc:*)",
            "Bash(tsc:*)",
            "Bash(npx next build:*)",
            "Bash(cargo build:*)",
            "Bash(go build:*)",
        ),
    ),
    RulePreset(
        "lint-format",
        "Lint & format",
        "eslint, prettier, lint commands",
        Category.BUILD_LINT,
        (
            "Bash(npm run lint:*)",
            "Bash(npx eslint:*)",
            "Bash(eslint:*)",
            "Bash(npx prettier:*)",
            "Bash(prettier:*)",
            "Bash(npm run format:*)",
        ),
    ),
    # Package Management
    RulePreset(
        "package-info",
        "Package info",
        "npm list, outdated, info",
        Category.PACKAGE_MANAGEMENT,
        (
            "Bash(npm list:*)",
            "Bash(npm outdated:*)",
            "Bash(npm info:*)",
            "Bash(npm ls:*)",
            "Bash(npm view:*)",
        ),
    ),
    RulePreset(
        "install-deps",
        "Install dependencies",
        "npm install, pip install",
        Category.PACKAGE_MANAGEMENT,
        (
            "Bash(npm install:*)",
            "Bash(npm ci:*)",
            "Bash(npm i:*)",
            "Bash(pip install:*)",
            "Bash(cargo add:*)",
            "Bash(go get:*)",
        ),
    ),
    # Other
    RulePreset("mcp-tools", "MCP tools", "Model Context Protocol tools", Category.OTHER, ("mcp__*",)),
    RulePreset("web-fetch", "Web fetches", "Fetch URLs and web search", Category.OTHER, ("WebFetch", "WebSearch")),
    # Skills
    RulePreset(
        "flywheel",
        "Flywheel commands",
        "/flywheel-define, plan, execute, done",
        Category.EXTENSION_SKILLS,
        (
            "Skill(flywheel-define)",
            "Skill(flywheel-plan)",
            "Skill(flywheel-execute)",
            "Skill(flywheel-done)",
            "Skill(flywheel-new)",
        ),
    ),
)

# Built-in rules that ship without a preset (toggled individually)
_STANDALONE_BUILTINS: tuple[str, ...] = (
    "Bash(git push)",
    "Bash(git worktree:*)",
    "Bash(tmux:*)",
    "Bash(tmux list-sessions:*)",
    "Bash(tmux new-session:*)",
    "Bash(tmux attach:*)",
    "Bash(tmux kill-session:*)",
    "Bash(tmux send-keys:*)",
    "Bash(tmux has-session:*)",
)

BUILTIN_RULES: frozenset[str] = frozenset(
    [rule for preset in RULE_PRESETS for rule in preset.rules] + list(_STANDALONE_BUILTINS)
)


def get_preset(preset_id: str) -> RulePreset | None:
    for preset in RULE_PRESETS:
        if preset.id == preset_id:
            return preset
    return None


def all_builtin_rules() -> list[str]:
    """Built-in rule universe in declaration order (presets first)."""
    seen: dict[str, None] = {}
    for preset in RULE_PRESETS:
        for rule in preset.rules:
            seen.setdefault(rule, None)
    for rule in _STANDALONE_BUILTINS:
        seen.setdefault(rule, None)
    return list(seen)


def enabled_presets(rules: list[str] | tuple[str, ...]) -> list[str]:
    """Return ids of presets whose rules are ALL present in ``rules``.

    Example::

        enabled_presets(["Read", "Edit", "WebFetch"])  # ["read-files", "edit-files"]
    """
    present = set(rules)
    return [preset.id for preset in RULE_PRESETS if all(rule in present for rule in preset.rules)]


def rules_for_presets(preset_ids: list[str] | tuple[str, ...]) -> list[str]:
    """Deduplicated union of the rules of the given presets, in preset order.

    Unknown preset ids are ignored.
    """
    wanted = set(preset_ids)
    seen: dict[str, None] = {}
    for preset in RULE_PRESETS:
        if preset.id in wanted:
            for rule in preset.rules:
                seen.setdefault(rule, None)
    return list(seen)


__all__ = [
    "BUILTIN_RULES",
    "Category",
    "RULE_PRESETS",
    "RulePreset",
    "all_builtin_rules",
    "enabled_presets",
    "get_preset",
    "rules_for_presets",
]
