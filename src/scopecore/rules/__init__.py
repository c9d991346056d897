"""Rule model, classification, and override resolution.

Defines:
- Rule / parse_rule / format_rule: canonical ``tool`` / ``tool(pattern)`` text
- Category / RULE_PRESETS / BUILTIN_RULES: display categories and the built-in universe
- classify / is_custom_rule: ordered predicate chain
- compute_overrides: same-tool, different-pattern detection between scopes
"""

from .categories import (
    BUILTIN_RULES,
    RULE_PRESETS,
    Category,
    RulePreset,
    all_builtin_rules,
    enabled_presets,
    get_preset,
    rules_for_presets,
)
from .classifier import (
    DEFAULT_CLASSIFICATION_CHAIN,
    ClassificationRule,
    classify,
    group_by_category,
    insert_classification,
    is_custom_rule,
)
from .model import Rule, build_rule, format_rule, parse_rule
from .overrides import RuleWithSource, compute_overrides, compute_rule_display_list

__all__ = [
    "BUILTIN_RULES",
    "Category",
    "ClassificationRule",
    "DEFAULT_CLASSIFICATION_CHAIN",
    "RULE_PRESETS",
    "Rule",
    "RulePreset",
    "RuleWithSource",
    "all_builtin_rules",
    "build_rule",
    "classify",
    "compute_overrides",
    "compute_rule_display_list",
    "enabled_presets",
    "format_rule",
    "get_preset",
    "group_by_category",
    "insert_classification",
    "is_custom_rule",
    "parse_rule",
    "rules_for_presets",
]
