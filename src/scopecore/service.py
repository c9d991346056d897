"""Aggregate query service and the operations exposed to request handlers.

``PermissionService`` composes the store adapter, cascade engine, drift
detector and classifier:

- ``get_unified_state()``: full read across global / areas / projects
- ``toggle_rule()``: cascade a toggle
- ``create_custom_rule()`` / ``update_rule()`` / ``delete_rule()``
- ``set_preset_enabled()``: toggle every rule of a built-in preset
- ``reconcile()``: repair global -> area drift

Every call reads the stores and queries discovery afresh; nothing is cached
between calls.
"""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, Field

from .adapter import ScopeStoreAdapter
from .cascade import CascadeEngine, CascadeResult
from .config import ScopeCoreConfig
from .discovery import FilesystemProjectDiscovery, ProjectDiscovery
from .drift import DriftDetector, ReconcileResult, missing_rules
from .exceptions import DuplicateRuleError, InvalidRuleError
from .logging import get_scope_logger, safe_preview
from .rules.categories import Category, all_builtin_rules, enabled_presets, get_preset
from .rules.classifier import classify
from .rules.model import build_rule
from .rules.overrides import RuleWithSource, compute_overrides, compute_rule_display_list
from .scopes import Scope, ScopeKind
from .stores import CategoryMappingStore, SettingsStore, create_stores

UNSEEN_RANK = 3


class RuleView(BaseModel):
    """One rule as shown in a scope's list."""

    raw: str
    tool: str
    pattern: Optional[str] = None
    source: ScopeKind
    category: str
    is_override: bool = False
    is_custom: bool = False


class ProjectRules(BaseModel):
    """A discovered project and its stored rules."""

    project_path: str
    project_name: str
    area: str
    enabled_rules: list[str] = Field(default_factory=list)
    display_rules: list[RuleView] = Field(default_factory=list)


class UnifiedState(BaseModel):
    """Everything a permissions page needs in one read."""

    all_known_rules: list[str] = Field(default_factory=list)
    global_rules: list[str] = Field(default_factory=list)
    area_rules: dict[str, list[str]] = Field(default_factory=dict)
    projects: list[ProjectRules] = Field(default_factory=list)
    drift_by_area: dict[str, list[str]] = Field(default_factory=dict)
    global_display: list[RuleView] = Field(default_factory=list)
    area_display: dict[str, list[RuleView]] = Field(default_factory=dict)
    custom_categories: dict[str, dict[str, str]] = Field(default_factory=dict)

    def project(self, path: str) -> ProjectRules | None:
        for project in self.projects:
            if project.project_path == path:
                return project
        return None

    def tightest_rank(self, rule: str) -> int:
        """0 if enabled at global, 1 at some area, 2 at some project, 3 nowhere."""
        if rule in self.global_rules:
            return ScopeKind.GLOBAL.rank
        if any(rule in rules for rules in self.area_rules.values()):
            return ScopeKind.AREA.rank
        if any(rule in p.enabled_rules for p in self.projects):
            return ScopeKind.PROJECT.rank
        return UNSEEN_RANK

    def category_for(self, rule: str) -> str:
        """Human-assigned category at the narrowest scope enabling ``rule``, else its classification."""
        for project in self.projects:
            if rule in project.enabled_rules:
                label = self.custom_categories.get(Scope.project(project.project_path).scope_id, {}).get(rule)
                if label:
                    return label
        for area, rules in self.area_rules.items():
            if rule in rules:
                label = self.custom_categories.get(Scope.area(area).scope_id, {}).get(rule)
                if label:
                    return label
        label = self.custom_categories.get(Scope.global_().scope_id, {}).get(rule)
        if label:
            return label
        return classify(rule).value

    def grouped_rules(self) -> dict[str, list[str]]:
        """``all_known_rules`` grouped by category label, built-in categories first."""
        groups: dict[str, list[str]] = {category.value: [] for category in Category.ordered()}
        for rule in self.all_known_rules:
            groups.setdefault(self.category_for(rule), []).append(rule)
        return groups


class CreatedRule(BaseModel):
    """Result of creating (or editing) a rule."""

    rule: str
    scope: str
    category: str
    cascade: CascadeResult


class PermissionService:
    """Entry point for request handlers.

    Args:
        settings_store: Per-scope settings documents.
        category_store: Custom category labels.
        discovery: Project discovery, queried fresh on every call.
        areas: Ordered area names.
        cascade_workers: Threads for cascade fan-out.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        category_store: CategoryMappingStore,
        discovery: ProjectDiscovery,
        areas: Sequence[str],
        *,
        cascade_workers: int = 1,
    ) -> None:
        self._areas = tuple(areas)
        self._categories = category_store
        self._discovery = discovery
        self.adapter = ScopeStoreAdapter(settings_store, known_areas=self._areas)
        self.cascade = CascadeEngine(self.adapter, discovery, self._areas, workers=cascade_workers)
        self.drift = DriftDetector(self.adapter, self._areas, discovery)

    @classmethod
    def from_config(cls, config: ScopeCoreConfig) -> "PermissionService":
        settings_store, category_store = create_stores(config)
        return cls(
            settings_store,
            category_store,
            FilesystemProjectDiscovery.from_config(config),
            config.area_names,
            cascade_workers=config.cascade_workers,
        )

    @property
    def areas(self) -> tuple[str, ...]:
        return self._areas

    # ── Reads ───────────────────────────────────────────

    def _views(self, entries: list[RuleWithSource], scope: Scope, mappings: dict[str, dict[str, str]]) -> list[RuleView]:
        labels = mappings.get(scope.scope_id, {})
        return [
            RuleView(
                raw=entry.raw,
                tool=entry.rule.tool,
                pattern=entry.rule.pattern,
                source=entry.source,
                category=labels.get(entry.raw) or classify(entry.raw).value,
                is_override=entry.is_override,
                is_custom=entry.is_custom,
            )
            for entry in entries
        ]

    def get_unified_state(self) -> UnifiedState:
        """Read every scope and build the unified view. No mutation.

        Raises:
            StoreUnavailableError: any scope document could not be read.
        """
        mappings = self._categories.all()
        global_scope = Scope.global_()
        global_rules = self.adapter.read_rules(global_scope)

        area_rules: dict[str, list[str]] = {}
        area_display: dict[str, list[RuleView]] = {}
        projects: list[ProjectRules] = []
        seen: set[str] = set()

        for area in self._areas:
            area_scope = Scope.area(area)
            rules = self.adapter.read_rules(area_scope)
            area_rules[area] = rules
            area_display[area] = self._views(
                compute_overrides(global_rules, rules, source=ScopeKind.AREA), area_scope, mappings
            )

            inherited = global_rules + [r for r in rules if r not in global_rules]
            for info in self._discovery.list_projects(area):
                # a path listed under two areas belongs to the first, as in the cascade
                if info.path in seen:
                    continue
                seen.add(info.path)
                project_rules = self.adapter.read_rules(info.scope)
                projects.append(
                    ProjectRules(
                        project_path=info.path,
                        project_name=info.name,
                        area=area,
                        enabled_rules=project_rules,
                        display_rules=self._views(
                            compute_overrides(inherited, project_rules, source=ScopeKind.PROJECT),
                            info.scope,
                            mappings,
                        ),
                    )
                )

        drift = {}
        for area, rules in area_rules.items():
            missing = missing_rules(global_rules, rules)
            if missing:
                drift[area] = missing

        state = UnifiedState(
            global_rules=global_rules,
            area_rules=area_rules,
            projects=projects,
            drift_by_area=drift,
            global_display=self._views(compute_rule_display_list(global_rules, []), global_scope, mappings),
            area_display=area_display,
            custom_categories=mappings,
        )

        known: set[str] = set(all_builtin_rules())
        known.update(global_rules)
        for rules in area_rules.values():
            known.update(rules)
        for project in projects:
            known.update(project.enabled_rules)
        state.all_known_rules = sorted(known, key=lambda rule: (state.tightest_rank(rule), rule))
        return state

    def read_rules(self, scope: Scope | str) -> list[str]:
        return self.adapter.read_rules(scope)

    def enabled_presets(self, scope: Scope | str) -> list[str]:
        """Ids of built-in presets fully enabled at ``scope``."""
        return enabled_presets(self.adapter.read_rules(scope))

    def compute_drift(self) -> dict[str, list[str]]:
        return self.drift.compute_drift()

    # ── Mutations ───────────────────────────────────────

    def toggle_rule(self, scope: Scope | str, rule: str, enabled: bool) -> CascadeResult:
        """Enable or disable ``rule`` at ``scope`` and every descendant."""
        if not rule:
            raise InvalidRuleError("rule must be a non-empty string")
        return self.cascade.toggle(scope, rule, enabled)

    def create_custom_rule(
        self,
        tool: str,
        pattern: Optional[str],
        category: str,
        scope: Scope | str,
    ) -> CreatedRule:
        """Create ``tool(pattern)`` at ``scope`` (cascading) and record its category.

        Raises:
            InvalidRuleError: empty tool or category.
            UnknownScopeError: malformed scope.
            DuplicateRuleError: identical rule text already exists at ``scope``.
        """
        rule = build_rule(tool, pattern).text
        if not category or not category.strip():
            raise InvalidRuleError("category must be a non-empty string")
        resolved = self.adapter.resolve(scope)

        if rule in self.adapter.read_rules(resolved):
            raise DuplicateRuleError("Rule already exists at this scope", rule=rule, scope=resolved.scope_id)

        result = self.cascade.toggle(resolved, rule, True)
        self._categories.set(resolved.scope_id, rule, category.strip())
        get_scope_logger(__name__, scope_id=resolved.scope_id, operation="create_rule").info(
            "Created rule %s in category %s", safe_preview(rule, limit=120), category.strip()
        )
        return CreatedRule(rule=rule, scope=resolved.scope_id, category=category.strip(), cascade=result)

    def delete_rule(self, rule: str, scope: Scope | str) -> CascadeResult:
        """Disable ``rule`` at ``scope`` (cascading) and drop its category mapping there."""
        resolved = self.adapter.resolve(scope)
        result = self.toggle_rule(resolved, rule, False)
        self._categories.delete(resolved.scope_id, rule)
        return result

    def update_rule(
        self,
        old_rule: str,
        scope: Scope | str,
        tool: str,
        pattern: Optional[str],
        category: str,
    ) -> CreatedRule:
        """Replace ``old_rule`` with ``tool(pattern)`` at ``scope``.

        Editing only the category keeps the rule in place.

        Raises:
            DuplicateRuleError: the new text differs from ``old_rule`` and already exists at ``scope``.
        """
        new_rule = build_rule(tool, pattern).text
        if not category or not category.strip():
            raise InvalidRuleError("category must be a non-empty string")
        resolved = self.adapter.resolve(scope)

        if new_rule == old_rule:
            result = self.cascade.toggle(resolved, new_rule, True)
            self._categories.set(resolved.scope_id, new_rule, category.strip())
            return CreatedRule(rule=new_rule, scope=resolved.scope_id, category=category.strip(), cascade=result)

        if new_rule in self.adapter.read_rules(resolved):
            raise DuplicateRuleError("Rule already exists at this scope", rule=new_rule, scope=resolved.scope_id)

        self.delete_rule(old_rule, resolved)
        return self.create_custom_rule(tool, pattern, category, resolved)

    def set_preset_enabled(self, scope: Scope | str, preset_id: str, enabled: bool) -> list[CascadeResult]:
        """Toggle every rule of a built-in preset at ``scope``, one cascade per rule.

        Raises:
            InvalidRuleError: unknown preset id.
        """
        preset = get_preset(preset_id)
        if preset is None:
            raise InvalidRuleError(f"Unknown preset: {preset_id!r}", preset=preset_id)
        resolved = self.adapter.resolve(scope)
        return [self.cascade.toggle(resolved, rule, enabled) for rule in preset.rules]

    def reconcile(self) -> ReconcileResult:
        return self.drift.reconcile()


__all__ = [
    "CreatedRule",
    "PermissionService",
    "ProjectRules",
    "RuleView",
    "UnifiedState",
]
