from .config import AreaDefinition, LogLevel, ScopeCoreConfig, default_areas, load_config_from_env
from .scopes import Scope, ScopeKind, parse_scope
from .rules import Category, Rule, RuleWithSource, build_rule, classify, compute_overrides, format_rule, parse_rule
from .discovery import FilesystemProjectDiscovery, ProjectDiscovery, ProjectInfo, StaticProjectDiscovery
from .adapter import ScopeStoreAdapter
from .cascade import CascadeEngine, CascadeResult, StoreFailure
from .drift import DriftDetector, ReconcileResult
from .service import CreatedRule, PermissionService, ProjectRules, RuleView, UnifiedState
from .request_log import PermissionLogEntry, PermissionRequestLog, suggest_rule, suggest_scope
from .exceptions import (
    ScopeCoreError,
    ConfigurationError,
    InvalidRuleError,
    InvalidRequestError,
    UnknownScopeError,
    StoreUnavailableError,
    DuplicateRuleError,
    PartialCascadeFailure,
    get_http_status_code,
)
from .logging import (
    safe_preview,
    ScopeCoreFormatter,
    ScopeLoggerAdapter,
    setup_logging,
    get_scope_logger,
)

__all__ = [
    'AreaDefinition',
    'LogLevel',
    'ScopeCoreConfig',
    'default_areas',
    'load_config_from_env',
    'Scope',
    'ScopeKind',
    'parse_scope',
    'Category',
    'Rule',
    'RuleWithSource',
    'build_rule',
    'classify',
    'compute_overrides',
    'format_rule',
    'parse_rule',
    'FilesystemProjectDiscovery',
    'ProjectDiscovery',
    'ProjectInfo',
    'StaticProjectDiscovery',
    'ScopeStoreAdapter',
    'CascadeEngine',
    'CascadeResult',
    'StoreFailure',
    'DriftDetector',
    'ReconcileResult',
    'CreatedRule',
    'PermissionService',
    'ProjectRules',
    'RuleView',
    'UnifiedState',
    'PermissionLogEntry',
    'PermissionRequestLog',
    'suggest_rule',
    'suggest_scope',
    'ScopeCoreError',
    'ConfigurationError',
    'InvalidRuleError',
    'InvalidRequestError',
    'UnknownScopeError',
    'StoreUnavailableError',
    'DuplicateRuleError',
    'PartialCascadeFailure',
    'get_http_status_code',
    'safe_preview',
    'ScopeCoreFormatter',
    'ScopeLoggerAdapter',
    'setup_logging',
    'get_scope_logger',
]
