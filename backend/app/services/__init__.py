"""
サービス層のモジュール
"""
from .relations import Relation, RelationGraph, RelationKind, belongs_to, has_many, has_one
from .registry import ModelDefinition, ModelRegistry
from .filters import Filter, parse_filter
from .repository import ModelRepository
from .validation import (
    ValidationErrors, Validator,
    PresenceValidator, ReferenceValidator, RuleValidator
)
from .base_model import BaseModelService, ServiceContext, PendingSave, remove_empty_relation_properties
from .site_test_child import BaseSiteTestModelService, site_test_child_definition
from .site_test import SiteTestService

__all__ = [
    # リレーション関連
    "Relation", "RelationGraph", "RelationKind", "belongs_to", "has_many", "has_one",

    # モデル登録関連
    "ModelDefinition", "ModelRegistry",

    # 永続化・検証
    "Filter", "parse_filter", "ModelRepository",
    "ValidationErrors", "Validator",
    "PresenceValidator", "ReferenceValidator", "RuleValidator",

    # モデルサービス
    "BaseModelService", "ServiceContext", "PendingSave", "remove_empty_relation_properties",
    "BaseSiteTestModelService", "site_test_child_definition",
    "SiteTestService",
]
