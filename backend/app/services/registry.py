"""
モデル定義とリモートメソッドの公開制御
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Type

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel

from app.exceptions import ConfigurationException
from app.services.relations import Relation, RelationGraph
from app.services.validation import Validator

# 同じリモートメソッドを指す別名
METHOD_ALIASES: Dict[str, str] = {
    "destroyById": "deleteById",
    "removeById": "deleteById",
    "updateOrCreate": "upsert",
    "patchOrCreate": "upsert",
    "update": "updateAll",
    "patchAttributes": "updateAttributes",
    "prototype.updateAttributes": "updateAttributes",
    "prototype.patchAttributes": "updateAttributes",
}

RELATED_METHOD_ALIASES: Dict[str, str] = {
    "deleteById": "destroyById",
    "removeById": "destroyById",
}


def related_method_name(method: str, relation_id: str) -> str:
    """関連リソースのメソッド名 ``__<method>__<relationId>`` を返す"""
    return f"__{RELATED_METHOD_ALIASES.get(method, method)}__{relation_id}"


def normalize_method_name(name: str) -> str:
    if name.startswith("__"):
        method, _, relation_id = name[2:].partition("__")
        return related_method_name(method, relation_id)
    return METHOD_ALIASES.get(name, name)


@dataclass
class ModelDefinition:
    """REST公開されるモデルの宣言"""
    name: str
    plural: str
    table: Type[SQLModel]
    schema: Type[BaseModel]
    relations: List[Relation] = field(default_factory=list)
    validators: List[Validator] = field(default_factory=list)
    service_class: Optional[type] = None
    public: bool = True
    disabled_methods: Set[str] = field(default_factory=set)

    @property
    def properties(self) -> Set[str]:
        """テーブル列に対応するプロパティ名 (camelCase)"""
        return {to_camel(name) for name in self.table.model_fields}

    def disable_remote_methods(self, methods: Iterable[str]) -> "ModelDefinition":
        for method in methods:
            self.disabled_methods.add(normalize_method_name(method))
        return self

    def disable_related_remote_methods(self, methods: Dict[str, Iterable[str]]) -> "ModelDefinition":
        for relation_id, names in methods.items():
            for method in names:
                self.disabled_methods.add(related_method_name(method, relation_id))
        return self

    def is_remote_method_enabled(self, name: str) -> bool:
        if not self.public:
            return False
        return normalize_method_name(name) not in self.disabled_methods


class ModelRegistry:
    """モデル定義の登録先。freeze() でリレーショングラフを構築する"""

    def __init__(self):
        self._definitions: Dict[str, ModelDefinition] = {}
        self._graph: Optional[RelationGraph] = None

    def register(self, definition: ModelDefinition) -> ModelDefinition:
        if self._graph is not None:
            raise ConfigurationException(
                f'Cannot register model "{definition.name}" after the registry is frozen'
            )
        if definition.name in self._definitions:
            raise ConfigurationException(f'Model "{definition.name}" is already registered')
        if definition.service_class is None:
            from app.services.base_model import BaseModelService
            definition.service_class = BaseModelService
        self._definitions[definition.name] = definition
        return definition

    def get(self, name: str) -> ModelDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise ConfigurationException(f'Unknown model "{name}"')

    @property
    def definitions(self) -> List[ModelDefinition]:
        return list(self._definitions.values())

    def freeze(self) -> RelationGraph:
        if self._graph is None:
            self._graph = RelationGraph(
                {name: d.relations for name, d in self._definitions.items()},
                {name: d.properties for name, d in self._definitions.items()},
            )
        return self._graph

    @property
    def graph(self) -> RelationGraph:
        if self._graph is None:
            raise ConfigurationException("Model registry is not frozen")
        return self._graph
