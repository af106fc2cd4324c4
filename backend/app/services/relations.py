"""
モデル間リレーションのグラフ

各モデルが宣言したリレーション (hasMany / hasOne / belongsTo) を起動時に一度だけ
検証し、隣接リストとして保持する。構築後は読み取り専用。
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from app.exceptions import RelationException


class RelationKind(str, Enum):
    HAS_MANY = "hasMany"
    HAS_ONE = "hasOne"
    BELONGS_TO = "belongsTo"


CHILD_KINDS: FrozenSet[RelationKind] = frozenset({RelationKind.HAS_MANY, RelationKind.HAS_ONE})


@dataclass(frozen=True)
class Relation:
    """リレーション定義

    hasMany / hasOne の外部キーは関連先モデルに、belongsTo の外部キーは自モデルにある。
    """
    relation_id: str
    kind: RelationKind
    model: str
    foreign_key: str

    @property
    def is_child(self) -> bool:
        return self.kind in CHILD_KINDS


def has_many(relation_id: str, model: str, foreign_key: str) -> Relation:
    return Relation(relation_id, RelationKind.HAS_MANY, model, foreign_key)


def has_one(relation_id: str, model: str, foreign_key: str) -> Relation:
    return Relation(relation_id, RelationKind.HAS_ONE, model, foreign_key)


def belongs_to(relation_id: str, model: str, foreign_key: str) -> Relation:
    return Relation(relation_id, RelationKind.BELONGS_TO, model, foreign_key)


class RelationGraph:
    """モデル名をキーとしたリレーションの隣接リスト"""

    def __init__(
        self,
        declarations: Dict[str, Iterable[Relation]],
        properties: Dict[str, Set[str]]
    ):
        """
        Args:
            declarations: モデル名 -> 宣言されたリレーション
            properties: モデル名 -> プロパティ名 (camelCase) の集合

        Raises:
            RelationException: 関連先モデルや外部キーが存在しない、またはIDが重複している場合
        """
        self._relations: Dict[str, Dict[str, Relation]] = {}
        self._dependants: Dict[str, List[Tuple[str, Relation]]] = {name: [] for name in declarations}

        for model_name, relations in declarations.items():
            by_id: Dict[str, Relation] = {}
            for relation in relations:
                if relation.relation_id in by_id:
                    raise RelationException(
                        f'Duplicate relation "{relation.relation_id}" on model "{model_name}"'
                    )
                if relation.model not in declarations:
                    raise RelationException(
                        f'Relation "{model_name}.{relation.relation_id}" targets unknown model "{relation.model}"'
                    )
                key_holder = relation.model if relation.is_child else model_name
                if relation.foreign_key not in properties.get(key_holder, set()):
                    raise RelationException(
                        f'Foreign key "{relation.foreign_key}" of relation '
                        f'"{model_name}.{relation.relation_id}" is not a property of "{key_holder}"'
                    )
                by_id[relation.relation_id] = relation
            self._relations[model_name] = by_id

        # belongsTo の逆引きインデックス
        for model_name, by_id in self._relations.items():
            for relation in by_id.values():
                if relation.kind == RelationKind.BELONGS_TO and relation.model != model_name:
                    self._dependants[relation.model].append((model_name, relation))

    @property
    def models(self) -> List[str]:
        return list(self._relations)

    def relations_of(
        self,
        model_name: str,
        kinds: Optional[Iterable[RelationKind]] = None
    ) -> List[Relation]:
        """指定した種別のリレーションを宣言順で返す (既定は hasMany / hasOne)"""
        wanted = set(kinds) if kinds is not None else CHILD_KINDS
        return [r for r in self._relations.get(model_name, {}).values() if r.kind in wanted]

    def relation_ids(
        self,
        model_name: str,
        kinds: Optional[Iterable[RelationKind]] = None
    ) -> List[str]:
        return [r.relation_id for r in self.relations_of(model_name, kinds)]

    def relation(self, model_name: str, relation_id: str) -> Relation:
        try:
            return self._relations[model_name][relation_id]
        except KeyError:
            raise RelationException(f'Unknown relation "{relation_id}" on model "{model_name}"')

    def belongs_to(self, model_name: str) -> List[Tuple[str, Relation]]:
        """model_name を belongsTo で参照している他モデルと、そのリレーションの一覧"""
        return list(self._dependants.get(model_name, []))
