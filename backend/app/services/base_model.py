"""
リレーションを意識した汎用モデルサービス

- find 系の読み取りでは hasMany / hasOne リレーションを常に include する
- 書き込みは prepare (parse → validate) → before_save → persist → after_save → notify の順に進む
- 削除後は2段階のカスケード削除を行う (子リレーション → belongsTo で参照する他モデル)
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel, to_snake
from sqlmodel import Session, SQLModel

from app.exceptions import (
    ModelNotFoundException,
    RelationException,
    RequestException,
)
from app.logging_config import logger
from app.services.filters import Filter, parse_filter
from app.services.registry import ModelDefinition, ModelRegistry
from app.services.relations import Relation, RelationGraph, RelationKind
from app.services.repository import ModelRepository
from app.services.validation import ValidationErrors


def is_empty_relation_value(value: Any) -> bool:
    return value is None or (isinstance(value, (dict, list)) and len(value) == 0)


def remove_empty_relation_properties(
    result: Union[None, Dict[str, Any], List[Dict[str, Any]]],
    relation_ids: Iterable[str]
):
    """
    レスポンスから空のリレーション ({}、[]、None) を取り除く

    Args:
        result: 単一オブジェクトまたはオブジェクトの配列
        relation_ids: 対象のリレーションID

    Returns:
        同じ形の結果
    """
    if result is None:
        return None
    relation_ids = list(relation_ids)
    items = result if isinstance(result, list) else [result]
    for item in items:
        for relation_id in relation_ids:
            if relation_id in item and is_empty_relation_value(item[relation_id]):
                del item[relation_id]
    return result


class ServiceContext:
    """1リクエスト分のセッションとモデルサービスの集合"""

    def __init__(self, registry: ModelRegistry, session: Session):
        self.registry = registry
        self.session = session
        self._services: Dict[str, "BaseModelService"] = {}

    @property
    def graph(self) -> RelationGraph:
        return self.registry.graph

    def service(self, model_name: str) -> "BaseModelService":
        if model_name not in self._services:
            definition = self.registry.get(model_name)
            self._services[model_name] = definition.service_class(self, definition)
        return self._services[model_name]

    def repository(self, model_name: str) -> ModelRepository:
        return self.service(model_name).repository


@dataclass
class PendingSave:
    """保存パイプラインを流れる1件分の状態"""
    instance: SQLModel
    # 書き込む列の値 (snake_case)
    values: Dict[str, Any]
    # 検証対象のレコード (camelCase、既存値 + 入力値 + リレーション)
    record: Dict[str, Any]
    # 入力に含まれていたリレーションのデータ
    relations: Dict[str, Any]
    is_new: bool
    hooks_done: Set[str] = field(default_factory=set)

    def assign(self, name: str, value: Any) -> None:
        self.values[name] = value
        if self.is_new:
            setattr(self.instance, name, value)


class BaseModelService:
    def __init__(self, context: ServiceContext, definition: ModelDefinition):
        self.context = context
        self.definition = definition
        self.model_name = definition.name
        self.repository = ModelRepository(context.session, definition.table)

    # リレーション

    def get_relation_model_ids(self, kinds: Optional[Iterable[RelationKind]] = None) -> List[str]:
        """指定種別のリレーションID (既定は hasMany / hasOne)"""
        return self.context.graph.relation_ids(self.model_name, kinds)

    def get_relation(self, relation_id: str) -> Relation:
        return self.context.graph.relation(self.model_name, relation_id)

    def get_related_service(self, relation_id: str) -> "BaseModelService":
        return self.context.service(self.get_relation(relation_id).model)

    def get_models_belongs_to_this_model(self) -> List[Tuple["BaseModelService", Relation]]:
        """このモデルを belongsTo で参照している他モデルのサービスとリレーション"""
        return [
            (self.context.service(model_name), relation)
            for model_name, relation in self.context.graph.belongs_to(self.model_name)
        ]

    def get_context_object(
        self,
        instance: SQLModel,
        relations: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """インスタンスのレコードに、入力されたリレーションのデータを添えて返す"""
        obj = self.to_record(instance)
        for relation_id in self.get_relation_model_ids():
            if relation_id not in obj and relations and relations.get(relation_id) is not None:
                obj[relation_id] = relations[relation_id]
        return obj

    # シリアライズ

    def to_record(self, instance: SQLModel) -> Dict[str, Any]:
        return {to_camel(name): value for name, value in instance.model_dump().items()}

    def read_filter(self, filter: Any = None) -> Filter:
        """find 系で使うフィルタ。hasMany / hasOne を include に加える"""
        return parse_filter(filter).merge_include(self.get_relation_model_ids())

    def serialize(self, instance: SQLModel, filter: Optional[Filter] = None) -> Dict[str, Any]:
        record = self.to_record(instance)
        if filter is None:
            return record
        for relation_id, scope in filter.include.items():
            record[relation_id] = self._load_relation(instance, self.get_relation(relation_id), scope)
        if filter.fields:
            record = self._apply_fields(record, filter.fields, filter.include.keys())
        return record

    def _load_relation(self, instance: SQLModel, relation: Relation, scope: Optional[Filter]):
        target = self.context.service(relation.model)
        scope = target.read_filter(scope)
        if relation.kind == RelationKind.BELONGS_TO:
            row = target.repository.find_by_id(getattr(instance, to_snake(relation.foreign_key)))
            return target.serialize(row, scope) if row is not None else None
        rows = target.repository.find(scope.with_where({relation.foreign_key: instance.id}))
        items = [target.serialize(row, scope) for row in rows]
        if relation.kind == RelationKind.HAS_ONE:
            return items[0] if items else None
        return items

    @staticmethod
    def _apply_fields(record: Dict[str, Any], fields: Dict[str, bool], relation_ids) -> Dict[str, Any]:
        selected = {name for name, flag in fields.items() if flag}
        if selected:
            return {k: v for k, v in record.items() if k in selected or k in relation_ids}
        return {k: v for k, v in record.items() if fields.get(k, True)}

    # 読み取り

    async def find(self, filter: Any = None) -> List[Dict[str, Any]]:
        filter = self.read_filter(filter)
        return [self.serialize(row, filter) for row in self.repository.find(filter)]

    async def find_one(self, filter: Any = None) -> Optional[Dict[str, Any]]:
        filter = self.read_filter(filter)
        row = self.repository.find_one(filter)
        return self.serialize(row, filter) if row is not None else None

    async def find_by_id(self, instance_id: Any, filter: Any = None) -> Optional[Dict[str, Any]]:
        row = self.repository.find_by_id(instance_id)
        if row is None:
            return None
        return self.serialize(row, self.read_filter(filter))

    async def count(self, where: Optional[Dict[str, Any]] = None) -> int:
        return self.repository.count(where)

    async def exists(self, instance_id: Any) -> bool:
        return self.repository.exists(instance_id)

    def get_instance(self, instance_id: Any) -> SQLModel:
        instance = self.repository.find_by_id(instance_id)
        if instance is None:
            raise ModelNotFoundException(self.model_name, instance_id)
        return instance

    # 保存パイプライン

    def _parse(self, payload: Any) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        入力を型変換し、自モデルのプロパティとリレーションのデータに分ける

        Returns:
            (camelCaseのプロパティ, リレーションID -> データ)

        Raises:
            RequestException: 入力がオブジェクトでない場合
            ValidationException: 型変換やリレーションの形に誤りがある場合
        """
        if not isinstance(payload, dict):
            raise RequestException(f"{self.model_name} data must be an object")

        errors = ValidationErrors()
        relations: Dict[str, Any] = {}
        for relation in self.context.graph.relations_of(self.model_name):
            if relation.relation_id not in payload or payload[relation.relation_id] is None:
                continue
            value = payload[relation.relation_id]
            allowed = (dict,) if relation.kind == RelationKind.HAS_ONE else (dict, list)
            if not isinstance(value, allowed):
                errors.add(relation.relation_id, f"Invalid {relation.relation_id}", "invalid")
            elif not is_empty_relation_value(value):
                # 空の {} / [] はリレーションのデータとして扱わない
                relations[relation.relation_id] = value

        native = {k: v for k, v in payload.items() if k not in self.get_relation_model_ids()}
        try:
            parsed = self.definition.schema.model_validate(native)
        except PydanticValidationError as e:
            for error in e.errors():
                field_name = ".".join(str(part) for part in error["loc"]) or "data"
                errors.add(field_name, error["msg"], error["type"])
            parsed = None

        if errors:
            logger.warning(f"Invalid {self.model_name} payload: {errors.codes}")
            errors.raise_if_any(self.model_name)
        return parsed.model_dump(by_alias=True, exclude_unset=True), relations

    def _column_values(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        columns = self.definition.table.model_fields
        return {to_snake(k): v for k, v in properties.items() if to_snake(k) in columns}

    def _validate(self, pending: PendingSave) -> None:
        errors = ValidationErrors()
        for validator in self.definition.validators:
            validator.validate(self, pending.record, errors)
        if errors:
            logger.warning(f"{self.model_name} validation failed: {errors.codes}")
            errors.raise_if_any(self.model_name)

    def prepare_create(self, payload: Any) -> PendingSave:
        properties, relations = self._parse(payload)
        values = self._column_values(properties)
        if values.get("id") is None:
            values.pop("id", None)
        instance = self.definition.table(**values)
        record = {**self.to_record(instance), **properties, **relations}
        pending = PendingSave(instance, values, record, relations, is_new=True)
        self._validate(pending)
        return pending

    def prepare_update(self, instance: SQLModel, payload: Any) -> PendingSave:
        properties, relations = self._parse(payload)
        if "id" in properties and properties["id"] != instance.id:
            raise RequestException(
                f"id property (id) cannot be updated from {instance.id} to {properties['id']}"
            )
        values = self._column_values(properties)
        values.pop("id", None)
        record = {**self.to_record(instance), **properties, **relations}
        pending = PendingSave(instance, values, record, relations, is_new=False)
        self._validate(pending)
        return pending

    async def before_save(self, pending: PendingSave) -> None:
        """永続化の直前に呼ばれる"""

    async def after_save(self, pending: PendingSave) -> None:
        """永続化の直後に呼ばれる"""

    def _persist(self, pending: PendingSave) -> SQLModel:
        if pending.is_new:
            return self.repository.insert(pending.instance)
        for name, value in pending.values.items():
            setattr(pending.instance, name, value)
        return self.repository.save(pending.instance)

    def _notify(self, pending: PendingSave) -> None:
        action = "created" if pending.is_new else "updated"
        logger.info(f"{self.model_name} {action}: {pending.instance.id}")

    async def commit(self, pending: PendingSave) -> SQLModel:
        await self.before_save(pending)
        pending.instance = self._persist(pending)
        await self.after_save(pending)
        self._notify(pending)
        return pending.instance

    # 書き込み

    async def create(self, data: Any) -> Union[SQLModel, List[SQLModel]]:
        """1件または配列でインスタンスを作成する"""
        if isinstance(data, list):
            return await self.create_many(data)
        return await self.commit(self.prepare_create(data))

    async def create_many(self, items: List[Any]) -> List[SQLModel]:
        return [await self.create(item) for item in items]

    async def update_attributes(self, instance_id: Any, data: Any) -> SQLModel:
        instance = self.get_instance(instance_id)
        return await self.commit(self.prepare_update(instance, data))

    async def upsert(self, data: Any) -> SQLModel:
        if isinstance(data, dict) and data.get("id") is not None:
            if self.repository.exists(data["id"]):
                return await self.update_attributes(data["id"], data)
        return await self.create(data)

    async def update_all(self, where: Optional[Dict[str, Any]], data: Any) -> int:
        ids = self.repository.find_ids(where)
        for instance_id in ids:
            await self.update_attributes(instance_id, data)
        return len(ids)

    # 削除

    async def destroy_all(self, where: Optional[Dict[str, Any]] = None) -> int:
        """条件に一致するインスタンスを削除し、それぞれのカスケード削除を行う"""
        ids = self.repository.find_ids(where)
        if not ids:
            return 0
        count = self.repository.destroy_all({"id": {"inq": ids}})
        logger.info(f"{self.model_name} deleted: {count} instance(s)")
        await asyncio.gather(*(self.after_delete(instance_id) for instance_id in ids))
        return count

    async def destroy_by_id(self, instance_id: Any) -> int:
        return await self.destroy_all({"id": instance_id})

    async def delete_by_id(self, instance_id: Any) -> int:
        """REST用の削除。対象が存在しない場合は404"""
        self.get_instance(instance_id)
        return await self.destroy_by_id(instance_id)

    async def after_delete(self, instance_id: Any) -> None:
        """
        削除されたインスタンスに依存するレコードを削除する

        1. hasMany / hasOne の関連レコード (並行)
        2. 1 がすべて成功した後、belongsTo でこのモデルを参照する他モデルのレコード (並行)
        """
        try:
            children = self.context.graph.relations_of(self.model_name)
            logger.debug(f"Cascading {self.model_name} {instance_id} to {[r.relation_id for r in children]}")
            await asyncio.gather(*(
                self.context.service(relation.model).destroy_all({relation.foreign_key: instance_id})
                for relation in children
            ))

            dependants = self.get_models_belongs_to_this_model()
            logger.debug(
                f"Cascading {self.model_name} {instance_id} to dependants "
                f"{[service.model_name for service, _ in dependants]}"
            )
            await asyncio.gather(*(
                service.destroy_all({relation.foreign_key: instance_id})
                for service, relation in dependants
            ))
        except Exception as e:
            logger.error(f"Cascade delete failed for {self.model_name} {instance_id}: {e}", exc_info=True)
            raise

    # 関連リソース

    def related_scope(self, instance_id: Any, relation_id: str) -> Tuple[Relation, "BaseModelService", Dict[str, Any]]:
        """親インスタンスの存在を確認し、関連モデルのサービスと絞り込み条件を返す"""
        instance = self.get_instance(instance_id)
        relation = self.get_relation(relation_id)
        target = self.context.service(relation.model)
        if relation.kind == RelationKind.BELONGS_TO:
            where = {"id": getattr(instance, to_snake(relation.foreign_key))}
        else:
            where = {relation.foreign_key: instance.id}
        return relation, target, where

    def _related_instance(self, target: "BaseModelService", where: Dict[str, Any], fk: Any = None) -> SQLModel:
        scope = dict(where)
        if fk is not None:
            scope = {"and": [where, {"id": fk}]}
        row = target.repository.find_one(Filter(where=scope))
        if row is None:
            raise ModelNotFoundException(target.model_name, fk)
        return row

    async def get_related(self, instance_id: Any, relation_id: str, filter: Any = None):
        relation, target, where = self.related_scope(instance_id, relation_id)
        rows = await target.find(target.read_filter(filter).with_where(where))
        if relation.kind == RelationKind.HAS_MANY:
            return rows
        return rows[0] if rows else None

    async def find_related_by_id(self, instance_id: Any, relation_id: str, fk: Any) -> Dict[str, Any]:
        _, target, where = self.related_scope(instance_id, relation_id)
        return target.serialize(self._related_instance(target, where, fk), target.read_filter())

    async def count_related(self, instance_id: Any, relation_id: str, where: Optional[Dict[str, Any]] = None) -> int:
        _, target, scope = self.related_scope(instance_id, relation_id)
        if where:
            scope = {"and": [scope, where]}
        return await target.count(scope)

    async def create_related(self, instance_id: Any, relation_id: str, data: Any):
        relation, target, _ = self.related_scope(instance_id, relation_id)
        if not relation.is_child:
            raise RelationException(f'Cannot create through belongsTo relation "{relation_id}"')
        items = data if isinstance(data, list) else [data]
        for item in items:
            if isinstance(item, dict):
                item[relation.foreign_key] = instance_id
        return await target.create(data)

    async def update_related(self, instance_id: Any, relation_id: str, data: Any, fk: Any = None) -> SQLModel:
        relation, target, where = self.related_scope(instance_id, relation_id)
        row = self._related_instance(target, where, fk)
        if isinstance(data, dict) and relation.is_child:
            data[relation.foreign_key] = instance_id
        return await target.update_attributes(row.id, data)

    async def destroy_related(self, instance_id: Any, relation_id: str, fk: Any = None) -> int:
        relation, target, where = self.related_scope(instance_id, relation_id)
        if not relation.is_child:
            raise RelationException(f'Cannot delete through belongsTo relation "{relation_id}"')
        if fk is None:
            return await target.destroy_all(where)
        row = self._related_instance(target, where, fk)
        return await target.destroy_by_id(row.id)
