"""
1テーブル分の永続化操作

プロパティ名はAPIと同じcamelCaseで受け取り、列名 (snake_case) に変換する。
書き込みは操作ごとにコミットする。
"""
from typing import Any, Dict, List, Optional, Type

from pydantic.alias_generators import to_snake
from sqlalchemy import delete, func
from sqlmodel import Session, SQLModel, select

from app.exceptions import DatabaseException, RequestException, convert_exception
from app.services.filters import Filter, build_conditions


class ModelRepository:
    def __init__(self, session: Session, table: Type[SQLModel]):
        self.session = session
        self.table = table

    def column(self, prop: str):
        """プロパティ名に対応する列を返す"""
        name = to_snake(prop)
        if name not in self.table.model_fields:
            raise RequestException(
                f'Unknown property "{prop}" for {self.table.__name__}'
            )
        return getattr(self.table, name)

    def _conditions(self, where: Optional[Dict[str, Any]]) -> List[Any]:
        return build_conditions(where or {}, self.column)

    def _order_by(self, order: List[str]) -> List[Any]:
        clauses = []
        for item in order:
            prop, _, direction = item.partition(" ")
            column = self.column(prop)
            clauses.append(column.desc() if direction.strip().upper() == "DESC" else column.asc())
        return clauses

    @convert_exception(DatabaseException)
    def find(self, filter: Filter) -> List[SQLModel]:
        stmt = select(self.table).where(*self._conditions(filter.where))
        order = self._order_by(filter.order)
        if order:
            stmt = stmt.order_by(*order)
        if filter.skip:
            stmt = stmt.offset(filter.skip)
        if filter.limit is not None:
            stmt = stmt.limit(filter.limit)
        return list(self.session.exec(stmt).all())

    def find_one(self, filter: Filter) -> Optional[SQLModel]:
        rows = self.find(Filter(
            where=filter.where, order=filter.order, skip=filter.skip, limit=1
        ))
        return rows[0] if rows else None

    @convert_exception(DatabaseException)
    def find_by_id(self, instance_id: Any) -> Optional[SQLModel]:
        if instance_id is None:
            return None
        return self.session.get(self.table, str(instance_id))

    @convert_exception(DatabaseException)
    def find_ids(self, where: Optional[Dict[str, Any]] = None) -> List[str]:
        stmt = select(self.table.id).where(*self._conditions(where))
        return list(self.session.exec(stmt).all())

    @convert_exception(DatabaseException)
    def count(self, where: Optional[Dict[str, Any]] = None) -> int:
        stmt = select(func.count()).select_from(self.table).where(*self._conditions(where))
        return self.session.execute(stmt).scalar_one()

    def exists(self, instance_id: Any) -> bool:
        return self.find_by_id(instance_id) is not None

    @convert_exception(DatabaseException)
    def insert(self, instance: SQLModel) -> SQLModel:
        self.session.add(instance)
        self.session.commit()
        self.session.refresh(instance)
        return instance

    @convert_exception(DatabaseException)
    def save(self, instance: SQLModel) -> SQLModel:
        self.session.add(instance)
        self.session.commit()
        self.session.refresh(instance)
        return instance

    @convert_exception(DatabaseException)
    def destroy_all(self, where: Optional[Dict[str, Any]] = None) -> int:
        stmt = delete(self.table).where(*self._conditions(where))
        result = self.session.execute(stmt)
        self.session.commit()
        # 削除済みのインスタンスがセッションに残らないようにする
        self.session.expire_all()
        return result.rowcount

    def destroy_by_id(self, instance_id: Any) -> int:
        return self.destroy_all({"id": instance_id})
