"""
SiteTest の子レコード (フォーム・PSI・Ping) 共通のサービス

新しいレコードを保存する前に、同じ siteTestId を持つ既存レコードをすべて削除する。
親ごと・リレーションごとに有効なレコードの組は常に最新の1回分になる。
"""
from typing import Any, Iterable, List, Optional, Type

from pydantic import BaseModel
from sqlmodel import SQLModel

from app.logging_config import logger
from app.services.base_model import BaseModelService, PendingSave
from app.services.registry import ModelDefinition
from app.services.relations import Relation, belongs_to
from app.services.validation import PresenceValidator, ReferenceValidator, Validator

REPLACE_HOOK = "replace"


class BaseSiteTestModelService(BaseModelService):

    async def replace_existing(self, site_test_id: Optional[str]) -> int:
        """siteTestId に紐づく既存レコードを削除する"""
        if not site_test_id:
            return 0
        removed = await self.destroy_all({"siteTestId": site_test_id})
        if removed:
            logger.debug(f"Replaced {removed} {self.model_name} record(s) of SiteTest {site_test_id}")
        return removed

    async def before_save(self, pending: PendingSave) -> None:
        await super().before_save(pending)
        if pending.is_new and REPLACE_HOOK not in pending.hooks_done:
            await self.replace_existing(pending.values.get("site_test_id"))
            pending.hooks_done.add(REPLACE_HOOK)

    async def create_many(self, items: List[Any]) -> List[SQLModel]:
        """全件を検証してから、親ごとに1度だけ置き換えて一括で登録する"""
        pendings = [self.prepare_create(item) for item in items]

        site_test_ids = []
        for pending in pendings:
            site_test_id = pending.values.get("site_test_id")
            if site_test_id and site_test_id not in site_test_ids:
                site_test_ids.append(site_test_id)
        for site_test_id in site_test_ids:
            await self.replace_existing(site_test_id)

        results = []
        for pending in pendings:
            pending.hooks_done.add(REPLACE_HOOK)
            results.append(await self.commit(pending))
        return results


def site_test_child_definition(
    name: str,
    plural: str,
    table: Type[SQLModel],
    schema: Type[BaseModel],
    relations: Iterable[Relation] = (),
    validators: Iterable[Validator] = (),
    service_class: type = BaseSiteTestModelService
) -> ModelDefinition:
    """SiteTest の子モデルの定義を作る。belongsTo siteTest を持ち、REST には公開しない"""
    return ModelDefinition(
        name=name,
        plural=plural,
        table=table,
        schema=schema,
        relations=[belongs_to("siteTest", "SiteTest", "siteTestId"), *relations],
        validators=[
            PresenceValidator("siteTestId", "Should contains a siteTestId"),
            ReferenceValidator("siteTestId", "SiteTest", "Invalid siteTestId"),
            *validators,
        ],
        service_class=service_class,
        public=False,
    )
