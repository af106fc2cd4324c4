"""サンプルデータの投入

Usage:
    python -m app.seed          # テーブルを作り直してサンプルデータを投入する

既存のデータはすべて削除される。
"""
import argparse
import asyncio
import json
import sys
from typing import Any, Dict

from sqlmodel import Session

from app.exceptions import SitecheckException
from app.logging_config import logger
from app.models import drop_db, engine, init_db
from app.models.definitions import build_registry
from app.services.base_model import ServiceContext

SAMPLE_DATA: Dict[str, Dict[str, Any]] = {
    "Site": {"url": "https://www.example.com", "name": "Example"},
    "FormType": {"casperjs": "casperjs/contact-form.js", "description": "Contact form"},
    "SiteForm": {"formPath": "/contact", "url": "https://www.example.com/contact"},
    "SiteTest": {"customData": {"test": "test string"}},
    "SiteTestForm": {"stdout": ["Form submitted"], "isFailed": False},
    "SiteTestPsi": {"data": {"score": 92}},
    "SiteTestPing": {"data": {"status": 200, "time": 0.21}},
}


def sample(model_name: str, **overrides: Any) -> Dict[str, Any]:
    return {**SAMPLE_DATA[model_name], **overrides}


async def automigrate(context: ServiceContext) -> Dict[str, int]:
    """
    テーブルを作り直し、依存関係の順にサンプルデータを作成する

    Returns:
        モデル名 -> 作成件数
    """
    drop_db()
    init_db()

    service = context.service
    site, form_type = await asyncio.gather(
        service("Site").create(sample("Site")),
        service("FormType").create(sample("FormType")),
    )
    site_test, site_form = await asyncio.gather(
        service("SiteTest").create(sample("SiteTest", siteId=site.id)),
        service("SiteForm").create(sample("SiteForm", siteId=site.id, formTypeId=form_type.id)),
    )
    await asyncio.gather(
        service("SiteTestForm").create([sample("SiteTestForm", siteTestId=site_test.id, siteFormId=site_form.id)]),
        service("SiteTestPsi").create(sample("SiteTestPsi", siteTestId=site_test.id)),
        service("SiteTestPing").create(sample("SiteTestPing", siteTestId=site_test.id)),
    )
    return {name: await service(name).count() for name in SAMPLE_DATA}


async def main() -> int:
    registry = build_registry()
    with Session(engine) as session:
        try:
            counts = await automigrate(ServiceContext(registry, session))
        except SitecheckException as e:
            logger.error(f"Seeding failed: {e}")
            print(json.dumps({"status": "failed", "error": e.to_dict()}, indent=2, default=str))
            return 1
    print(json.dumps({"status": "ok", "created": counts}, indent=2))
    print("Models created successfully!")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Recreate the Sitecheck tables with sample data")
    parser.parse_args()
    sys.exit(asyncio.run(main()))
