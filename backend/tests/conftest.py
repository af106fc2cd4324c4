import copy
import os

import pytest

os.environ["TESTING"] = "1"

from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from app.main import create_app
from app.models import get_session
from app.models.base import engine
from app.models.definitions import build_registry
from app.services.base_model import ServiceContext

MOCK_MODELS = {
    "Site": {"url": "https://www.example.com", "name": "Example"},
    "FormType": {"casperjs": "casperjs/contact-form.js", "description": "Contact form"},
    "SiteForm": {"formPath": "/contact", "url": "https://www.example.com/contact"},
    "SiteTest": {},
    "SiteTestForm": {"stdout": ["Form submitted"], "isFailed": False},
    "SiteTestPsi": {"data": {"score": 92}},
    "SiteTestPing": {"data": {"status": 200}},
}


@pytest.fixture(name="engine")
def engine_fixture():
    """テスト用のインメモリSQLiteエンジン。テストごとにテーブルを作り直す"""
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="registry")
def registry_fixture():
    return build_registry()


@pytest.fixture(name="context")
def context_fixture(registry, session):
    return ServiceContext(registry, session)


@pytest.fixture(name="client")
def client_fixture(registry, session):
    """get_session をテスト用セッションに差し替えたクライアント"""
    app = create_app(registry)

    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="mock_model")
def mock_model_fixture():
    """モデル名からサンプルの入力データを返す"""
    def get_mock_model(model_name, /, **overrides):
        return {**copy.deepcopy(MOCK_MODELS[model_name]), **overrides}
    return get_mock_model


class Helper:
    """サービス経由でテストデータを作成する"""

    def __init__(self, context, mock_model):
        self.context = context
        self.mock_model = mock_model

    async def create_site(self, **overrides):
        return await self.context.service("Site").create(self.mock_model("Site", **overrides))

    async def create_form_type(self, **overrides):
        return await self.context.service("FormType").create(self.mock_model("FormType", **overrides))

    async def create_site_form(self, **overrides):
        site = await self.create_site()
        form_type = await self.create_form_type()
        data = self.mock_model("SiteForm", siteId=site.id, formTypeId=form_type.id, **overrides)
        return await self.context.service("SiteForm").create(data)

    async def create_site_test(self, **data):
        site = await self.create_site()
        return await self.context.service("SiteTest").create({"siteId": site.id, **data})


@pytest.fixture(name="helper")
def helper_fixture(context, mock_model):
    return Helper(context, mock_model)
