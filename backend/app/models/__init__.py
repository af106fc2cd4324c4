from .base import RecordModel, get_session, engine
from .site import Site, FormType, SiteForm
from .site_test import SiteTest, SiteTestForm, SiteTestPsi, SiteTestPing

__all__ = [
    "RecordModel", "get_session", "engine",
    "Site", "FormType", "SiteForm",
    "SiteTest", "SiteTestForm", "SiteTestPsi", "SiteTestPing",
]

def init_db(bind=None):
    """データベーススキーマを初期化する"""
    from sqlmodel import SQLModel

    with (bind or engine).begin() as conn:
        SQLModel.metadata.create_all(bind=conn)

def drop_db(bind=None):
    """全テーブルを削除する"""
    from sqlmodel import SQLModel

    with (bind or engine).begin() as conn:
        SQLModel.metadata.drop_all(bind=conn)
