from sqlmodel import Field
from typing import Optional
from .base import RecordModel

class Site(RecordModel, table=True):
    __tablename__ = "site"
    """テスト対象のWebサイト"""
    url: str
    name: str

class FormType(RecordModel, table=True):
    __tablename__ = "form_type"
    """フォーム種別 (CasperJSスクリプト)"""
    casperjs: str
    description: str

class SiteForm(RecordModel, table=True):
    __tablename__ = "site_form"
    """サイト上の入力フォームのテンプレート"""
    form_path: str
    url: str
    site_id: Optional[str] = Field(default=None, index=True)
    form_type_id: Optional[str] = Field(default=None, index=True)
