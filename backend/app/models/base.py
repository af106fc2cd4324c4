from sqlmodel import Field, SQLModel, create_engine, Session
from sqlalchemy.pool import StaticPool
from uuid import uuid4
import os
from app.config import settings, config

# データベース接続設定
# テスト環境の場合はインメモリSQLiteを使用
if os.environ.get("TESTING") == "1":
    DATABASE_URL = "sqlite://"
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    DATABASE_URL = settings.DATABASE_URL
    connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
    engine = create_engine(
        DATABASE_URL,
        echo=config.get("database", "ECHO"),
        connect_args=connect_args,
    )

def get_session():
    with Session(engine) as session:
        yield session

def generate_id() -> str:
    """レコードIDを生成する"""
    return uuid4().hex

# ベースモデル
class RecordModel(SQLModel):
    """REST APIで公開される全モデルの基底クラス"""
    id: str = Field(default_factory=generate_id, primary_key=True)
