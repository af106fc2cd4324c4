import os
import json
import yaml
from typing import Any, Dict, List, Optional, TypeVar, Generic, cast
from functools import lru_cache
from pydantic import ConfigDict
from pydantic_settings import BaseSettings

# 型変数の定義
T = TypeVar('T')

class ConfigValue(Generic[T]):
    """設定値を表すクラス。環境変数、設定ファイル、デフォルト値の優先順位を管理する"""

    def __init__(
        self,
        default: T,
        env_var: Optional[str] = None,
        config_path: Optional[str] = None,
        description: str = ""
    ):
        self.default = default
        self.env_var = env_var
        self.config_path = config_path
        self.description = description
        self._value: Optional[T] = None
        self._is_cached = False

    def get_value(self, config_data: Dict[str, Any] = None) -> T:
        """設定値を取得する。キャッシュがある場合はキャッシュから取得する"""
        if self._is_cached:
            return cast(T, self._value)

        # 環境変数から取得
        if self.env_var and self.env_var in os.environ:
            self._value = self._convert_value(os.environ[self.env_var])
            self._is_cached = True
            return cast(T, self._value)

        # 設定ファイルから取得
        if config_data and self.config_path:
            try:
                # ドット記法でネストした設定値にアクセス
                value = config_data
                for path in self.config_path.split('.'):
                    value = value[path]
                self._value = self._convert_value(value)
                self._is_cached = True
                return cast(T, self._value)
            except (KeyError, TypeError):
                # 設定ファイルに該当のパスがない場合は無視
                pass

        self._value = self.default
        self._is_cached = True
        return self.default

    def _convert_value(self, value: Any) -> T:
        """値を適切な型に変換する"""
        if isinstance(self.default, bool) and isinstance(value, str):
            return cast(T, value.lower() == "true")
        elif isinstance(self.default, int) and isinstance(value, str):
            return cast(T, int(value))
        elif isinstance(self.default, list) and isinstance(value, str):
            return cast(T, [item.strip() for item in value.split(',') if item.strip()])
        elif isinstance(self.default, dict) and isinstance(value, str):
            try:
                return cast(T, json.loads(value))
            except json.JSONDecodeError:
                return self.default
        else:
            return cast(T, value)

    def clear_cache(self) -> None:
        """キャッシュをクリアする"""
        self._is_cached = False
        self._value = None


class AppConfig:
    """アプリケーション設定"""
    NAME = ConfigValue[str](
        default="Sitecheck",
        env_var="APP_NAME",
        config_path="app.name",
        description="アプリケーション名"
    )
    DEBUG = ConfigValue[bool](
        default=False,
        env_var="DEBUG",
        config_path="app.debug",
        description="デバッグモードの有効/無効"
    )
    LOG_LEVEL = ConfigValue[str](
        default="INFO",
        env_var="LOG_LEVEL",
        config_path="app.log_level",
        description="ログレベル"
    )


class DatabaseConfig:
    """データベース設定"""
    URL = ConfigValue[str](
        default="sqlite:///./sitecheck.db",
        env_var="DATABASE_URL",
        config_path="database.url",
        description="データベースURL"
    )
    ECHO = ConfigValue[bool](
        default=False,
        env_var="DATABASE_ECHO",
        config_path="database.echo",
        description="SQLをログに出力するかどうか"
    )


class ApiConfig:
    """REST API設定"""
    PREFIX = ConfigValue[str](
        default="/api",
        env_var="API_PREFIX",
        config_path="api.prefix",
        description="REST APIのパスプレフィックス"
    )
    CORS_ORIGINS = ConfigValue[list](
        default=["http://localhost:3000"],
        env_var="CORS_ORIGINS",
        config_path="api.cors_origins",
        description="CORSを許可するオリジン"
    )


class Config:
    """設定クラス"""
    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file
        self.config_data: Dict[str, Any] = {}
        self._load_config_file()

        # 設定カテゴリの初期化
        self.app = AppConfig()
        self.database = DatabaseConfig()
        self.api = ApiConfig()

    def _categories(self):
        return [('app', self.app), ('database', self.database), ('api', self.api)]

    def _load_config_file(self) -> None:
        """設定ファイルを読み込む"""
        if not self.config_file:
            # 環境変数から設定ファイルのパスを取得
            self.config_file = os.environ.get("CONFIG_FILE", "config.yaml")

        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    if self.config_file.endswith(('.yaml', '.yml')):
                        self.config_data = yaml.safe_load(f) or {}
                    elif self.config_file.endswith('.json'):
                        self.config_data = json.load(f)
            except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
                print(f"設定ファイルの読み込みに失敗しました: {e}")

    def get(self, category: str, name: str) -> Any:
        """カテゴリ名と設定名から値を取得する"""
        return getattr(getattr(self, category), name).get_value(self.config_data)

    def reload(self) -> None:
        """設定を再読み込みする"""
        self.config_data = {}
        self._load_config_file()
        self.clear_cache()

    def clear_cache(self) -> None:
        """すべての設定値のキャッシュをクリアする"""
        for _, category in self._categories():
            for attr_name in dir(category):
                if not attr_name.startswith('_'):
                    attr = getattr(category, attr_name)
                    if isinstance(attr, ConfigValue):
                        attr.clear_cache()

    def to_dict(self) -> Dict[str, Any]:
        """すべての設定値を辞書形式で取得する"""
        result = {}
        for category_name, category in self._categories():
            category_dict = {}
            for attr_name in dir(category):
                if not attr_name.startswith('_'):
                    attr = getattr(category, attr_name)
                    if isinstance(attr, ConfigValue):
                        category_dict[attr_name.lower()] = attr.get_value(self.config_data)
            result[category_name] = category_dict
        return result


class Settings(BaseSettings):
    # アプリケーション設定
    APP_NAME: str = "Sitecheck"
    DEBUG: bool = os.environ.get("DEBUG", "False").lower() == "true"

    # データベース設定
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./sitecheck.db")

    # REST API設定
    API_PREFIX: str = os.environ.get("API_PREFIX", "/api")
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    model_config = ConfigDict(env_file=".env", extra="ignore")


# シングルトンインスタンスの作成
@lru_cache()
def get_config() -> Config:
    """設定のシングルトンインスタンスを取得する"""
    return Config()


settings = Settings()

config = get_config()
