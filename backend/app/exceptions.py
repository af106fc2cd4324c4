"""
Sitecheckアプリケーションの例外クラス階層

このモジュールは、アプリケーション全体で使用される例外クラスの階層を定義します。
各例外クラスにはエラーコードとHTTPステータスが割り当てられ、
REST APIではLoopBack互換のエラーレスポンス ``{"error": {...}}`` に変換されます。
"""
import functools
import logging
from enum import Enum
from typing import Optional, Dict, Any, List, Type, Callable, TypeVar, cast


class ErrorCode(Enum):
    """エラーコード定義"""
    # 一般的なエラー (1000-1999)
    GENERAL_ERROR = 1000
    CONFIGURATION_ERROR = 1001

    # モデル・リレーション関連エラー (2000-2999)
    MODEL_ERROR = 2000
    MODEL_NOT_FOUND = 2001
    RELATION_ERROR = 2002
    REMOTE_METHOD_ERROR = 2003

    # API関連エラー (4000-4999)
    API_ERROR = 4000
    REQUEST_ERROR = 4003

    # データ処理関連エラー (5000-5999)
    DATA_ERROR = 5000
    DATABASE_ERROR = 5001
    VALIDATION_ERROR = 5002


class SitecheckException(Exception):
    """Sitecheckの基底例外クラス"""
    status_code = 500
    error_name = "Error"

    def __init__(
        self,
        message: str = "Sitecheckアプリケーションエラーが発生しました",
        error_code: ErrorCode = ErrorCode.GENERAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code.name}:{self.error_code.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """例外情報をLoopBack形式のエラー本体として返す"""
        body = {
            "name": self.error_name,
            "status": self.status_code,
            "statusCode": self.status_code,
            "code": self.error_code.name,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


# システム関連の例外クラス
class ConfigurationException(SitecheckException):
    """設定エラー"""
    def __init__(
        self,
        message: str = "設定の読み込みまたは検証に失敗しました",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


# モデル関連の例外クラス
class ModelException(SitecheckException):
    """モデル関連の基底例外クラス"""
    def __init__(
        self,
        message: str = "モデル処理中にエラーが発生しました",
        error_code: ErrorCode = ErrorCode.MODEL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class ModelNotFoundException(ModelException):
    """指定IDのインスタンスが存在しない"""
    status_code = 404

    def __init__(self, model_name: str, instance_id: Any = None, message: Optional[str] = None):
        super().__init__(
            message or f'Unknown "{model_name}" id "{instance_id}"',
            ErrorCode.MODEL_NOT_FOUND
        )
        self.model_name = model_name
        self.instance_id = instance_id


class RelationException(ModelException):
    """リレーション定義または関連モデルの操作エラー"""
    def __init__(
        self,
        message: str = "リレーションの処理に失敗しました",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.RELATION_ERROR, details)


class RemoteMethodException(ModelException):
    """無効化された、または存在しないリモートメソッドへのアクセス"""
    status_code = 404

    def __init__(self, verb: str, path: str):
        super().__init__(
            f"There is no method to handle {verb.upper()} {path}",
            ErrorCode.REMOTE_METHOD_ERROR
        )


# API関連の例外クラス
class APIException(SitecheckException):
    """API関連の基底例外クラス"""
    status_code = 400

    def __init__(
        self,
        message: str = "API処理中にエラーが発生しました",
        error_code: ErrorCode = ErrorCode.API_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class RequestException(APIException):
    """リクエスト関連エラー"""
    def __init__(
        self,
        message: str = "APIリクエストの処理に失敗しました",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.REQUEST_ERROR, details)


# データ処理関連の例外クラス
class DataException(SitecheckException):
    """データ関連の基底例外クラス"""
    def __init__(
        self,
        message: str = "データ処理中にエラーが発生しました",
        error_code: ErrorCode = ErrorCode.DATA_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class DatabaseException(DataException):
    """データベースエラー"""
    def __init__(
        self,
        message: str = "データベース操作に失敗しました",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.DATABASE_ERROR, details)


class ValidationException(DataException):
    """データ検証エラー

    details には ``context`` (モデル名)、``codes``、``messages`` を持つ。
    """
    status_code = 422
    error_name = "ValidationError"

    def __init__(
        self,
        message: str = "入力データの検証に失敗しました",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)

    @classmethod
    def for_model(
        cls,
        model_name: str,
        codes: Dict[str, List[str]],
        messages: Dict[str, List[str]]
    ) -> "ValidationException":
        """モデル単位の検証結果から例外を生成する"""
        summary = "; ".join(
            f"`{field}` {' '.join(texts)}" for field, texts in messages.items()
        )
        return cls(
            f"The `{model_name}` instance is not valid. Details: {summary}.",
            details={"context": model_name, "codes": codes, "messages": messages}
        )

    @property
    def codes(self) -> Dict[str, List[str]]:
        return self.details.get("codes", {})

    @property
    def messages(self) -> Dict[str, List[str]]:
        return self.details.get("messages", {})


# 例外処理ヘルパー関数

# ロガーの設定
logger = logging.getLogger(__name__)

# 型変数の定義
F = TypeVar('F', bound=Callable[..., Any])


def exception_to_response(exception: SitecheckException) -> Dict[str, Any]:
    """
    例外をAPIレスポンス形式に変換する

    Args:
        exception: 変換する例外

    Returns:
        APIレスポンス形式の辞書
    """
    return {
        "error": exception.to_dict()
    }


def convert_exception(
    exception_type: Type[SitecheckException],
    message: Optional[str] = None
) -> Callable[[F], F]:
    """
    一般的な例外を特定のSitecheck例外に変換するデコレータ

    第一引数が ``session`` 属性を持つ場合は、変換前にロールバックする。

    Args:
        exception_type: 変換先の例外タイプ
        message: 例外メッセージ（Noneの場合は元の例外のメッセージを使用）

    Returns:
        デコレータ関数
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except SitecheckException:
                # すでにSitecheck例外の場合はそのまま再送出
                raise
            except Exception as e:
                session = getattr(args[0], "session", None) if args else None
                if session is not None:
                    session.rollback()
                error_message = message if message is not None else str(e)
                details = {"original_exception": str(e), "exception_type": type(e).__name__}
                logger.error(f"{func.__qualname__} failed: {e}", exc_info=True)
                raise exception_type(error_message, details=details) from e
        return cast(F, wrapper)
    return decorator
