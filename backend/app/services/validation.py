"""
宣言的なバリデータ

各バリデータは保存前のレコード (camelCase の辞書) を検査し、
エラーを ValidationErrors に追加する。
"""
from typing import Any, Callable, Dict, List

from app.exceptions import ValidationException


def is_blank(value: Any) -> bool:
    """未設定とみなす値かどうか"""
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    if isinstance(value, list) and len(value) == 0:
        return True
    return False


class ValidationErrors:
    """フィールドごとのエラーコードとメッセージ"""

    def __init__(self):
        self.codes: Dict[str, List[str]] = {}
        self.messages: Dict[str, List[str]] = {}

    def add(self, field: str, message: str, code: str) -> None:
        self.codes.setdefault(field, []).append(code)
        self.messages.setdefault(field, []).append(message)

    def __bool__(self) -> bool:
        return bool(self.codes)

    def raise_if_any(self, model_name: str) -> None:
        if self:
            raise ValidationException.for_model(model_name, self.codes, self.messages)


class Validator:
    field: str

    def validate(self, service, record: Dict[str, Any], errors: ValidationErrors) -> None:
        raise NotImplementedError


class PresenceValidator(Validator):
    def __init__(self, field: str, message: str = "can't be blank"):
        self.field = field
        self.message = message

    def validate(self, service, record, errors):
        if is_blank(record.get(self.field)):
            errors.add(self.field, self.message, "presence")


class ReferenceValidator(Validator):
    """外部キーが既存レコードを指しているか。未設定の場合は検査しない"""

    def __init__(self, field: str, model: str, message: str = None):
        self.field = field
        self.model = model
        self.message = message or f"Invalid {field}"

    def validate(self, service, record, errors):
        value = record.get(self.field)
        if is_blank(value):
            return
        if not service.context.repository(self.model).exists(value):
            errors.add(self.field, self.message, "invalid")


class RuleValidator(Validator):
    """任意の述語によるバリデータ。述語は (service, record) を受け取る"""

    def __init__(
        self,
        field: str,
        predicate: Callable[[Any, Dict[str, Any]], bool],
        message: str,
        code: str
    ):
        self.field = field
        self.predicate = predicate
        self.message = message
        self.code = code

    def validate(self, service, record, errors):
        if not self.predicate(service, record):
            errors.add(self.field, self.message, self.code)
