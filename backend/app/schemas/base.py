from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class InputSchema(BaseModel):
    """リクエストボディの型変換に使う基底スキーマ

    APIはcamelCaseで受け付ける。未定義のキーは検証のためにそのまま残す。
    """
    model_config = ConfigDict(alias_generator=to_camel, extra="allow")
