from typing import Optional
from .base import InputSchema

class SiteInput(InputSchema):
    id: Optional[str] = None
    url: Optional[str] = None
    name: Optional[str] = None

class FormTypeInput(InputSchema):
    id: Optional[str] = None
    casperjs: Optional[str] = None
    description: Optional[str] = None

class SiteFormInput(InputSchema):
    id: Optional[str] = None
    form_path: Optional[str] = None
    url: Optional[str] = None
    site_id: Optional[str] = None
    form_type_id: Optional[str] = None
