from typing import Any, Optional
from pydantic import BaseModel


class ActionRequest(BaseModel):
    action: Optional[str] = None
    value: Any = None


class DownloadRequest(BaseModel):
    filename: Optional[str] = None
    button_name: Optional[str] = None
