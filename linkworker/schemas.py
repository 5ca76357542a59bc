from typing import Literal

from pydantic import BaseModel, ConfigDict, StrictStr


class LinkRequest(BaseModel):
    """JSON body accepted by POST and DELETE; unknown fields are ignored."""

    url: StrictStr | None = None
    custom_key: StrictStr | None = None
    password: StrictStr | None = None
    short_key: StrictStr | None = None

    model_config = ConfigDict(extra="ignore")

class CustomKeyCheck(BaseModel):
    available: bool
    error: str | None = None

class SuccessOut(BaseModel):
    success: Literal[True] = True
    short_key: str | None = None
    short_url: str | None = None
    original_url: str | None = None
    data: str | None = None

class ErrorOut(BaseModel):
    success: Literal[False] = False
    error: str
