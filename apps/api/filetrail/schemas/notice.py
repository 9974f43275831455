"""User-visible notice schemas."""

from typing import Literal

from pydantic import BaseModel

NoticeLevel = Literal["success", "error", "info"]


class Notice(BaseModel):
    level: NoticeLevel
    title: str
    message: str
