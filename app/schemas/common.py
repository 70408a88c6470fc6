from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

# Unsaved rows carry None for server-defaulted booleans.
Flag = Annotated[bool, BeforeValidator(lambda value: bool(value))]


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=200)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(BaseModel):
    total: int
    total_pages: int
    current_page: int


def page_meta(total: int, params: PageParams) -> dict[str, Any]:
    return {
        "total": total,
        "total_pages": math.ceil(total / params.limit) if params.limit else 0,
        "current_page": params.page,
    }


class ReasonRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class RemarksRequest(BaseModel):
    remarks: str | None = Field(default=None, max_length=2000)
