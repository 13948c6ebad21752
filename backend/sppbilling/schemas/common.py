# ============================================================
# sppbilling/schemas/common.py
#
# Envelopes shared by every router. Entity schemas live next
# to their feature (academic, fees, billing, students, reports);
# the stored entities themselves are in sppbilling/models.
#
#   XCreate   → POST body
#   XUpdate   → PUT body, every field optional
#   XResponse → what goes back inside `data`
# ============================================================

import math
from typing import Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Success envelope: {"success": true, "message": "...", "data": ...}"""
    success: bool = True
    message: str = "OK"
    data: Optional[T] = None


class PaginatedResponse(BaseModel, Generic[T]):
    success: bool = True
    data: List[T] = []
    total: int = 0
    page: int = 1
    page_size: int = 50
    total_pages: int = 0


class ErrorResponse(BaseModel):
    """
    Failure envelope written by the handlers in main.py.
    `error` names the kind (NotFound, Conflict, OverpaymentRejected, ...)
    so the console can branch without parsing the message.
    """
    success: bool = False
    message: str
    error: Optional[str] = None
    detail: Optional[object] = None


class PaginationParams(BaseModel):
    """Query params for the student directory: ?page=&page_size=&search="""
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=200)
    search: Optional[str] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def paginate(self, rows: Sequence[T]) -> tuple[List[T], int, int]:
        """(rows on this page, total rows, total pages)"""
        total = len(rows)
        total_pages = math.ceil(total / self.page_size) if total else 0
        return list(rows[self.offset: self.offset + self.page_size]), total, total_pages
