from pydantic import BaseModel
from typing import Optional, Any, List


class StandardSuccessResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None


class StandardErrorResponse(BaseModel):
    success: bool = False
    message: str
    code: Optional[str] = None
    detail: Optional[str] = None


class PaginatedResponse(BaseModel):
    """Paginated response wrapper."""
    items: List[Any]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def create(cls, items: List[Any], total: int, page: int, limit: int):
        pages = (total + limit - 1) // limit if limit else 0
        return cls(items=items, total=total, page=page, limit=limit, pages=pages)
