# backend/noticeboard/services/pagination.py
from dataclasses import dataclass
from typing import Generic, Iterator, List, Sequence, TypeVar

from ..config import settings
from ..exceptions import ValidationFailedError

T = TypeVar("T")


@dataclass
class FeedPage(Generic[T]):
    items: List[T]
    count: int
    total: int


@dataclass
class DownloadResult:
    stream: Iterator[bytes]
    filename: str
    mime_type: str
    size: int
    download_count: int


def validate_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationFailedError("page must be 1 or greater")
    if limit < 1 or limit > settings.MAX_PAGE_LIMIT:
        raise ValidationFailedError(f"limit must be between 1 and {settings.MAX_PAGE_LIMIT}")


def paginate(items: Sequence[T], page: int, limit: int) -> List[T]:
    start = (page - 1) * limit
    return list(items[start:start + limit])
