# booktracker/models.py
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional

WHICH_WITCH_OPTIONS = ("Lou Lou", "Chlo", "Affo")
SORT_FIELDS = ("title", "author", "date", "rating", "genre")
SORT_DIRECTIONS = ("asc", "desc")
DEFAULT_PAGE_SIZE = 20

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

@dataclass
class Ratings:
    characters: Optional[int] = None
    world_building: Optional[int] = None
    plot: Optional[int] = None
    writing_style: Optional[int] = None
    enjoyment: Optional[int] = None

    # attribute name -> stored key (the stored JSON keeps the camelCase keys)
    KEYS = (("characters", "characters"),
            ("world_building", "worldBuilding"),
            ("plot", "plot"),
            ("writing_style", "writingStyle"),
            ("enjoyment", "enjoyment"))

    def values(self) -> List[Optional[int]]:
        return [getattr(self, attr) for attr, _ in self.KEYS]

    def present(self) -> List[int]:
        """Sub-ratings that are not N/A."""
        return [v for v in self.values() if v is not None]

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for attr, key in self.KEYS}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Ratings":
        data = data or {}
        kwargs = {}
        for attr, key in cls.KEYS:
            v = data.get(key, data.get(attr))
            kwargs[attr] = int(v) if v not in (None, "", "N/A") else None
        return cls(**kwargs)

@dataclass
class Book:
    id: Optional[str]
    title: str
    author: str
    completion_month: int
    completion_year: int
    genres: List[str] = field(default_factory=list)
    cover_image: Optional[str] = None  # public URL once uploaded
    ratings: Ratings = field(default_factory=Ratings)
    overall_rating: float = 0.0  # 0-10, derived from ratings
    which_witch: Optional[str] = None
    is_standalone: bool = True
    series_name: Optional[str] = None
    date_added: str = field(default_factory=now_iso)
    version: int = 1

    @property
    def completion_label(self) -> str:
        if 1 <= self.completion_month <= 12:
            return f"{MONTH_NAMES[self.completion_month - 1]} {self.completion_year}"
        return str(self.completion_year)

@dataclass
class Genre:
    id: Optional[str]
    name: str
    is_custom: bool = True

@dataclass
class Series:
    id: Optional[str]
    name: str

@dataclass
class Author:
    id: Optional[str]
    name: str

@dataclass(frozen=True)
class BookQuery:
    """Filter and sort selection for the book list. Empty values are inactive."""
    search: str = ""
    genre: Optional[str] = None
    year: Optional[int] = None
    which_witch: Optional[str] = None
    sort_field: str = "date"
    sort_direction: str = "desc"

    def with_sort(self, sort_field: str, sort_direction: str) -> "BookQuery":
        return replace(self, sort_field=sort_field, sort_direction=sort_direction)

@dataclass
class Page:
    items: List[Book]
    total: int
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return self.page * self.page_size

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

@dataclass
class CascadeResult:
    """Ledger of a taxonomy rename propagated into book rows."""
    kind: str
    old_name: str
    new_name: str
    updated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed
