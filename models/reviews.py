from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator

from core.config import settings
from models.places import check_sort_fields

VisitType = Literal["dine-in", "takeaway", "delivery", "drive-through"]

REVIEW_SORTABLE_FIELDS = ("createdAt", "updatedAt", "rating", "visitDate", "helpful.count")

# Friendly names the client sends for the review list orderings
REVIEW_SORT_ALIASES = {
    "newest": "-createdAt",
    "oldest": "createdAt",
    "highest-rated": "-rating",
    "lowest-rated": "rating",
    "most-helpful": "-helpful.count",
}


class AspectModel(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None


class AspectsModel(BaseModel):
    food: Optional[AspectModel] = None
    service: Optional[AspectModel] = None
    atmosphere: Optional[AspectModel] = None
    value: Optional[AspectModel] = None


class ReviewImageModel(BaseModel):
    url: str
    alt: Optional[str] = None


class ReviewCreate(BaseModel):
    place: str
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=5, max_length=100)
    content: str = Field(..., min_length=10, max_length=1000)
    visitDate: datetime
    visitType: VisitType = "dine-in"
    pricePaid: Optional[float] = Field(None, ge=0)
    groupSize: Optional[int] = Field(None, ge=1, le=20)
    tags: List[str] = []
    aspects: Optional[AspectsModel] = None
    images: List[ReviewImageModel] = []

    @field_validator("title", "content", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ReviewUpdate(BaseModel):
    """Fields an author may change; the reviewed place is fixed."""

    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    content: Optional[str] = Field(None, min_length=10, max_length=1000)
    visitDate: Optional[datetime] = None
    visitType: Optional[VisitType] = None
    pricePaid: Optional[float] = Field(None, ge=0)
    groupSize: Optional[int] = Field(None, ge=1, le=20)
    tags: Optional[List[str]] = None
    aspects: Optional[AspectsModel] = None
    images: Optional[List[ReviewImageModel]] = None

    @field_validator("title", "content", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ReviewPageQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(settings.default_page_limit, ge=1, le=settings.max_page_limit)
    sort: str = "-createdAt"

    @field_validator("sort")
    @classmethod
    def check_sort(cls, value: str) -> str:
        value = REVIEW_SORT_ALIASES.get(value.strip(), value)
        return check_sort_fields(value, REVIEW_SORTABLE_FIELDS)


class ReviewQuery(ReviewPageQuery):
    place: Optional[str] = None
    user: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)

    @field_validator("place", "user")
    @classmethod
    def check_object_id(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not ObjectId.is_valid(value):
            raise ValueError("Invalid id")
        return value


class HelpfulToggleResult(BaseModel):
    helpful: int
    isHelpful: bool
