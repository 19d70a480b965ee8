from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from core.config import settings

FEATURE_FLAGS = (
    "wifi",
    "parking",
    "airConditioning",
    "outdoor",
    "petFriendly",
    "delivery",
    "takeaway",
    "cardPayment",
)

SORTABLE_FIELDS = (
    "createdAt",
    "updatedAt",
    "rating",
    "rating.average",
    "rating.count",
    "name",
    "viewCount",
    "pricing.minPrice",
    "pricing.maxPrice",
)

Category = Literal["restaurant", "cafe", "accommodation", "entertainment", "study"]
Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

CATEGORIES = {
    "restaurant": {
        "name": "Nhà hàng",
        "subcategories": [
            "Cơm tấm", "Phở", "Bún bò Huế", "Bún chả", "Bánh mì", "Chả cá",
            "Lẩu", "Nướng", "Hải sản", "Đồ chay", "Món Nhật", "Món Hàn",
            "Món Thái", "Món Trung", "Pizza", "Burger", "Món Âu",
        ],
    },
    "cafe": {
        "name": "Cà phê",
        "subcategories": [
            "Cà phê truyền thống", "Cà phê hiện đại", "Trà sữa", "Sinh tố",
            "Nước ép", "Smoothie", "Cà phê học bài", "Cà phê làm việc",
        ],
    },
    "accommodation": {
        "name": "Nhà trọ",
        "subcategories": [
            "Phòng trọ", "Ký túc xá", "Homestay", "Khách sạn mini",
            "Căn hộ cho thuê", "Nhà nguyên căn",
        ],
    },
    "entertainment": {
        "name": "Giải trí",
        "subcategories": [
            "Karaoke", "Game center", "Cinema", "Bowling", "Billiards",
            "Escape room", "VR game", "Board game cafe",
        ],
    },
    "study": {
        "name": "Học tập",
        "subcategories": [
            "Thư viện", "Cà phê học bài", "Co-working space", "Lớp học",
            "Trung tâm ngoại ngữ", "Luyện thi",
        ],
    },
}


def parse_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    """Turn ``"-createdAt,name"`` into ``[("createdAt", -1), ("name", 1)]``.

    Only a single leading dash is read as the direction.
    """
    fields = []
    for param in (sort or "").split(","):
        param = param.strip()
        if not param:
            continue
        direction = 1
        if param.startswith("-"):
            direction = -1
            param = param[1:]
        fields.append((param, direction))
    return fields


def check_sort_fields(sort: str, allowed: Collection[str]) -> str:
    for name, _ in parse_sort(sort):
        if name not in allowed:
            raise ValueError(f"Unsupported sort field: {name or '(empty)'}")
    return sort


class PlaceQuery(BaseModel):
    """Query string accepted by the place listing."""

    page: int = Field(1, ge=1)
    limit: int = Field(settings.default_page_limit, ge=1, le=settings.max_page_limit)
    category: Optional[Category] = None
    subcategory: Optional[str] = None
    minPrice: Optional[float] = None
    maxPrice: Optional[float] = None
    rating: Optional[float] = None
    search: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    radius: float = Field(settings.default_radius_km, gt=0)
    sort: str = "-createdAt"
    features: Optional[str] = None

    @field_validator("subcategory", "search", "features", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("sort")
    @classmethod
    def check_sort(cls, value: str) -> str:
        return check_sort_fields(value, SORTABLE_FIELDS)

    @field_validator("features")
    @classmethod
    def check_features(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        for name in value.split(","):
            name = name.strip()
            if name and name not in FEATURE_FLAGS:
                raise ValueError(f"Unknown feature: {name}")
        return value

    @property
    def feature_list(self) -> List[str]:
        if not self.features:
            return []
        return [name.strip() for name in self.features.split(",") if name.strip()]


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    ward: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    city: str = "Hà Nội"
    coordinates: Coordinates


class Contact(BaseModel):
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10,11}$")
    email: Optional[str] = Field(None, pattern=r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")
    website: Optional[str] = Field(None, pattern=r"^https?://.+")
    facebook: Optional[str] = None
    instagram: Optional[str] = None


class Pricing(BaseModel):
    minPrice: Optional[float] = Field(None, ge=0)
    maxPrice: Optional[float] = Field(None, ge=0)
    currency: str = "VND"

    @model_validator(mode="after")
    def check_range(self):
        if self.minPrice is not None and self.maxPrice is not None and self.maxPrice < self.minPrice:
            raise ValueError("maxPrice must be greater than or equal to minPrice")
        return self


class Features(BaseModel):
    wifi: bool = False
    parking: bool = False
    airConditioning: bool = False
    outdoor: bool = False
    petFriendly: bool = False
    delivery: bool = False
    takeaway: bool = False
    cardPayment: bool = False


class ImageModel(BaseModel):
    url: str
    alt: Optional[str] = None
    isMain: bool = False


class OperatingHoursModel(BaseModel):
    day: Weekday
    open: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    close: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    isClosed: bool = False


class PlaceCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    category: Category
    subcategory: str = Field(..., min_length=1)
    address: Address
    contact: Optional[Contact] = None
    pricing: Optional[Pricing] = None
    features: Features = Features()
    images: List[ImageModel] = []
    operatingHours: List[OperatingHoursModel] = []
    tags: List[str] = []

    @field_validator("name", "description", "subcategory", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, value: List[str]) -> List[str]:
        return [tag.strip() for tag in value if tag.strip()]


class PlaceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    category: Optional[Category] = None
    subcategory: Optional[str] = Field(None, min_length=1)
    address: Optional[Address] = None
    contact: Optional[Contact] = None
    pricing: Optional[Pricing] = None
    features: Optional[Features] = None
    images: Optional[List[ImageModel]] = None
    operatingHours: Optional[List[OperatingHoursModel]] = None
    tags: Optional[List[str]] = None


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int


class PlaceListData(BaseModel):
    places: List[Dict[str, Any]]
    pagination: Pagination


class PlaceListResponse(BaseModel):
    success: bool = True
    data: PlaceListData


class RatingSummary(BaseModel):
    average: float = 0
    count: int = 0


def place_document(place: PlaceCreate, owner_id: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the stored document for a new place."""
    now = now or datetime.now(timezone.utc)
    document = place.model_dump(exclude_none=True)
    document.update({
        "location": geo_point(place.address.coordinates),
        "rating": RatingSummary().model_dump(),
        "isVerified": False,
        "isActive": True,
        "createdBy": owner_id,
        "viewCount": 0,
        "createdAt": now,
        "updatedAt": now,
    })
    return document


def geo_point(coordinates: Coordinates) -> Dict[str, Any]:
    # GeoJSON orders longitude first
    return {"type": "Point", "coordinates": [coordinates.lng, coordinates.lat]}
