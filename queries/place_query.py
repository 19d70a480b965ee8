import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from models.places import PlaceQuery, parse_sort

# Fields returned to clients for each listed place
PLACE_LIST_PROJECTION = (
    "name",
    "description",
    "category",
    "subcategory",
    "address",
    "pricing",
    "rating",
    "images",
    "tags",
    "features",
    "operatingHours",
    "contact",
    "isActive",
    "isVerified",
    "viewCount",
    "createdAt",
    "updatedAt",
    "distance",
)

OWNER_SUMMARY_FIELDS = ("_id", "name", "avatar")

SORT_ALIASES = {"rating": "rating.average"}


class PipelineError(ValueError):
    """Raised when stages are assembled in an order MongoDB would reject."""


class Stage:
    operator = ""

    def body(self) -> Any:
        raise NotImplementedError

    def to_mongo(self) -> Dict[str, Any]:
        return {self.operator: self.body()}


@dataclass
class GeoNear(Stage):
    lng: float
    lat: float
    max_distance: float
    query: Dict[str, Any] = field(default_factory=dict)
    key: str = "location"
    distance_field: str = "distance"
    operator = "$geoNear"

    def body(self):
        stage = {
            "near": {"type": "Point", "coordinates": [self.lng, self.lat]},
            "key": self.key,
            "distanceField": self.distance_field,
            "maxDistance": self.max_distance,
            "spherical": True,
        }
        if self.query:
            stage["query"] = self.query
        return stage


@dataclass
class Match(Stage):
    filter: Dict[str, Any]
    operator = "$match"

    def body(self):
        return self.filter


@dataclass
class Sort(Stage):
    fields: List[Tuple[str, int]]
    operator = "$sort"

    def body(self):
        return dict(self.fields)


@dataclass
class Skip(Stage):
    count: int
    operator = "$skip"

    def body(self):
        return self.count


@dataclass
class Limit(Stage):
    count: int
    operator = "$limit"

    def body(self):
        return self.count


@dataclass
class Lookup(Stage):
    from_collection: str
    local_field: str
    foreign_field: str
    as_field: str
    operator = "$lookup"

    def body(self):
        return {
            "from": self.from_collection,
            "localField": self.local_field,
            "foreignField": self.foreign_field,
            "as": self.as_field,
        }


@dataclass
class Unwind(Stage):
    path: str
    preserve_null_and_empty_arrays: bool = False
    operator = "$unwind"

    def body(self):
        return {
            "path": f"${self.path}",
            "preserveNullAndEmptyArrays": self.preserve_null_and_empty_arrays,
        }


@dataclass
class Project(Stage):
    fields: Dict[str, Any]
    operator = "$project"

    def body(self):
        return self.fields


@dataclass
class Count(Stage):
    output_field: str = "total"
    operator = "$count"

    def body(self):
        return self.output_field


class Pipeline:
    """Ordered list of aggregation stages.

    A GeoNear stage is only accepted as the very first stage; anything else
    is rejected when the stage is appended, not when the query runs.
    """

    def __init__(self, stages: Sequence[Stage] = ()):
        self._stages: List[Stage] = []
        for stage in stages:
            self.append(stage)

    def append(self, stage: Stage) -> "Pipeline":
        if isinstance(stage, GeoNear) and self._stages:
            raise PipelineError("$geoNear must be the first stage of the pipeline")
        if self._stages and isinstance(self._stages[-1], Count):
            raise PipelineError("No stage may follow $count")
        self._stages.append(stage)
        return self

    def extend(self, stages: Sequence[Stage]) -> "Pipeline":
        for stage in stages:
            self.append(stage)
        return self

    def copy(self) -> "Pipeline":
        return Pipeline(self._stages)

    def to_mongo(self) -> List[Dict[str, Any]]:
        return [stage.to_mongo() for stage in self._stages]

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return tuple(self._stages)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)


def count_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class PlaceQueryBuilder:
    """Translates a PlaceQuery into the listing pipeline and its count pipeline."""

    def __init__(self, query: PlaceQuery, users_collection: str = "users"):
        self.query = query
        self.users_collection = users_collection

    @property
    def is_geo_search(self) -> bool:
        return self.query.lat is not None and self.query.lng is not None

    @property
    def skip(self) -> int:
        return (self.query.page - 1) * self.query.limit

    def geo_stage(self) -> GeoNear:
        return GeoNear(
            lng=self.query.lng,
            lat=self.query.lat,
            max_distance=self.query.radius * 1000,
            query={"isActive": True},
        )

    def match_filter(self) -> Dict[str, Any]:
        q = self.query
        match_filter: Dict[str, Any] = {} if self.is_geo_search else {"isActive": True}

        if q.category:
            match_filter["category"] = q.category
        if q.subcategory:
            match_filter["subcategory"] = q.subcategory
        # a zero bound means "no bound"; pricing is optional on a place
        if q.rating:
            match_filter["rating.average"] = {"$gte": q.rating}
        # minPrice and maxPrice bound different fields on purpose
        if q.minPrice:
            match_filter["pricing.minPrice"] = {"$gte": q.minPrice}
        if q.maxPrice:
            match_filter["pricing.maxPrice"] = {"$lte": q.maxPrice}

        for feature in q.feature_list:
            match_filter[f"features.{feature}"] = True

        if q.search:
            if self.is_geo_search:
                # $text is only legal in a leading $match, never after $geoNear
                pattern = {"$regex": re.escape(q.search), "$options": "i"}
                match_filter["$or"] = [
                    {"name": pattern},
                    {"description": pattern},
                    {"tags": pattern},
                ]
            else:
                match_filter["$text"] = {"$search": q.search}

        return match_filter

    def sort_stage(self) -> Optional[Sort]:
        fields = [(SORT_ALIASES.get(name, name), direction) for name, direction in parse_sort(self.query.sort)]
        if not fields:
            return None
        if "_id" not in dict(fields):
            fields.append(("_id", 1))
        return Sort(fields)

    def projection(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {name: 1 for name in PLACE_LIST_PROJECTION}
        fields["createdBy"] = {name: f"$createdBy.{name}" for name in OWNER_SUMMARY_FIELDS}
        return fields

    def filter_pipeline(self) -> Pipeline:
        """Stages shared by the listing and the count pipeline."""
        pipeline = Pipeline()
        if self.is_geo_search:
            pipeline.append(self.geo_stage())

        match_filter = self.match_filter()
        if match_filter:
            pipeline.append(Match(match_filter))
        return pipeline

    def build(self) -> Tuple[Pipeline, Pipeline]:
        """Return ``(main_pipeline, count_pipeline)``."""
        pipeline = self.filter_pipeline()
        count_pipeline = pipeline.copy().append(Count("total"))

        # $geoNear already orders by distance
        if not self.is_geo_search:
            sort_stage = self.sort_stage()
            if sort_stage is not None:
                pipeline.append(sort_stage)

        pipeline.extend([
            Skip(self.skip),
            Limit(self.query.limit),
            Lookup(self.users_collection, "createdBy", "_id", "createdBy"),
            Unwind("createdBy", preserve_null_and_empty_arrays=True),
            Project(self.projection()),
        ])
        return pipeline, count_pipeline

    def pagination(self, total: int) -> Dict[str, int]:
        return {
            "current": self.query.page,
            "pages": count_pages(total, self.query.limit),
            "total": total,
            "limit": self.query.limit,
        }
