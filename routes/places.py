from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.errors import PyMongoError

from core.config import settings
from core.errors import DatabaseError
from core.security import optional_auth, require_auth
from db import PlaceCommands, ReviewCommands
from db.documents import jsonable, to_object_id
from models.places import CATEGORIES, PlaceCreate, PlaceListResponse, PlaceQuery, PlaceUpdate
from models.reviews import ReviewPageQuery
from models.users import CurrentUser
from routes.dependencies import get_place_db, get_review_db


places_router = APIRouter(
    prefix="/places",
    tags=["places"],
    responses={404: {"description": "Place not found."}},
)


def can_manage(place: dict, user: CurrentUser) -> bool:
    return str(place.get("createdBy")) == user.id or user.is_admin


@places_router.get("", response_model=PlaceListResponse, dependencies=[Depends(optional_auth)])
async def list_places(
    query: Annotated[PlaceQuery, Query()],
    place_db: PlaceCommands = Depends(get_place_db),
):
    """List active places with filters, text search, sorting and pagination.

    When both `lat` and `lng` are given, results are limited to `radius` km
    and ordered by `distance` (meters); `sort` is then ignored.

    Example: `GET /api/places?category=cafe&features=wifi,parking&lat=21.03&lng=105.85&radius=2`
    """
    try:
        data = await place_db.list_places(query)
    except PyMongoError as e:
        raise DatabaseError("Server error while fetching places", e) from e
    return {"success": True, "data": data}


@places_router.get("/categories/list")
async def list_categories():
    return {"success": True, "data": {"categories": CATEGORIES}}


@places_router.get("/{place_id}", dependencies=[Depends(optional_auth)])
async def fetch_place(
    place_id: str,
    place_db: PlaceCommands = Depends(get_place_db),
    review_db: ReviewCommands = Depends(get_review_db),
):
    """Single place with its owner and the most recent reviews; counts a view"""
    try:
        place = await place_db.view_place(place_id)
        if place is None:
            raise HTTPException(status_code=404, detail="Place not found")
        place["recentReviews"] = await review_db.get_recent_reviews(place["_id"], settings.recent_reviews_limit)
    except PyMongoError as e:
        raise DatabaseError("Server error while fetching place", e) from e
    return {"success": True, "data": {"place": jsonable(place)}}


@places_router.post("", status_code=201)
async def create_place(
    place: PlaceCreate,
    place_db: PlaceCommands = Depends(get_place_db),
    user: CurrentUser = Depends(require_auth),
):
    try:
        created = await place_db.create_place(place, user.id)
    except PyMongoError as e:
        raise DatabaseError("Server error while creating place", e) from e
    return {"success": True, "message": "Place created", "data": {"place": created}}


@places_router.put("/{place_id}")
async def update_place(
    place_id: str,
    update: PlaceUpdate,
    place_db: PlaceCommands = Depends(get_place_db),
    user: CurrentUser = Depends(require_auth),
):
    try:
        existing = await place_db.get_place(place_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Place not found")
        if not can_manage(existing, user):
            raise HTTPException(status_code=403, detail="Not allowed to edit this place")
        updated = await place_db.update_place(place_id, update)
    except PyMongoError as e:
        raise DatabaseError("Server error while updating place", e) from e
    if updated is None:
        raise HTTPException(status_code=404, detail="Place not found")
    return {"success": True, "message": "Place updated", "data": {"place": updated}}


@places_router.delete("/{place_id}")
async def delete_place(
    place_id: str,
    place_db: PlaceCommands = Depends(get_place_db),
    user: CurrentUser = Depends(require_auth),
):
    """Soft delete: the place leaves the listing but keeps its id and reviews"""
    try:
        existing = await place_db.get_place(place_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Place not found")
        if not can_manage(existing, user):
            raise HTTPException(status_code=403, detail="Not allowed to delete this place")
        await place_db.soft_delete_place(place_id)
    except PyMongoError as e:
        raise DatabaseError("Server error while deleting place", e) from e
    return {"success": True, "message": "Place deleted"}


@places_router.get("/{place_id}/reviews")
async def fetch_place_reviews(
    place_id: str,
    page_query: Annotated[ReviewPageQuery, Query()],
    review_db: ReviewCommands = Depends(get_review_db),
):
    if to_object_id(place_id) is None:
        raise HTTPException(status_code=404, detail="Place not found")
    try:
        data = await review_db.list_place_reviews(place_id, page_query)
    except PyMongoError as e:
        raise DatabaseError("Server error while fetching reviews", e) from e
    return {"success": True, "data": data}
