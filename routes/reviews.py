from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.errors import PyMongoError

from core.errors import DatabaseError
from core.security import optional_auth, require_auth
from db import ReviewCommands
from models.reviews import HelpfulToggleResult, ReviewCreate, ReviewPageQuery, ReviewQuery, ReviewUpdate
from models.users import CurrentUser
from routes.dependencies import get_review_db

reviews_router = APIRouter(
    prefix="/reviews",
    tags=["reviews"],
    responses={404: {"description": "Review not found."}},
)


def can_manage(review: dict, user: CurrentUser) -> bool:
    return str(review.get("user")) == user.id or user.is_admin


@reviews_router.get("", dependencies=[Depends(optional_auth)])
async def list_reviews(
    query: Annotated[ReviewQuery, Query()],
    review_db: ReviewCommands = Depends(get_review_db),
):
    """Active reviews, optionally filtered by place, author or exact rating.

    `sort` takes field names (`-rating,createdAt`) or one of `newest`,
    `oldest`, `highest-rated`, `lowest-rated`, `most-helpful`.

    Example: `GET /api/reviews?place=66f1c0a2e4b0a1b2c3d4e5f6&sort=highest-rated`
    """
    try:
        data = await review_db.list_reviews(query)
    except PyMongoError as e:
        raise DatabaseError("Server error while fetching reviews", e) from e
    return {"success": True, "data": data}


@reviews_router.get("/user/me")
async def list_my_reviews(
    page_query: Annotated[ReviewPageQuery, Query()],
    review_db: ReviewCommands = Depends(get_review_db),
    user: CurrentUser = Depends(require_auth),
):
    try:
        data = await review_db.list_user_reviews(user.id, page_query)
    except PyMongoError as e:
        raise DatabaseError("Server error while fetching your reviews", e) from e
    return {"success": True, "data": data}


@reviews_router.get("/{review_id}", dependencies=[Depends(optional_auth)])
async def fetch_review(
    review_id: str,
    review_db: ReviewCommands = Depends(get_review_db),
):
    try:
        review = await review_db.get_review_detail(review_id)
    except PyMongoError as e:
        raise DatabaseError("Server error while fetching review", e) from e
    if review is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return {"success": True, "data": {"review": review}}


@reviews_router.post("", status_code=201)
async def create_review(
    review: ReviewCreate,
    review_db: ReviewCommands = Depends(get_review_db),
    user: CurrentUser = Depends(require_auth),
):
    """Create a review; each user may review a place once.

    Example request body:\n
    ```
    {
        "place": "66f1c0a2e4b0a1b2c3d4e5f6",
        "rating": 4,
        "title": "Quiet and cozy",
        "content": "Good coffee, fast wifi, plenty of sockets.",
        "visitDate": "2025-04-01"
    }
    ```
    """
    try:
        created = await review_db.create_review(review, user.id)
    except PyMongoError as e:
        raise DatabaseError("Server error while creating review", e) from e
    return {"success": True, "message": "Review created", "data": {"review": created}}


@reviews_router.put("/{review_id}")
async def update_review(
    review_id: str,
    update: ReviewUpdate,
    review_db: ReviewCommands = Depends(get_review_db),
    user: CurrentUser = Depends(require_auth),
):
    """Edit a review; the place rating is recomputed when `rating` changes"""
    try:
        review = await review_db.get_review(review_id)
        if review is None:
            raise HTTPException(status_code=404, detail="Review not found")
        if not can_manage(review, user):
            raise HTTPException(status_code=403, detail="Not allowed to edit this review")
        updated = await review_db.update_review(review, update)
    except PyMongoError as e:
        raise DatabaseError("Server error while updating review", e) from e
    if updated is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return {"success": True, "message": "Review updated", "data": {"review": updated}}


@reviews_router.delete("/{review_id}")
async def delete_review(
    review_id: str,
    review_db: ReviewCommands = Depends(get_review_db),
    user: CurrentUser = Depends(require_auth),
):
    try:
        review = await review_db.get_review(review_id)
        if review is None:
            raise HTTPException(status_code=404, detail="Review not found")
        if not can_manage(review, user):
            raise HTTPException(status_code=403, detail="Not allowed to delete this review")
        await review_db.soft_delete_review(review)
    except PyMongoError as e:
        raise DatabaseError("Server error while deleting review", e) from e
    return {"success": True, "message": "Review deleted"}


@reviews_router.post("/{review_id}/helpful")
async def toggle_review_helpful(
    review_id: str,
    review_db: ReviewCommands = Depends(get_review_db),
    user: CurrentUser = Depends(require_auth),
):
    """Marks the review helpful for the caller, or unmarks it if already marked"""
    try:
        result = await review_db.toggle_helpful(review_id, user.id)
    except PyMongoError as e:
        raise DatabaseError("Server error while updating helpful status", e) from e
    if result is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return {"success": True, "data": HelpfulToggleResult(**result).model_dump()}
