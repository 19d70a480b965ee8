import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from db.connections import ConnectionManager
from db.documents import jsonable, place_summary, to_object_id
from db.place_db import PlaceCommands
from db.user_db import UserCommands
from models.reviews import ReviewCreate, ReviewPageQuery, ReviewQuery, ReviewUpdate
from queries.place_query import count_pages, parse_sort

logger = logging.getLogger(__name__)


def helpful_toggle_update(user_id):
    """Update pipeline that adds or removes ``user_id`` from helpful.users.

    helpful.count is recomputed from the set inside the same update, so the
    two fields never drift apart.
    """
    users = {'$ifNull': ['$helpful.users', []]}
    return [
        {'$set': {'helpful.users': {'$cond': [
            {'$in': [user_id, users]},
            {'$setDifference': [users, [user_id]]},
            {'$setUnion': [users, [user_id]]},
        ]}}},
        {'$set': {'helpful.count': {'$size': '$helpful.users'}}},
    ]


class ReviewCommands:
    def __init__(self, connection: Optional[ConnectionManager] = None):
        self.connection = connection or ConnectionManager()
        self.db = self.connection.get_db()
        self.reviews_collection = self.db['reviews']
        self.places = PlaceCommands(self.connection)
        self.users = UserCommands(self.connection)

    async def _populate(self, reviews, with_user: bool = True, with_place: bool = True):
        """Replaces user and place ids with their summaries, in place"""
        if with_user:
            authors = await self.users.get_summaries(review.get('user') for review in reviews)
            for review in reviews:
                review['user'] = authors.get(review.get('user'), {})
        if with_place:
            places = await self.places.get_summaries(review.get('place') for review in reviews)
            for review in reviews:
                review['place'] = places.get(review.get('place'), {})
        return reviews

    async def _paginate(self, review_filter: dict, page_query: ReviewPageQuery, **populate):
        skip = (page_query.page - 1) * page_query.limit

        async def fetch_page():
            reviews = []
            cursor = self.reviews_collection.find(review_filter)
            sort = parse_sort(page_query.sort)
            if sort:
                cursor = cursor.sort(sort)
            async for document in cursor.skip(skip).limit(page_query.limit):
                reviews.append(document)
            return await self._populate(reviews, **populate)

        reviews, total = await asyncio.gather(
            fetch_page(),
            self.reviews_collection.count_documents(review_filter),
        )
        return {
            'reviews': jsonable(reviews),
            'pagination': {
                'current': page_query.page,
                'pages': count_pages(total, page_query.limit),
                'total': total,
                'limit': page_query.limit,
            },
        }

    async def get_recent_reviews(self, place_id, limit: int = 5):
        reviews = []
        cursor = self.reviews_collection.find(
            {'place': to_object_id(place_id), 'isActive': True}
        ).sort([('createdAt', -1)]).limit(limit)
        async for document in cursor:
            reviews.append(document)
        return await self._populate(reviews, with_place=False)

    async def list_place_reviews(self, place_id, page_query: ReviewPageQuery):
        review_filter = {'place': to_object_id(place_id), 'isActive': True}
        return await self._paginate(review_filter, page_query, with_place=False)

    async def list_reviews(self, query: ReviewQuery):
        review_filter = {'isActive': True}
        if query.place:
            review_filter['place'] = to_object_id(query.place)
        if query.user:
            review_filter['user'] = to_object_id(query.user)
        if query.rating:
            review_filter['rating'] = query.rating
        return await self._paginate(review_filter, query)

    async def list_user_reviews(self, user_id: str, page_query: ReviewPageQuery):
        review_filter = {'user': to_object_id(user_id), 'isActive': True}
        return await self._paginate(review_filter, page_query, with_user=False)

    async def get_review(self, review_id):
        oid = to_object_id(review_id)
        if oid is None:
            return None
        return await self.reviews_collection.find_one({'_id': oid})

    async def get_review_detail(self, review_id):
        review = await self.get_review(review_id)
        if review is None:
            return None
        await self._populate([review])
        return jsonable(review)

    async def update_review(self, review: dict, update: ReviewUpdate):
        update_data = {
            field: value for field, value in update.model_dump(exclude_none=True).items()
            if field in update.model_fields_set
        }
        update_data['updatedAt'] = datetime.now(timezone.utc)

        updated = await self.reviews_collection.find_one_and_update(
            {'_id': review['_id']},
            {'$set': update_data},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            return None
        if 'rating' in update_data and update_data['rating'] != review.get('rating'):
            await self.update_place_rating(review['place'])
        await self._populate([updated])
        return jsonable(updated)

    async def create_review(self, review: ReviewCreate, user_id: str):
        place = await self.places.get_place(review.place)
        if place is None:
            raise HTTPException(status_code=404, detail="Place not found")

        user_oid = to_object_id(user_id)
        existing = await self.reviews_collection.find_one({'place': place['_id'], 'user': user_oid})
        if existing:
            raise HTTPException(status_code=400, detail="You have already reviewed this place")

        now = datetime.now(timezone.utc)
        review_dict = review.model_dump(exclude_none=True)
        review_dict.update({
            'place': place['_id'],
            'user': user_oid,
            'helpful': {'count': 0, 'users': []},
            'isVerified': False,
            'isActive': True,
            'createdAt': now,
            'updatedAt': now,
        })
        try:
            result = await self.reviews_collection.insert_one(review_dict)
        except DuplicateKeyError:
            # lost a race with a concurrent submission from the same user
            raise HTTPException(status_code=400, detail="You have already reviewed this place")
        review_dict['_id'] = result.inserted_id

        await self.update_place_rating(place['_id'])
        review_dict['user'] = await self.users.get_summary(user_oid)
        review_dict['place'] = place_summary(place)
        return jsonable(review_dict)

    async def soft_delete_review(self, review):
        await self.reviews_collection.update_one(
            {'_id': review['_id']},
            {'$set': {'isActive': False, 'updatedAt': datetime.now(timezone.utc)}},
        )
        await self.update_place_rating(review['place'])

    async def toggle_helpful(self, review_id, user_id: str):
        oid = to_object_id(review_id)
        if oid is None:
            return None
        user_oid = to_object_id(user_id)
        review = await self.reviews_collection.find_one_and_update(
            {'_id': oid},
            helpful_toggle_update(user_oid),
            return_document=ReturnDocument.AFTER,
        )
        if review is None:
            return None
        helpful = review.get('helpful', {})
        return {
            'helpful': helpful.get('count', 0),
            'isHelpful': user_oid in helpful.get('users', []),
        }

    async def update_place_rating(self, place_id):
        """Recomputes rating.average (one decimal) and rating.count from active reviews"""
        try:
            stats = []
            cursor = self.reviews_collection.aggregate([
                {'$match': {'place': place_id, 'isActive': True}},
                {'$group': {'_id': None, 'average': {'$avg': '$rating'}, 'count': {'$sum': 1}}},
            ])
            async for document in cursor:
                stats.append(document)
        except Exception as e:
            logger.error(f"Error recomputing rating for place {place_id}: {e}")
            raise

        if not stats:
            return await self.places.set_rating(place_id, 0, 0)
        return await self.places.set_rating(place_id, round(stats[0]['average'], 1), stats[0]['count'])
