import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from pymongo import ReturnDocument

from db.connections import ConnectionManager
from db.documents import jsonable, place_summary, to_object_id
from db.user_db import UserCommands
from models.places import PlaceCreate, PlaceQuery, PlaceUpdate, geo_point, place_document
from queries.place_query import PlaceQueryBuilder

logger = logging.getLogger(__name__)

SUMMARY_PROJECTION = {'name': 1, 'category': 1, 'address': 1}


class PlaceCommands:
    def __init__(self, connection: Optional[ConnectionManager] = None):
        self.connection = connection or ConnectionManager()
        self.db = self.connection.get_db()
        self.places_collection = self.db['places']
        self.users = UserCommands(self.connection)

    async def aggregate(self, pipeline):
        documents = []
        cursor = self.places_collection.aggregate(pipeline)
        async for document in cursor:
            documents.append(document)
        return documents

    async def list_places(self, query: PlaceQuery):
        """Runs the listing pipeline and its count pipeline side by side.

        Both pipelines share the same filter stages, so ``pagination.total``
        always describes the filter set, independent of page and limit. The
        two reads are not isolated from each other; a write landing between
        them can make the page and the total disagree.
        """
        builder = PlaceQueryBuilder(query)
        pipeline, count_pipeline = builder.build()

        places, total_result = await asyncio.gather(
            self.aggregate(pipeline.to_mongo()),
            self.aggregate(count_pipeline.to_mongo()),
        )
        total = total_result[0]['total'] if total_result else 0
        return {
            'places': jsonable(places),
            'pagination': builder.pagination(total),
        }

    async def get_place(self, place_id):
        """Raw lookup used for ownership checks; does not touch viewCount"""
        oid = to_object_id(place_id)
        if oid is None:
            return None
        return await self.places_collection.find_one({'_id': oid})

    async def view_place(self, place_id):
        """Fetches a place for its detail page and counts the view.

        Soft-deleted places are still returned here; only the listing hides
        them. Every call bumps viewCount, with no per-viewer dedup.
        """
        oid = to_object_id(place_id)
        if oid is None:
            return None
        place = await self.places_collection.find_one_and_update(
            {'_id': oid},
            {'$inc': {'viewCount': 1}},
            return_document=ReturnDocument.AFTER,
        )
        if place is None:
            return None
        place['createdBy'] = await self.users.get_summary(place.get('createdBy'))
        place.pop('location', None)
        return place

    async def create_place(self, place: PlaceCreate, owner_id: str):
        document = place_document(place, to_object_id(owner_id), now=datetime.now(timezone.utc))
        result = await self.places_collection.insert_one(document)
        document['_id'] = result.inserted_id
        document['createdBy'] = await self.users.get_summary(document['createdBy'])
        document.pop('location', None)
        logger.info("Place %s created by %s", result.inserted_id, owner_id)
        return jsonable(document)

    async def update_place(self, place_id, update: PlaceUpdate):
        # only the top-level fields sent by the client; nested models are replaced whole
        update_data = {
            field: value for field, value in update.model_dump(exclude_none=True).items()
            if field in update.model_fields_set
        }
        if update.address is not None:
            update_data['location'] = geo_point(update.address.coordinates)
        update_data['updatedAt'] = datetime.now(timezone.utc)

        place = await self.places_collection.find_one_and_update(
            {'_id': to_object_id(place_id)},
            {'$set': update_data},
            return_document=ReturnDocument.AFTER,
        )
        if place is None:
            return None
        place['createdBy'] = await self.users.get_summary(place.get('createdBy'))
        place.pop('location', None)
        return jsonable(place)

    async def soft_delete_place(self, place_id):
        result = await self.places_collection.update_one(
            {'_id': to_object_id(place_id)},
            {'$set': {'isActive': False, 'updatedAt': datetime.now(timezone.utc)}},
        )
        logger.info("Place %s deactivated", place_id)
        return result

    async def set_rating(self, place_id, average: float, count: int):
        return await self.places_collection.update_one(
            {'_id': to_object_id(place_id)},
            {'$set': {'rating.average': average, 'rating.count': count}},
        )

    async def get_summaries(self, place_ids: Iterable) -> Dict:
        """Maps place id -> {_id, name, category, address}"""
        ids = list({pid for pid in place_ids if pid is not None})
        if not ids:
            return {}
        summaries = {}
        cursor = self.places_collection.find({'_id': {'$in': ids}}, SUMMARY_PROJECTION)
        async for document in cursor:
            summaries[document['_id']] = place_summary(document)
        return summaries
