from typing import Dict, Iterable, Optional

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from db.connections import ConnectionManager
from db.documents import owner_summary

SUMMARY_PROJECTION = {"name": 1, "avatar": 1}


class UserCommands:
    def __init__(self, connection: Optional[ConnectionManager] = None):
        self.connection = connection or ConnectionManager()
        self.db = self.connection.get_db()
        self.users_collection = self.db['users']

    async def get_user_by_email(self, email: str):
        return await self.users_collection.find_one({'email': email.lower()})

    async def add_user(self, user_dict: dict):
        user_dict['email'] = user_dict['email'].lower()
        try:
            result = await self.users_collection.insert_one(user_dict)
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="email already exists")
        if result.inserted_id is None:
            raise HTTPException(status_code=500, detail="Failed to add user")
        user_dict['_id'] = result.inserted_id
        return user_dict

    async def get_summaries(self, user_ids: Iterable) -> Dict:
        """Maps user id -> {_id, name, avatar} for the ids that still exist"""
        ids = list({uid for uid in user_ids if uid is not None})
        if not ids:
            return {}
        summaries = {}
        cursor = self.users_collection.find({'_id': {'$in': ids}}, SUMMARY_PROJECTION)
        async for document in cursor:
            summaries[document['_id']] = owner_summary(document)
        return summaries

    async def get_summary(self, user_id) -> dict:
        if user_id is None:
            return {}
        user = await self.users_collection.find_one({'_id': user_id}, SUMMARY_PROJECTION)
        return owner_summary(user)
