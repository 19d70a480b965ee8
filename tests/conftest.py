import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("JWT_SECRET", "test-secret-that-is-long-enough-for-hs256")

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from core.security import create_access_token
from db import PlaceCommands, ReviewCommands, UserCommands
from tests.fakes import FakeConnection

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_user(name="Owner", role="user", **overrides):
    user = {
        "_id": ObjectId(),
        "name": name,
        "email": f"{name.lower().replace(' ', '.')}@gmail.com",
        "avatar": f"https://cdn.example.org/{name.lower()}.png",
        "role": role,
        "isActive": True,
    }
    user.update(overrides)
    return user


def make_place(name, owner=None, lat=21.0285, lng=105.8542, minutes=0, **overrides):
    """Stored place document; ``minutes`` offsets createdAt from BASE_TIME"""
    created = BASE_TIME + timedelta(minutes=minutes)
    place = {
        "_id": ObjectId(),
        "name": name,
        "description": f"{name} is a place worth visiting.",
        "category": "cafe",
        "subcategory": "Cà phê học bài",
        "address": {
            "street": "1 Trang Tien",
            "ward": "Trang Tien",
            "district": "Hoan Kiem",
            "city": "Hà Nội",
            "coordinates": {"lat": lat, "lng": lng},
        },
        "location": {"type": "Point", "coordinates": [lng, lat]},
        "pricing": {"minPrice": 20000, "maxPrice": 60000, "currency": "VND"},
        "features": {flag: False for flag in (
            "wifi", "parking", "airConditioning", "outdoor",
            "petFriendly", "delivery", "takeaway", "cardPayment",
        )},
        "rating": {"average": 4.0, "count": 3},
        "tags": [],
        "images": [],
        "operatingHours": [],
        "isVerified": False,
        "isActive": True,
        "createdBy": owner["_id"] if owner else ObjectId(),
        "viewCount": 0,
        "createdAt": created,
        "updatedAt": created,
    }
    features = overrides.pop("features", {})
    place["features"].update(features)
    place.update(overrides)
    return place


def auth_header(user):
    return {"Authorization": f"Bearer {create_access_token(str(user['_id']), user.get('role', 'user'))}"}


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def places(connection):
    return connection.get_db()["places"]


@pytest.fixture
def users(connection):
    return connection.get_db()["users"]


@pytest.fixture
def reviews(connection):
    return connection.get_db()["reviews"]


@pytest.fixture
def place_db(connection) -> PlaceCommands:
    return PlaceCommands(connection)


@pytest.fixture
def review_db(connection) -> ReviewCommands:
    return ReviewCommands(connection)


@pytest.fixture
def user_db(connection) -> UserCommands:
    return UserCommands(connection)


@pytest.fixture
def owner(users):
    user = make_user("Owner")
    users.documents.append(user)
    return user


@pytest.fixture
def client(place_db, review_db, user_db):
    from main import app

    app.state.place_db = place_db
    app.state.review_db = review_db
    app.state.user_db = user_db
    return TestClient(app)
