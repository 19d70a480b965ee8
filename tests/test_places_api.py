from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from tests.conftest import auth_header, make_place, make_user

NEW_PLACE = {
    "name": "Bun Cha Huong Lien",
    "description": "The bun cha place made famous by a presidential visit.",
    "category": "restaurant",
    "subcategory": "Bún chả",
    "address": {
        "street": "24 Le Van Huu",
        "ward": "Pham Dinh Ho",
        "district": "Hai Ba Trung",
        "coordinates": {"lat": 21.0181, "lng": 105.8535},
    },
    "pricing": {"minPrice": 40000, "maxPrice": 90000},
    "features": {"takeaway": True},
}


def test_list_places_envelope(client, places, owner):
    places.documents.append(make_place("Cafe Dinh", owner))

    res = client.get("/api/places")

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert [p["name"] for p in body["data"]["places"]] == ["Cafe Dinh"]
    assert body["data"]["pagination"] == {"current": 1, "pages": 1, "total": 1, "limit": 10}


def test_list_places_default_sort_is_newest_first(client, places, owner):
    places.documents.append(make_place("Older", owner, minutes=0))
    places.documents.append(make_place("Newer", owner, minutes=5))
    places.documents.append(make_place("Hidden", owner, minutes=10, isActive=False))

    res = client.get("/api/places")

    assert [p["name"] for p in res.json()["data"]["places"]] == ["Newer", "Older"]


def test_list_places_pagination(client, places, owner):
    places.documents.extend(make_place(f"Place {i}", owner, minutes=i) for i in range(3))

    res = client.get("/api/places", params={"page": 2, "limit": 2})

    data = res.json()["data"]
    assert len(data["places"]) == 1
    assert data["pagination"] == {"current": 2, "pages": 2, "total": 3, "limit": 2}


def test_list_places_with_only_lat_ignores_geo(client, places, owner):
    places.documents.append(make_place("A", owner, lat=10.0, lng=106.0, minutes=0))
    places.documents.append(make_place("B", owner, lat=21.0, lng=105.8, minutes=1))

    res = client.get("/api/places", params={"lat": 21.0, "sort": "name"})

    places_out = res.json()["data"]["places"]
    assert [p["name"] for p in places_out] == ["A", "B"]
    assert all("distance" not in p for p in places_out)


def test_list_places_text_search(client, places, owner):
    places.documents.append(make_place("Pho Thin", owner, tags=["pho"]))
    places.documents.append(make_place("Cong Caphe", owner))

    res = client.get("/api/places", params={"search": "pho"})

    assert [p["name"] for p in res.json()["data"]["places"]] == ["Pho Thin"]
    assert "$text" in places.pipelines[0][0]["$match"]


def test_list_places_rejects_bad_query(client):
    res = client.get("/api/places", params={"limit": 0, "sort": "secret"})

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert {error["field"] for error in body["errors"]} == {"limit", "sort"}


def test_list_places_caps_limit(client):
    res = client.get("/api/places", params={"limit": 1000})
    assert res.status_code == 400


def test_list_places_rejects_empty_or_double_dash_sort(client, places):
    for sort in ("-", "--createdAt"):
        res = client.get("/api/places", params={"sort": sort})

        assert res.status_code == 400
        assert [error["field"] for error in res.json()["errors"]] == ["sort"]
    assert places.pipelines == []


def test_list_places_without_pricing_survives_zero_min_price(client, places, owner):
    places.documents.append(make_place("Free Library", owner, pricing={}))

    res = client.get("/api/places", params={"minPrice": 0})

    assert [p["name"] for p in res.json()["data"]["places"]] == ["Free Library"]


def test_list_places_database_failure_is_500(client, places):
    places.fail_with = ServerSelectionTimeoutError("mongo:27017: timed out")

    res = client.get("/api/places")

    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Server error while fetching places"
    assert body["error"] == "ServerSelectionTimeoutError"
    assert "mongo:27017" not in res.text


def test_categories_list(client):
    res = client.get("/api/places/categories/list")

    categories = res.json()["data"]["categories"]
    assert set(categories) == {"restaurant", "cafe", "accommodation", "entertainment", "study"}
    assert "Phở" in categories["restaurant"]["subcategories"]


def test_fetch_place_detail(client, places, reviews, users, owner):
    place = make_place("Cafe Giang", owner)
    places.documents.append(place)
    reviewer = make_user("Reviewer")
    users.documents.append(reviewer)
    for i in range(7):
        reviews.documents.append({
            "_id": ObjectId(),
            "place": place["_id"],
            "user": reviewer["_id"] if i == 6 else ObjectId(),
            "rating": 5,
            "title": f"Review {i}",
            "content": "Great egg coffee, would return.",
            "isActive": i != 5,
            "createdAt": i,
        })

    res = client.get(f"/api/places/{place['_id']}")

    assert res.status_code == 200
    detail = res.json()["data"]["place"]
    assert detail["_id"] == str(place["_id"])
    assert detail["viewCount"] == 1
    assert detail["createdBy"]["name"] == "Owner"
    assert [r["title"] for r in detail["recentReviews"]] == [
        "Review 6", "Review 4", "Review 3", "Review 2", "Review 1",
    ]
    assert detail["recentReviews"][0]["user"]["name"] == "Reviewer"
    assert detail["recentReviews"][1]["user"] == {}


def test_fetch_place_twice_adds_two_views(client, places, owner):
    place = make_place("Busy", owner, viewCount=10)
    places.documents.append(place)

    client.get(f"/api/places/{place['_id']}")
    res = client.get(f"/api/places/{place['_id']}")

    assert res.json()["data"]["place"]["viewCount"] == 12


def test_fetch_soft_deleted_place_by_id(client, places, owner):
    place = make_place("Closed down", owner, isActive=False)
    places.documents.append(place)

    detail = client.get(f"/api/places/{place['_id']}")
    listing = client.get("/api/places")

    assert detail.status_code == 200
    assert listing.json()["data"]["places"] == []


def test_fetch_place_not_found(client):
    assert client.get("/api/places/not-an-object-id").status_code == 404
    res = client.get(f"/api/places/{ObjectId()}")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Place not found"}


def test_create_place_requires_token(client):
    res = client.post("/api/places", json=NEW_PLACE)

    assert res.status_code == 401
    assert res.json()["message"] == "Access token is required"


def test_create_place(client, places, owner):
    res = client.post("/api/places", json=NEW_PLACE, headers=auth_header(owner))

    assert res.status_code == 201
    created = res.json()["data"]["place"]
    assert created["createdBy"]["_id"] == str(owner["_id"])
    assert created["address"]["city"] == "Hà Nội"
    assert created["features"]["takeaway"] is True
    assert created["features"]["wifi"] is False
    assert places.documents[0]["location"]["coordinates"] == [105.8535, 21.0181]


def test_create_place_rejects_inverted_pricing(client, owner):
    payload = dict(NEW_PLACE, pricing={"minPrice": 90000, "maxPrice": 40000})

    res = client.post("/api/places", json=payload, headers=auth_header(owner))

    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "pricing"


def test_update_place_by_other_user_is_forbidden(client, places, users, owner):
    place = make_place("Mine", owner)
    places.documents.append(place)
    stranger = make_user("Stranger")
    users.documents.append(stranger)

    res = client.put(f"/api/places/{place['_id']}", json={"name": "Theirs"}, headers=auth_header(stranger))

    assert res.status_code == 403
    assert places.documents[0]["name"] == "Mine"


def test_admin_can_update_any_place(client, places, users, owner):
    place = make_place("Mine", owner)
    places.documents.append(place)
    admin = make_user("Admin", role="admin")
    users.documents.append(admin)

    res = client.put(f"/api/places/{place['_id']}", json={"name": "Renamed"}, headers=auth_header(admin))

    assert res.status_code == 200
    assert res.json()["data"]["place"]["name"] == "Renamed"
    assert res.json()["data"]["place"]["description"] == place["description"]


def test_delete_place_is_soft(client, places, owner):
    place = make_place("Short lived", owner)
    places.documents.append(place)

    res = client.delete(f"/api/places/{place['_id']}", headers=auth_header(owner))

    assert res.status_code == 200
    assert places.documents[0]["isActive"] is False
    assert client.get("/api/places").json()["data"]["pagination"]["total"] == 0


def test_delete_missing_place(client, owner):
    res = client.delete(f"/api/places/{ObjectId()}", headers=auth_header(owner))
    assert res.status_code == 404


def test_place_reviews_are_paginated(client, places, reviews, owner):
    place = make_place("Reviewed", owner)
    places.documents.append(place)
    for i in range(3):
        reviews.documents.append({
            "_id": ObjectId(), "place": place["_id"], "user": owner["_id"] if i == 0 else ObjectId(),
            "rating": i + 1, "title": f"Review {i}", "content": "Some words here.",
            "isActive": True, "createdAt": i,
        })

    res = client.get(f"/api/places/{place['_id']}/reviews", params={"limit": 2, "sort": "rating"})

    data = res.json()["data"]
    assert [r["rating"] for r in data["reviews"]] == [1, 2]
    assert data["reviews"][0]["user"]["name"] == "Owner"
    assert data["pagination"] == {"current": 1, "pages": 2, "total": 3, "limit": 2}