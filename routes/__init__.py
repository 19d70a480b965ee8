from routes.auth import auth_router
from routes.places import places_router
from routes.reviews import reviews_router
