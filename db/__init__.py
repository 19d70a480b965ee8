from db.connections import ConnectionManager
from db.user_db import UserCommands
from db.place_db import PlaceCommands
from db.review_db import ReviewCommands
