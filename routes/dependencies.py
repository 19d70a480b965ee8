from fastapi import Request

from db import PlaceCommands, ReviewCommands, UserCommands


def get_place_db(request: Request) -> PlaceCommands:
    return request.app.state.place_db


def get_review_db(request: Request) -> ReviewCommands:
    return request.app.state.review_db


def get_user_db(request: Request) -> UserCommands:
    return request.app.state.user_db
