from fastapi import APIRouter, Depends, HTTPException

from core.security import create_access_token, hash_password, verify_password
from db import UserCommands
from models.users import LoginRequestModel, RegisterRequestModel, UserSummary
from routes.dependencies import get_user_db

auth_router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


def user_summary(user: dict) -> dict:
    return UserSummary(
        id=str(user["_id"]),
        name=user["name"],
        email=user["email"],
        avatar=user.get("avatar"),
        role=user.get("role", "user"),
    ).model_dump()


@auth_router.post("/register", status_code=201)
async def register_user(user: RegisterRequestModel, user_db: UserCommands = Depends(get_user_db)):
    """Register a new user and return an access token

    Raises:
        HTTPException: status_code=`400`, detail=`email already exists`
    """
    is_user_exist = await user_db.get_user_by_email(user.email)
    if is_user_exist is not None:
        raise HTTPException(status_code=400, detail="email already exists")

    new_user = await user_db.add_user({
        "name": user.name.strip(),
        "email": user.email,
        "password": hash_password(user.password),
        "avatar": user.avatar,
        "role": "user",
        "isActive": True,
    })
    token = create_access_token(str(new_user["_id"]), new_user["role"])
    return {"success": True, "data": {"token": token, "user": user_summary(new_user)}}


@auth_router.post("/login")
async def login(user: LoginRequestModel, user_db: UserCommands = Depends(get_user_db)):
    is_user_exist = await user_db.get_user_by_email(user.email)
    if not is_user_exist or not verify_password(user.password, is_user_exist["password"]):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if not is_user_exist.get("isActive", True):
        raise HTTPException(status_code=401, detail="Account is deactivated")
    token = create_access_token(str(is_user_exist["_id"]), is_user_exist.get("role", "user"))
    return {"success": True, "data": {"token": token, "user": user_summary(is_user_exist)}}
