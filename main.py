import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.errors import register_exception_handlers
from db import ConnectionManager, PlaceCommands, ReviewCommands, UserCommands
from routes import auth_router, places_router, reviews_router

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("   Starting Lifespan...")
    connection = ConnectionManager()
    await connection.ensure_indexes()

    app.state.place_db = PlaceCommands(connection)
    app.state.review_db = ReviewCommands(connection)
    app.state.user_db = UserCommands(connection)
    yield
    await connection.close()


app = FastAPI(title=settings.project_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(places_router, prefix=settings.api_prefix)
app.include_router(reviews_router, prefix=settings.api_prefix)
app.include_router(auth_router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok"}
