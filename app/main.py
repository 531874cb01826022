from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import create_tables
from app.dependencies import verify_api_key
from app.routers.pins import router as pins_router
from app.routers.photos import router as photos_router
from app.services.flickr_client import FlickrClient
from app.services.image_cache import ImageCache
from app.services.photo_pipeline import PhotoPipeline
from app.utils.exceptions import register_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    async with httpx.AsyncClient() as http_client:
        client = FlickrClient(
            http_client,
            api_key=settings.flickr_api_key,
            base_url=settings.flickr_base_url,
            per_page=settings.flickr_per_page,
        )
        app.state.pipeline = PhotoPipeline(client, ImageCache(settings.images_dir))
        yield
        await app.state.pipeline.shutdown()


app = FastAPI(
    title="Virtual Tourist API",
    description="Map pins with cached Flickr photos of each location",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

_api_key_dep = [Depends(verify_api_key)]

app.include_router(pins_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(photos_router, prefix="/api/v1", dependencies=_api_key_dep)


@app.get("/health")
async def health_check():
    return {"status": "success", "data": {"service": "virtual-tourist-api", "version": "0.1.0"}, "message": None}
