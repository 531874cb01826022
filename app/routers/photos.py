from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from app.dependencies import get_pipeline
from app.services.photo_pipeline import PhotoPipeline
from app.utils.response import success_response

router = APIRouter(prefix="/photos", tags=["photos"])


@router.get("/{photo_id}/image")
async def get_photo_image(photo_id: str, pipeline: PhotoPipeline = Depends(get_pipeline)):
    data = await pipeline.load_image(photo_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Image not available")
    return Response(content=data, media_type="image/jpeg")


@router.delete("/{photo_id}")
async def delete_photo(photo_id: str, pipeline: PhotoPipeline = Depends(get_pipeline)):
    if not await pipeline.delete_photo(photo_id):
        raise HTTPException(status_code=404, detail="Photo not found")
    return success_response(data={"photo_id": photo_id}, message="Photo deleted")
