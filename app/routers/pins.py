from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_pipeline
from app.models.pin import Pin
from app.schemas.photo import PhotoResponse
from app.schemas.pin import PinCreate, PinDetail, PinResponse
from app.services.photo_pipeline import PhotoPipeline, count_downloads, list_photos
from app.utils.response import success_response

router = APIRouter(prefix="/pins", tags=["pins"])


async def _pin_detail(db: AsyncSession, pin: Pin) -> dict:
    photos = await list_photos(db, pin.id)
    downloaded, total = await count_downloads(db, pin.id)
    detail = PinDetail(
        **PinResponse.model_validate(pin).model_dump(),
        photos=[PhotoResponse.model_validate(p) for p in photos],
        downloaded=downloaded,
        total=total,
        all_downloaded=downloaded == total,
    )
    return detail.model_dump()


@router.post("", status_code=201)
async def create_pin(
    payload: PinCreate,
    pipeline: PhotoPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
):
    pin, _ = await pipeline.add_pin(payload.latitude, payload.longitude)
    if pin is None:
        raise HTTPException(status_code=404, detail="Pin was deleted while loading photos")
    return success_response(data=await _pin_detail(db, pin))


@router.get("")
async def list_pins(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Pin).order_by(Pin.created_at))
    pins = result.scalars().all()

    data = []
    for pin in pins:
        pin_data = PinResponse.model_validate(pin).model_dump()
        downloaded, total = await count_downloads(db, pin.id)
        pin_data["downloaded"] = downloaded
        pin_data["total"] = total
        pin_data["all_downloaded"] = downloaded == total
        data.append(pin_data)

    return success_response(data=data)


@router.get("/{pin_id}")
async def get_pin(pin_id: str, db: AsyncSession = Depends(get_db)):
    pin = await db.get(Pin, pin_id)
    if not pin:
        raise HTTPException(status_code=404, detail="Pin not found")
    return success_response(data=await _pin_detail(db, pin))


@router.post("/{pin_id}/new-collection")
async def new_collection(
    pin_id: str,
    pipeline: PhotoPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
):
    await pipeline.new_collection(pin_id)
    pin = await db.get(Pin, pin_id)
    return success_response(data=await _pin_detail(db, pin))


@router.delete("/{pin_id}")
async def delete_pin(pin_id: str, pipeline: PhotoPipeline = Depends(get_pipeline)):
    if not await pipeline.delete_pin(pin_id):
        raise HTTPException(status_code=404, detail="Pin not found")
    return success_response(data={"pin_id": pin_id}, message="Pin deleted")
