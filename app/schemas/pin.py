from pydantic import BaseModel, Field

from app.schemas.photo import PhotoResponse


class PinCreate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class PinResponse(BaseModel):
    id: str
    latitude: float
    longitude: float
    created_at: str
    fetch_status: str
    page: int
    pages: int

    model_config = {"from_attributes": True}


class PinDetail(PinResponse):
    photos: list[PhotoResponse] = []
    downloaded: int = 0
    total: int = 0
    all_downloaded: bool = False
