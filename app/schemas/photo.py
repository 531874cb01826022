from pydantic import BaseModel


class PhotoResponse(BaseModel):
    id: str
    pin_id: str
    flickr_id: str
    image_url: str
    file_name: str
    position: int
    download_status: str

    model_config = {"from_attributes": True}
