from pydantic import BaseModel


class SearchPhoto(BaseModel):
    id: str
    url_m: str | None = None

    model_config = {"extra": "allow", "coerce_numbers_to_str": True}


class SearchPage(BaseModel):
    page: int = 1
    pages: int = 1
    photo: list[SearchPhoto]


class SearchResponse(BaseModel):
    photos: SearchPage
