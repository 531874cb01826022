from app.models.pin import Pin
from app.models.photo import Photo

__all__ = ["Pin", "Photo"]
