from sqlalchemy import Column, String, Integer
from sqlalchemy import ForeignKey

from app.database import Base


class Photo(Base):
    __tablename__ = "photos"

    id = Column(String, primary_key=True)
    pin_id = Column(String, ForeignKey("pins.id", ondelete="CASCADE"), nullable=False, index=True)
    flickr_id = Column(String, nullable=False)
    image_url = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    position = Column(Integer, nullable=False)
    download_status = Column(String, nullable=False, default="pending")
