from sqlalchemy import Column, Float, Integer, String, UniqueConstraint

from app.database import Base


class Pin(Base):
    __tablename__ = "pins"
    __table_args__ = (UniqueConstraint("latitude", "longitude", name="uq_pins_coordinate"),)

    id = Column(String, primary_key=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    created_at = Column(String, nullable=False)
    fetch_status = Column(String, nullable=False, default="searching")
    page = Column(Integer, nullable=False, default=1)
    pages = Column(Integer, nullable=False, default=1)
