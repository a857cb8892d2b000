from __future__ import annotations

from geoalchemy2 import Geography
from sqlalchemy import Column, Integer, String, Text

from gigglemap.models.base import Base


class Place(Base):
    __tablename__ = "places"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # WGS84 geography point; GiST index is created with the table
    location = Column(
        Geography(geometry_type="POINT", srid=4326, spatial_index=True),
        nullable=False,
    )
