"""Geo Domain Model -- immutable coordinates

GeoCoordinate is a frozen value; GeoLocation is the persisted row created
once per presence event and never mutated.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GeoCoordinate(BaseModel):
    """WGS84 coordinate in decimal degrees"""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90, description="Latitude")
    lng: float = Field(ge=-180, le=180, description="Longitude")
    label: str | None = Field(default=None, description="Address or place name")


class GeoLocation(BaseModel):
    """Persisted event coordinate"""

    model_config = ConfigDict(frozen=True)

    geo_id: str = Field(description="ULID")
    coordinate: GeoCoordinate
    accuracy_meters: float | None = Field(
        default=None,
        ge=0,
        description="Reported GPS accuracy, recorded but not weighted",
    )
    created_at: datetime
