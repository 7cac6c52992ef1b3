"""GeoLocation SQLite store -- insert and read only"""

from datetime import UTC, datetime

import aiosqlite
from ulid import ULID

from ..models.geo import GeoCoordinate, GeoLocation


class SqliteGeoStore:
    """Event coordinates, one row per presence event"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_geo_location(
        self,
        coordinate: GeoCoordinate,
        accuracy_meters: float | None = None,
    ) -> GeoLocation:
        """Insert a coordinate; does not commit"""
        geo = GeoLocation(
            geo_id=str(ULID()),
            coordinate=coordinate,
            accuracy_meters=accuracy_meters,
            created_at=datetime.now(UTC),
        )
        await self._conn.execute(
            """
            INSERT INTO geo_locations (geo_id, lat, lng, label, accuracy_meters, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                geo.geo_id,
                coordinate.lat,
                coordinate.lng,
                coordinate.label,
                accuracy_meters,
                geo.created_at.isoformat(),
            ),
        )
        return geo

    async def get_geo_location(self, geo_id: str) -> GeoLocation | None:
        cursor = await self._conn.execute(
            """
            SELECT geo_id, lat, lng, label, accuracy_meters, created_at
            FROM geo_locations WHERE geo_id = ?
            """,
            (geo_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return GeoLocation(
            geo_id=row[0],
            coordinate=GeoCoordinate(lat=row[1], lng=row[2], label=row[3]),
            accuracy_meters=row[4],
            created_at=datetime.fromisoformat(row[5]),
        )
