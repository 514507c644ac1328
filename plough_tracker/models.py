from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .config import SQUARE_METERS_PER_ACRE


@dataclass(frozen=True, slots=True)
class GeoPoint:
    latitude: float
    longitude: float

    def as_lonlat(self) -> Tuple[float, float]:
        return self.longitude, self.latitude


Ring = Tuple[GeoPoint, ...]


@dataclass(frozen=True, slots=True)
class GpsFix:
    latitude: float
    longitude: float
    accuracy_m: float
    timestamp_ms: int
    # Platforms report a negative or missing heading when it is unknown.
    heading_deg: Optional[float] = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class FinalizedBoundary:
    ring: Ring
    area_square_meters: float

    @property
    def area_acres(self) -> float:
        return self.area_square_meters / SQUARE_METERS_PER_ACRE


@dataclass
class FarmerProfile:
    name: str
    farm_id: str
    phone: str = ""
    village: str = ""
    district: str = ""
    state: str = ""
    farm_size: str = ""
    crop_type: str = ""
    operator_name: str = ""
    operator_phone: str = ""

    @property
    def id(self) -> str:
        return f"M0{self.farm_id}"

    def missing_fields(self) -> List[str]:
        return [f.name for f in fields(self) if not str(getattr(self, f.name)).strip()]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "farmId": self.farm_id,
            "phone": self.phone,
            "village": self.village,
            "district": self.district,
            "state": self.state,
            "farmSize": self.farm_size,
            "cropType": self.crop_type,
            "operatorName": self.operator_name,
            "operatorPhone": self.operator_phone,
            "id": self.id,
        }


@dataclass(frozen=True, slots=True)
class CoverageSessionSummary:
    farm_id: Optional[str]
    farmer_name: Optional[str]
    ploughed_area_acres: float
    field_area_acres: float
    progress: float
    elapsed_seconds: float
    timestamp: datetime

    def to_payload(self) -> Dict[str, Any]:
        return {
            "farmId": self.farm_id,
            "farmerName": self.farmer_name,
            "ploughedArea": self.ploughed_area_acres,
            "fieldArea": self.field_area_acres,
            "progress": self.progress,
            "elapsedSeconds": self.elapsed_seconds,
            "timestamp": self.timestamp.isoformat(),
        }
