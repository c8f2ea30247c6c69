"""
Crowd Density Models

Records for crowd density readings, historical occupancy patterns and
crowd predictions, plus the analytics view assembled per station.
Serialized to camelCase at the API boundary.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DensityLevel(str, Enum):
    """Ordinal crowd density classification"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SensorType(str, Enum):
    """Source of an occupancy sample"""
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    ESTIMATED = "estimated"
    CAMERA = "camera"
    INFRARED = "infrared"


class CrowdModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses"""
        return self.model_dump(by_alias=True, mode='json')


class Station(CrowdModel):
    """
    Bus station on the schematic map

    passenger_count is a derived annotation kept current by the
    reading store; everything else is fixed at creation.
    """
    id: int
    name: str
    x: float
    y: float
    zone: int = 1
    passenger_count: int = 0


class CrowdDensityReading(CrowdModel):
    """Single timestamped occupancy observation (append-only)"""
    model_config = ConfigDict(frozen=True)

    id: int
    station_id: int
    bus_id: Optional[int] = None
    passenger_count: int
    capacity: int
    density_level: DensityLevel
    sensor_type: SensorType
    timestamp: datetime


class HistoricalPattern(CrowdModel):
    """
    Average occupancy for one (station, route, day-of-week, hour) cell

    day_of_week follows 0 = Sunday .. 6 = Saturday.
    """
    id: Optional[int] = None
    station_id: int
    route_id: int
    day_of_week: int
    hour_of_day: int
    avg_passenger_count: float
    avg_density_level: DensityLevel
    peak_multiplier: float = 1.0
    last_updated: Optional[datetime] = None

    @property
    def key(self) -> tuple:
        return (self.station_id, self.route_id, self.day_of_week, self.hour_of_day)


class CrowdPrediction(CrowdModel):
    """Forecast occupancy for a station/route at a future time"""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    station_id: int
    route_id: int
    predicted_time: datetime
    predicted_density: DensityLevel
    predicted_passenger_count: int
    confidence: float
    model_version: str
    created_at: Optional[datetime] = None


class PeakTime(CrowdModel):
    """Hour flagged as a historical peak"""
    hour: int
    avg_density: DensityLevel


class CrowdAnalytics(CrowdModel):
    """Per-station analytics view, computed on demand and never stored"""
    station_id: int
    current_density: DensityLevel
    passenger_count: int
    capacity: int
    utilization_rate: float
    predictions: List[CrowdPrediction] = Field(default_factory=list)
    historical_average: float = 0.0
    peak_times: List[PeakTime] = Field(default_factory=list)


class CrowdSummary(CrowdModel):
    """System-wide crowd statistics across all recorded readings"""
    total_readings: int
    avg_crowd_density: int                # percent of capacity, rounded
    peak_readings: int                    # readings at high or critical
    stations_tracked: int


class ReadingCreate(CrowdModel):
    """Request body for recording a reading"""
    station_id: int
    passenger_count: int
    capacity: int = 70
    sensor_type: SensorType = SensorType.MANUAL
    bus_id: Optional[int] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "stationId": 3,
                "passengerCount": 42,
                "capacity": 70,
                "sensorType": "manual"
            }
        }
    )
