"""
SQLAlchemy ORM Models

Database tables for the crowd monitor:
- Stations
- Crowd density readings (append-only)
- Historical occupancy patterns (one row per station/route/day/hour)
- Crowd predictions
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Index, UniqueConstraint
from sqlalchemy.sql import func
from .database import Base


class StationRecord(Base):
    """
    Bus station

    passenger_count mirrors the most recent reading for the station.
    """
    __tablename__ = "stations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    x = Column(Float, nullable=False)
    y = Column(Float, nullable=False)
    zone = Column(Integer, nullable=False, default=1)
    passenger_count = Column(Integer, nullable=False, default=0)


class CrowdReadingRecord(Base):
    """
    Occupancy sample for a station, optionally for a specific bus

    Rows are never updated; density_level is fixed at insert time.
    """
    __tablename__ = "crowd_density_readings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    station_id = Column(Integer, nullable=False, index=True)
    bus_id = Column(Integer, index=True)

    passenger_count = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False)
    density_level = Column(String, nullable=False)  # low, medium, high, critical
    sensor_type = Column(String, nullable=False)  # manual, automatic, estimated, camera, infrared

    timestamp = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    __table_args__ = (
        Index('idx_reading_station_time', 'station_id', 'timestamp'),
    )


class HistoricalPatternRecord(Base):
    """
    Average occupancy per (station, route, day-of-week, hour) cell

    day_of_week: 0 = Sunday .. 6 = Saturday
    """
    __tablename__ = "historical_patterns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    station_id = Column(Integer, nullable=False)
    route_id = Column(Integer, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    hour_of_day = Column(Integer, nullable=False)

    avg_passenger_count = Column(Float, nullable=False)
    avg_density_level = Column(String, nullable=False)
    peak_multiplier = Column(Float, nullable=False, default=1.0)

    last_updated = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('station_id', 'route_id', 'day_of_week', 'hour_of_day',
                         name='uq_pattern_cell'),
        Index('idx_pattern_station_route', 'station_id', 'route_id'),
    )


class CrowdPredictionRecord(Base):
    """Forecast occupancy for a station/route at a future time"""
    __tablename__ = "crowd_predictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    station_id = Column(Integer, nullable=False)
    route_id = Column(Integer, nullable=False)

    predicted_time = Column(DateTime, nullable=False)
    predicted_density = Column(String, nullable=False)
    predicted_passenger_count = Column(Integer, nullable=False)
    confidence = Column(Float, nullable=False)  # 0.0 - 1.0
    model_version = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index('idx_prediction_station_route_time', 'station_id', 'route_id', 'predicted_time'),
    )
