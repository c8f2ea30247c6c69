"""
Pydantic Models Package

Data models for the crowd monitor. Import from here for convenience.
"""

from .crowd import (
    DensityLevel,
    SensorType,
    Station,
    CrowdDensityReading,
    HistoricalPattern,
    CrowdPrediction,
    PeakTime,
    CrowdAnalytics,
    CrowdSummary,
    ReadingCreate,
)

__all__ = [
    'DensityLevel',
    'SensorType',
    'Station',
    'CrowdDensityReading',
    'HistoricalPattern',
    'CrowdPrediction',
    'PeakTime',
    'CrowdAnalytics',
    'CrowdSummary',
    'ReadingCreate',
]
