"""
Crowd Module

Crowd density analytics and prediction for the bus transit monitor.

This module provides:
- Density classification of occupancy samples
- Append-only reading store (in-memory or SQL backend)
- Historical (station, route, day, hour) pattern table
- Six-hour crowd prediction by pattern lookup
- Per-station analytics views
- Background sampler producing synthetic readings

Usage:
    from crowd_monitor.crowd import init_crowd_service

    service = init_crowd_service(config.get_crowd_config())
    service.seed()
    service.record_reading(3, 42, 70, 'manual')
    analytics = service.get_analytics(3)
"""

from crowd_monitor.crowd.exceptions import (
    CrowdError,
    ValidationError,
    StorageError,
    SamplerTickError
)

from crowd_monitor.crowd.density_classifier import DensityClassifier, classify

from crowd_monitor.crowd.store import CrowdStore, day_of_week
from crowd_monitor.crowd.memory_store import MemoryCrowdStore

from crowd_monitor.crowd.pattern_table import HistoricalPatternTable
from crowd_monitor.crowd.prediction_generator import PredictionGenerator
from crowd_monitor.crowd.analytics import CrowdAnalyticsAggregator
from crowd_monitor.crowd.sampler import CrowdSampler

from crowd_monitor.crowd.service import (
    CrowdService,
    create_store,
    get_crowd_service,
    init_crowd_service
)


__all__ = [
    # Errors
    'CrowdError',
    'ValidationError',
    'StorageError',
    'SamplerTickError',

    # Classification
    'DensityClassifier',
    'classify',
    'day_of_week',

    # Storage
    'CrowdStore',
    'MemoryCrowdStore',

    # Components
    'HistoricalPatternTable',
    'PredictionGenerator',
    'CrowdAnalyticsAggregator',
    'CrowdSampler',

    # Service
    'CrowdService',
    'create_store',
    'get_crowd_service',
    'init_crowd_service'
]
