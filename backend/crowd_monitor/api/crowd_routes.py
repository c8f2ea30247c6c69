"""
Crowd API Routes

REST API endpoints for crowd density readings, historical patterns,
predictions and per-station analytics.

Endpoints:
- POST /api/crowd/readings - Record a reading
- GET /api/crowd/readings - Query readings (stationId, busId)
- GET /api/crowd/latest/{station_id} - Latest reading for a station
- GET /api/crowd/patterns/{station_id}/{route_id} - Pattern cells (or one cell with day+hour)
- POST /api/crowd/patterns/{station_id}/{route_id}/aggregate - Rebuild cells from readings
- POST /api/crowd/predictions/{station_id}/{route_id} - Generate a forecast
- GET /api/crowd/predictions/{station_id}/{route_id} - Stored predictions
- GET /api/crowd/analytics/{station_id} - Analytics view
- GET /api/crowd/stations - Station catalog
- GET /api/crowd/stations/{station_id} - Station details with crowd data
- GET /api/crowd/summary - System-wide crowd statistics
- GET /api/crowd/sampler - Background sampler statistics
"""

from fastapi import APIRouter, HTTPException, Query, Depends
from typing import Optional

from crowd_monitor.crowd.service import CrowdService, get_crowd_service
from crowd_monitor.models.crowd import ReadingCreate

router = APIRouter(prefix="/api/crowd", tags=["crowd"])


def get_service() -> CrowdService:
    """Dependency to get the crowd service"""
    service = get_crowd_service()
    if service is None:
        raise HTTPException(status_code=503, detail="Crowd service not initialized")
    return service


@router.post("/readings", status_code=201)
def record_reading(
    body: ReadingCreate,
    service: CrowdService = Depends(get_service)
):
    """
    Record a crowd density reading

    The density level is derived from passengerCount / capacity.
    Negative counts and non-positive capacity are rejected with 422.
    """
    reading = service.record_reading(
        station_id=body.station_id,
        passenger_count=body.passenger_count,
        capacity=body.capacity,
        sensor_type=body.sensor_type,
        bus_id=body.bus_id
    )
    return reading.to_dict()


@router.get("/readings")
def query_readings(
    station_id: Optional[int] = Query(None, alias="stationId"),
    bus_id: Optional[int] = Query(None, alias="busId"),
    limit: int = Query(100, ge=1, le=1000),
    service: CrowdService = Depends(get_service)
):
    """
    Query readings, newest first

    Args:
        stationId: Only readings for this station
        busId: Only readings for this bus
        limit: Maximum number of readings
    """
    readings = service.query_readings(station_id, bus_id)
    return [r.to_dict() for r in readings[:limit]]


@router.get("/latest/{station_id}")
def get_latest_reading(
    station_id: int,
    service: CrowdService = Depends(get_service)
):
    """
    Get the most recent reading for a station

    A station without readings is not an error: reading is null.
    """
    reading = service.latest_reading(station_id)
    return {
        'stationId': station_id,
        'reading': reading.to_dict() if reading else None
    }


@router.get("/patterns/{station_id}/{route_id}")
def get_patterns(
    station_id: int,
    route_id: int,
    day: Optional[int] = Query(None, description="Day of week, 0 = Sunday"),
    hour: Optional[int] = Query(None, description="Hour of day, 0-23"),
    service: CrowdService = Depends(get_service)
):
    """
    Get historical pattern cells

    With both day and hour, returns the single matching cell (404 when
    the cell is empty). Otherwise returns every cell of the pair.
    """
    if day is not None and hour is not None:
        pattern = service.lookup_pattern(station_id, route_id, day, hour)
        if not pattern:
            raise HTTPException(
                status_code=404,
                detail=f"No pattern for station {station_id}, route {route_id}, day {day}, hour {hour}"
            )
        return pattern.to_dict()

    return [p.to_dict() for p in service.get_patterns(station_id, route_id)]


@router.post("/patterns/{station_id}/{route_id}/aggregate")
def aggregate_patterns(
    station_id: int,
    route_id: int,
    service: CrowdService = Depends(get_service)
):
    """Rebuild the pair's pattern cells from the station's readings"""
    patterns = service.aggregate_patterns(station_id, route_id)
    return {
        'stationId': station_id,
        'routeId': route_id,
        'updated': len(patterns),
        'patterns': [p.to_dict() for p in patterns]
    }


@router.post("/predictions/{station_id}/{route_id}")
def generate_predictions(
    station_id: int,
    route_id: int,
    service: CrowdService = Depends(get_service)
):
    """Generate and store a six-hour forecast"""
    predictions = service.generate_predictions(station_id, route_id)
    return [p.to_dict() for p in predictions]


@router.get("/predictions/{station_id}/{route_id}")
def get_predictions(
    station_id: int,
    route_id: int,
    service: CrowdService = Depends(get_service)
):
    """Get stored predictions ordered by predicted time"""
    return [p.to_dict() for p in service.get_predictions(station_id, route_id)]


@router.get("/analytics/{station_id}")
def get_analytics(
    station_id: int,
    route_id: Optional[int] = Query(None, alias="routeId"),
    service: CrowdService = Depends(get_service)
):
    """
    Get crowd analytics for a station

    Combines the latest reading, historical average, peak hours and a
    fresh forecast for the route (default route when omitted).
    """
    return service.get_analytics(station_id, route_id).to_dict()


@router.get("/stations")
def get_stations(service: CrowdService = Depends(get_service)):
    """Get the station catalog"""
    return [s.to_dict() for s in service.store.list_stations()]


@router.get("/stations/{station_id}")
def get_station_details(
    station_id: int,
    service: CrowdService = Depends(get_service)
):
    """
    Get a station with its current density and stored predictions

    Args:
        station_id: Station identifier
    """
    station = service.store.get_station(station_id)
    if not station:
        raise HTTPException(status_code=404, detail=f"Station {station_id} not found")

    latest = service.latest_reading(station_id)
    route_id = service.analytics.default_route_id

    details = station.to_dict()
    details['currentDensity'] = latest.to_dict() if latest else None
    details['predictions'] = [p.to_dict() for p in service.get_predictions(station_id, route_id)]
    return details


@router.get("/summary")
def get_summary(service: CrowdService = Depends(get_service)):
    """Get system-wide crowd statistics"""
    return service.get_system_summary().to_dict()


@router.get("/sampler")
def get_sampler_status(service: CrowdService = Depends(get_service)):
    """Get background sampler statistics"""
    return service.sampler.get_statistics()
