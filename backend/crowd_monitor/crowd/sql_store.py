"""
SQL Crowd Store

CrowdStore over SQLAlchemy ORM sessions. Identifiers come from the
database's autoincrement keys, so concurrent inserts never collide.
SQLAlchemy failures surface as StorageError with the original error
chained; nothing is retried here.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from crowd_monitor.crowd.exceptions import StorageError
from crowd_monitor.crowd.store import CrowdStore
from crowd_monitor.database.models import (
    CrowdPredictionRecord,
    CrowdReadingRecord,
    HistoricalPatternRecord,
    StationRecord,
)
from crowd_monitor.models.crowd import (
    CrowdDensityReading,
    CrowdPrediction,
    DensityLevel,
    HistoricalPattern,
    SensorType,
    Station,
)


def _station(row: StationRecord) -> Station:
    return Station(
        id=row.id,
        name=row.name,
        x=row.x,
        y=row.y,
        zone=row.zone,
        passenger_count=row.passenger_count
    )


def _reading(row: CrowdReadingRecord) -> CrowdDensityReading:
    return CrowdDensityReading(
        id=row.id,
        station_id=row.station_id,
        bus_id=row.bus_id,
        passenger_count=row.passenger_count,
        capacity=row.capacity,
        density_level=DensityLevel(row.density_level),
        sensor_type=SensorType(row.sensor_type),
        timestamp=row.timestamp
    )


def _pattern(row: HistoricalPatternRecord) -> HistoricalPattern:
    return HistoricalPattern(
        id=row.id,
        station_id=row.station_id,
        route_id=row.route_id,
        day_of_week=row.day_of_week,
        hour_of_day=row.hour_of_day,
        avg_passenger_count=row.avg_passenger_count,
        avg_density_level=DensityLevel(row.avg_density_level),
        peak_multiplier=row.peak_multiplier,
        last_updated=row.last_updated
    )


def _prediction(row: CrowdPredictionRecord) -> CrowdPrediction:
    return CrowdPrediction(
        id=row.id,
        station_id=row.station_id,
        route_id=row.route_id,
        predicted_time=row.predicted_time,
        predicted_density=DensityLevel(row.predicted_density),
        predicted_passenger_count=row.predicted_passenger_count,
        confidence=row.confidence,
        model_version=row.model_version,
        created_at=row.created_at
    )


class SqlCrowdStore(CrowdStore):
    """
    CrowdStore backed by a relational database

    Usage:
        init_db()
        store = SqlCrowdStore(SessionLocal)
        store.record(1, 40, 70, 'manual')
    """

    backend_name = "sql"

    def __init__(self, session_factory: sessionmaker, classifier=None, clock=None):
        """
        Args:
            session_factory: SQLAlchemy sessionmaker bound to an engine
            classifier: Density classifier
            clock: Callable returning the current local time
        """
        super().__init__(classifier, clock)
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        """Session scope: commit on success, roll back and wrap on failure"""
        session: Session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Crowd storage failure: {e}") from e
        finally:
            session.close()

    # Stations

    def add_station(self, name: str, x: float, y: float, zone: int = 1) -> Station:
        with self._session() as db:
            row = StationRecord(name=name, x=x, y=y, zone=zone, passenger_count=0)
            db.add(row)
            db.flush()
            return _station(row)

    def get_station(self, station_id: int) -> Optional[Station]:
        with self._session() as db:
            row = db.get(StationRecord, station_id)
            return _station(row) if row else None

    def list_stations(self) -> List[Station]:
        with self._session() as db:
            rows = db.query(StationRecord).order_by(StationRecord.id).all()
            return [_station(r) for r in rows]

    # Readings

    def _append_reading(self,
                        station_id: int,
                        bus_id: Optional[int],
                        passenger_count: int,
                        capacity: int,
                        density_level: DensityLevel,
                        sensor_type: SensorType,
                        timestamp: datetime) -> CrowdDensityReading:
        with self._session() as db:
            row = CrowdReadingRecord(
                station_id=station_id,
                bus_id=bus_id,
                passenger_count=passenger_count,
                capacity=capacity,
                density_level=density_level.value,
                sensor_type=sensor_type.value,
                timestamp=timestamp
            )
            db.add(row)

            db.query(StationRecord)\
                .filter(StationRecord.id == station_id)\
                .update({StationRecord.passenger_count: passenger_count})

            db.flush()
            return _reading(row)

    def latest(self, station_id: int) -> Optional[CrowdDensityReading]:
        with self._session() as db:
            row = db.query(CrowdReadingRecord)\
                .filter(CrowdReadingRecord.station_id == station_id)\
                .order_by(CrowdReadingRecord.timestamp.desc(), CrowdReadingRecord.id.desc())\
                .first()
            return _reading(row) if row else None

    def query(self,
              station_id: Optional[int] = None,
              bus_id: Optional[int] = None) -> List[CrowdDensityReading]:
        with self._session() as db:
            q = db.query(CrowdReadingRecord)
            if station_id is not None:
                q = q.filter(CrowdReadingRecord.station_id == station_id)
            if bus_id is not None:
                q = q.filter(CrowdReadingRecord.bus_id == bus_id)

            rows = q.order_by(
                CrowdReadingRecord.timestamp.desc(),
                CrowdReadingRecord.id.desc()
            ).all()
            return [_reading(r) for r in rows]

    # Patterns

    def _find_pattern(self,
                      station_id: int,
                      route_id: int,
                      day: int,
                      hour: int) -> Optional[HistoricalPattern]:
        with self._session() as db:
            row = db.query(HistoricalPatternRecord).filter_by(
                station_id=station_id,
                route_id=route_id,
                day_of_week=day,
                hour_of_day=hour
            ).first()
            return _pattern(row) if row else None

    def _upsert_patterns(self,
                         patterns: List[HistoricalPattern],
                         updated_at: datetime) -> List[HistoricalPattern]:
        if not patterns:
            return []

        station_ids = {p.station_id for p in patterns}
        route_ids = {p.route_id for p in patterns}

        with self._session() as db:
            existing_rows = db.query(HistoricalPatternRecord)\
                .filter(HistoricalPatternRecord.station_id.in_(station_ids))\
                .filter(HistoricalPatternRecord.route_id.in_(route_ids))\
                .all()
            existing: Dict[tuple, HistoricalPatternRecord] = {
                (r.station_id, r.route_id, r.day_of_week, r.hour_of_day): r
                for r in existing_rows
            }

            touched = []
            for pattern in patterns:
                row = existing.get(pattern.key)
                if row is None:
                    row = HistoricalPatternRecord(
                        station_id=pattern.station_id,
                        route_id=pattern.route_id,
                        day_of_week=pattern.day_of_week,
                        hour_of_day=pattern.hour_of_day
                    )
                    db.add(row)
                    existing[pattern.key] = row

                row.avg_passenger_count = pattern.avg_passenger_count
                row.avg_density_level = DensityLevel(pattern.avg_density_level).value
                row.peak_multiplier = pattern.peak_multiplier
                row.last_updated = updated_at
                touched.append(row)

            db.flush()
            return [_pattern(r) for r in touched]

    def patterns(self, station_id: int, route_id: int) -> List[HistoricalPattern]:
        with self._session() as db:
            rows = db.query(HistoricalPatternRecord)\
                .filter_by(station_id=station_id, route_id=route_id)\
                .order_by(HistoricalPatternRecord.day_of_week, HistoricalPatternRecord.hour_of_day)\
                .all()
            return [_pattern(r) for r in rows]

    def count_patterns(self) -> int:
        with self._session() as db:
            return db.query(HistoricalPatternRecord).count()

    # Predictions

    def add_predictions(self, predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        with self._session() as db:
            return self._insert_predictions(db, predictions)

    def _insert_predictions(self,
                            db: Session,
                            predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        created_at = self.clock()
        rows = [
            CrowdPredictionRecord(
                station_id=p.station_id,
                route_id=p.route_id,
                predicted_time=p.predicted_time,
                predicted_density=DensityLevel(p.predicted_density).value,
                predicted_passenger_count=p.predicted_passenger_count,
                confidence=p.confidence,
                model_version=p.model_version,
                created_at=created_at
            )
            for p in predictions
        ]
        db.add_all(rows)
        db.flush()
        return [_prediction(r) for r in rows]

    def predictions(self, station_id: int, route_id: int) -> List[CrowdPrediction]:
        with self._session() as db:
            rows = db.query(CrowdPredictionRecord)\
                .filter_by(station_id=station_id, route_id=route_id)\
                .order_by(CrowdPredictionRecord.predicted_time, CrowdPredictionRecord.id)\
                .all()
            return [_prediction(r) for r in rows]

    def delete_predictions(self, station_id: int, route_id: int) -> int:
        with self._session() as db:
            return db.query(CrowdPredictionRecord)\
                .filter_by(station_id=station_id, route_id=route_id)\
                .delete(synchronize_session=False)

    def replace_predictions(self,
                            station_id: int,
                            route_id: int,
                            predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        # Delete and insert share one transaction; a failed insert rolls back the delete
        with self._session() as db:
            db.query(CrowdPredictionRecord)\
                .filter_by(station_id=station_id, route_id=route_id)\
                .delete(synchronize_session=False)
            return self._insert_predictions(db, predictions)
