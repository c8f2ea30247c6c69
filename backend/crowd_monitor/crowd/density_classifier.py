"""
Density Classifier Module

Map an occupancy sample (passengers, capacity) to an ordinal density level.

Thresholds on the ratio passengers / capacity:
- ratio >= 0.85 -> critical
- ratio >= 0.65 -> high
- ratio >= 0.40 -> medium
- otherwise     -> low

The classifier assumes capacity > 0; callers validate first.
"""

from crowd_monitor.models.crowd import DensityLevel


MEDIUM_RATIO = 0.40
HIGH_RATIO = 0.65
CRITICAL_RATIO = 0.85


def classify(passengers: float, capacity: float) -> DensityLevel:
    """Classify occupancy with the default thresholds"""
    ratio = passengers / capacity
    if ratio >= CRITICAL_RATIO:
        return DensityLevel.CRITICAL
    if ratio >= HIGH_RATIO:
        return DensityLevel.HIGH
    if ratio >= MEDIUM_RATIO:
        return DensityLevel.MEDIUM
    return DensityLevel.LOW


class DensityClassifier:
    """
    Classify crowd density with configurable thresholds

    Thresholds come from the crowd.density.thresholds config section
    and fall back to the module defaults.
    """

    def __init__(self, config: dict = None):
        """
        Initialize classifier with configuration

        Args:
            config: Crowd configuration dictionary
        """
        if config is None:
            config = {}

        thresholds = config.get('density', {}).get('thresholds', {})

        self.medium_threshold = thresholds.get('medium', MEDIUM_RATIO)
        self.high_threshold = thresholds.get('high', HIGH_RATIO)
        self.critical_threshold = thresholds.get('critical', CRITICAL_RATIO)

        if not (0 < self.medium_threshold < self.high_threshold < self.critical_threshold):
            raise ValueError(
                f"Density thresholds must be increasing: "
                f"{self.medium_threshold}, {self.high_threshold}, {self.critical_threshold}"
            )

    def classify(self, passengers: float, capacity: float) -> DensityLevel:
        """
        Classify occupancy into a density level

        Args:
            passengers: Number of passengers observed
            capacity: Seat capacity (must be > 0)

        Returns:
            DensityLevel enum value
        """
        ratio = passengers / capacity
        if ratio >= self.critical_threshold:
            return DensityLevel.CRITICAL
        elif ratio >= self.high_threshold:
            return DensityLevel.HIGH
        elif ratio >= self.medium_threshold:
            return DensityLevel.MEDIUM
        else:
            return DensityLevel.LOW

    def utilization_rate(self, passengers: float, capacity: float) -> float:
        """Occupancy as a percentage of capacity"""
        if capacity <= 0:
            return 0.0
        return (passengers / capacity) * 100

    def get_thresholds(self) -> dict:
        """Get current threshold configuration"""
        return {
            'medium': self.medium_threshold,
            'high': self.high_threshold,
            'critical': self.critical_threshold
        }
