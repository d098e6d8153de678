"""
Sensor Export - Periods and temperature units.

Caller-side helpers: the dashboard picks a period (which drives the
record limit and the output filename) and converts temperatures to
the preferred unit before handing records to the export pipeline.
"""

from dataclasses import replace
from enum import Enum
from typing import List, Sequence

from .locales import DEFAULT_LOCALE, translate
from .models import SensorRecord


# ============================================================
# PERIODS
# ============================================================

class Period(Enum):
    """Selectable export windows."""
    HOURS_6 = "6h"
    HOURS_24 = "24h"
    DAYS_7 = "7d"

    @property
    def record_limit(self) -> int:
        """Number of hourly readings requested for this window."""
        mapping = {
            "6h": 12,
            "24h": 24,
            "7d": 168,
        }
        return mapping[self.value]

    def label(self, locale: str = DEFAULT_LOCALE) -> str:
        return translate(f"PERIOD_{self.value.upper()}", locale)

    @classmethod
    def from_key(cls, key: str) -> "Period":
        """Resolve a period key; unknown keys map to the 24 hour window."""
        try:
            return cls(key)
        except ValueError:
            return cls.HOURS_24


# ============================================================
# TEMPERATURE UNITS
# ============================================================

class TemperatureUnit(Enum):
    """Temperature display unit."""
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"

    @property
    def suffix(self) -> str:
        return "°C" if self is TemperatureUnit.CELSIUS else "°F"

    def convert(self, celsius: float) -> float:
        """Convert a Celsius reading into this unit."""
        if self is TemperatureUnit.FAHRENHEIT:
            return round(celsius * 9 / 5 + 32, 1)
        return celsius


def convert_records(
    records: Sequence[SensorRecord],
    unit: TemperatureUnit,
) -> List[SensorRecord]:
    """Return copies of the records with temperatures in the given unit."""
    if unit is TemperatureUnit.CELSIUS:
        return list(records)
    return [replace(r, temperature=unit.convert(r.temperature)) for r in records]
