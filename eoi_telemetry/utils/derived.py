"""
Values derived from the telemetry snapshot at render time.

Nothing here is stored. Every function reads the snapshot through
``StaleValue.get()`` and substitutes NaN for a stale or missing input, so a
single expired field turns the derived figure into NaN instead of a wrong
number.
"""
import math
from typing import Iterable, List, NamedTuple

from eoi_telemetry.models.snapshot import TelemetrySnapshot
from eoi_telemetry.models.stale_value import StaleValue

NAN = float('nan')


class Summary(NamedTuple):
    """Min/max/average over the fresh members of a group of fields."""
    minimum: float
    maximum: float
    average: float

    @property
    def spread(self) -> float:
        return self.maximum - self.minimum


def _value(cell: StaleValue) -> float:
    value = cell.get()
    return NAN if value is None else float(value)


def net_power(snapshot: TelemetrySnapshot) -> float:
    """Battery voltage times the sum of charge, motor and peripheral currents, in W."""
    current = (_value(snapshot.battery_current_in)
               + _value(snapshot.battery_current_out_motor)
               + _value(snapshot.battery_current_out_peripherals))
    return _value(snapshot.battery_voltage) * current


def input_power(snapshot: TelemetrySnapshot) -> float:
    return _value(snapshot.battery_voltage) * _value(snapshot.battery_current_in)


def motor_power(snapshot: TelemetrySnapshot) -> float:
    return _value(snapshot.battery_voltage) * _value(snapshot.battery_current_out_motor)


def peripherals_power(snapshot: TelemetrySnapshot) -> float:
    return _value(snapshot.battery_voltage) * _value(snapshot.battery_current_out_peripherals)


def motor_battery_power(snapshot: TelemetrySnapshot) -> float:
    """Power drawn by the motor controller as it reports it, in W."""
    return _value(snapshot.motor_battery_voltage) * _value(snapshot.motor_battery_current)


def summarize(cells: Iterable[StaleValue]) -> Summary:
    """Summarize the fresh values of ``cells``. All NaN when none is fresh."""
    values: List[float] = [float(v) for v in (c.get() for c in cells) if v is not None]
    if not values:
        return Summary(NAN, NAN, NAN)
    return Summary(min(values), max(values), sum(values) / len(values))


def temperature_summary(snapshot: TelemetrySnapshot) -> Summary:
    return summarize(snapshot.battery_temperatures)


def cell_voltage_summary(snapshot: TelemetrySnapshot) -> Summary:
    return summarize(snapshot.battery_cell_voltages)


def scale_to_range(in_min: float, in_max: float, value: float, out_max: int) -> int:
    """Map ``value`` from ``[in_min, in_max]`` onto ``[0, out_max]``.

    The input is clamped to the range first; NaN maps to 0. The result is
    truncated towards zero.
    """
    if value is None or math.isnan(value):
        corrected = in_min
    else:
        corrected = min(max(value, in_min), in_max)
    return int(((corrected - in_min) / (in_max - in_min)) * out_max)


def derived_values(snapshot: TelemetrySnapshot) -> dict:
    """All derived figures as a flat dict, NaN replaced by None."""
    temperatures = temperature_summary(snapshot)
    cells = cell_voltage_summary(snapshot)
    values = {
        'net_power': net_power(snapshot),
        'input_power': input_power(snapshot),
        'motor_power': motor_power(snapshot),
        'peripherals_power': peripherals_power(snapshot),
        'motor_battery_power': motor_battery_power(snapshot),
        'temperature_min': temperatures.minimum,
        'temperature_max': temperatures.maximum,
        'temperature_avg': temperatures.average,
        'cell_voltage_min': cells.minimum,
        'cell_voltage_max': cells.maximum,
        'cell_voltage_avg': cells.average,
        'cell_voltage_spread': cells.spread,
    }
    return {k: (None if math.isnan(v) else v) for k, v in values.items()}
