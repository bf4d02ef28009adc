import math

import pytest

from eoi_telemetry.models.snapshot import TelemetrySnapshot
from eoi_telemetry.utils import derived
from eoi_telemetry.utils.derived import scale_to_range


def make_snapshot():
    return TelemetrySnapshot(clock=lambda: 0.0)


def test_scale_to_range():
    assert scale_to_range(2.5, 4.2, 4.2, 100) == 100
    assert scale_to_range(2.5, 4.2, 2.5, 100) == 0
    assert scale_to_range(2.5, 4.2, 3.35, 100) == 50
    assert scale_to_range(2.5, 4.2, float('nan'), 100) == 0


def test_scale_to_range_clamps():
    assert scale_to_range(0.0, 150.0, 400.0, 150) == 150
    assert scale_to_range(0.0, 150.0, -20.0, 150) == 0


def test_power_figures():
    snap = make_snapshot()
    snap.battery_voltage.update(50.0)
    snap.battery_current_in.update(4.0)
    snap.battery_current_out_motor.update(-10.0)
    snap.battery_current_out_peripherals.update(-1.0)
    assert derived.input_power(snap) == 200.0
    assert derived.motor_power(snap) == -500.0
    assert derived.peripherals_power(snap) == -50.0
    assert derived.net_power(snap) == -350.0


def test_missing_input_gives_nan():
    snap = make_snapshot()
    snap.battery_voltage.update(50.0)
    assert math.isnan(derived.input_power(snap))
    assert math.isnan(derived.motor_battery_power(snap))
    snap.motor_battery_voltage.update(56.0)
    snap.motor_battery_current.update(2.0)
    assert derived.motor_battery_power(snap) == 112.0


def test_temperature_summary_ignores_stale_members():
    snap = make_snapshot()
    assert all(math.isnan(v) for v in derived.temperature_summary(snap))
    snap.battery_temperatures[0].update(30)
    snap.battery_temperatures[2].update(40)
    summary = derived.temperature_summary(snap)
    assert summary.minimum == 30
    assert summary.maximum == 40
    assert summary.average == 35.0


def test_cell_voltage_summary_spread():
    snap = make_snapshot()
    for i, v in enumerate((4.1, 4.15, 4.2)):
        snap.battery_cell_voltages[i].update(v)
    summary = derived.cell_voltage_summary(snap)
    assert summary.minimum == 4.1
    assert summary.maximum == 4.2
    assert summary.spread == pytest.approx(0.1)
    assert summary.average == pytest.approx(4.15)


def test_derived_values_maps_nan_to_none():
    snap = make_snapshot()
    snap.battery_voltage.update(50.0)
    snap.battery_current_in.update(2.0)
    values = derived.derived_values(snap)
    assert values['input_power'] == 100.0
    assert values['net_power'] is None
    assert values['temperature_min'] is None
