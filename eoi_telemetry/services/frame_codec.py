"""
Frame codec: turns raw CAN frames into decoded telemetry records.

The vehicle bus is shared by two families of devices with different wire
conventions:

- battery management unit (0x100-0x108), GNSS (0x200-0x204) and MPPT
  controllers (0x700-0x77F) send little-endian integers and IEEE floats;
- the motor controller (VESC status, 0x0909-0x1B09) and the throttle
  (0x0009/0x0109/0x0309, 0x1337/0x0337) send big-endian fixed-point values.

``decode()`` never raises. A frame with an unknown identifier, or whose
payload is too short for the fields its identifier requires, yields ``None``.
"""
import struct
from typing import Callable, Dict, Optional

from eoi_telemetry.constants import (
    BATTERY_SOC_SCALE, BATTERY_VOLTAGE_SCALE,
    CAN_ID_BATTERY_CELL_VOLTAGES_1_4, CAN_ID_BATTERY_CELL_VOLTAGES_5_8,
    CAN_ID_BATTERY_CELL_VOLTAGES_9_12, CAN_ID_BATTERY_CELL_VOLTAGES_13_14_PACK_STACK,
    CAN_ID_BATTERY_CHARGE_AND_DISCHARGE_CURRENT, CAN_ID_BATTERY_PACK_AND_PERIPHERAL_CURRENT,
    CAN_ID_BATTERY_SOC_ERRORS_BALANCING, CAN_ID_BATTERY_TEMPERATURES_AND_STATES,
    CAN_ID_BATTERY_UPTIME, CAN_ID_GNSS_DATE_TIME, CAN_ID_GNSS_LATITUDE, CAN_ID_GNSS_LONGITUDE,
    CAN_ID_GNSS_SPEED_AND_HEADING, CAN_ID_GNSS_STATUS,
    CAN_ID_THROTTLE_CURRENT, CAN_ID_THROTTLE_DUTY_CYCLE, CAN_ID_THROTTLE_RPM,
    CAN_ID_THROTTLE_STATUS, CAN_ID_THROTTLE_STATUS_ALT,
    CAN_ID_VESC_STATUS_1, CAN_ID_VESC_STATUS_2, CAN_ID_VESC_STATUS_3, CAN_ID_VESC_STATUS_4,
    CAN_ID_VESC_STATUS_5, MPPT_BASE_ADDRESS, MPPT_INFO_POWER, MPPT_INFO_STATUS,
    MPPT_STOP_ADDRESS, THROTTLE_CONFIG_LENGTH, THROTTLE_STATUS_LENGTH, THROTTLE_VALUE_SCALE,
)
from eoi_telemetry.models.can_frame import CanFrame
from eoi_telemetry.models.messages import (
    BatteryUptime, CellVoltageGroup, CellVoltages13To14PackAndStack, ChargeAndDischargeCurrent,
    DecodedMessage, GnssDateTime, GnssLatitude, GnssLongitude, GnssSpeedAndHeading, GnssStatus,
    MpptChannelPower, MpptChannelState, MpptMessage, MpptPower, MpptStatus,
    PackAndPeripheralCurrent, SocErrorFlagsAndBalancing, StatusMessage1, StatusMessage2,
    StatusMessage3, StatusMessage4, StatusMessage5, TemperaturesAndStates, ThrottleConfig,
    ThrottleControlType, ThrottleCurrentCommand, ThrottleDutyCycleCommand, ThrottleErrors,
    ThrottleRpmCommand, ThrottleStatus,
)


class _Truncated(Exception):
    """Internal signal: the payload ends before a required field."""


class _Reader:
    """Fixed-offset field access over one payload.

    Every accessor raises ``_Truncated`` when the field does not fit, which
    ``decode()`` turns into ``None`` for the whole frame.
    """

    __slots__ = ('data',)

    def __init__(self, data: bytes):
        self.data = data

    def _unpack(self, fmt: str, offset: int):
        size = struct.calcsize(fmt)
        if offset + size > len(self.data):
            raise _Truncated()
        return struct.unpack_from(fmt, self.data, offset)[0]

    # little-endian
    def u8(self, offset: int) -> int:
        return self._unpack('B', offset)

    def i8(self, offset: int) -> int:
        return self._unpack('b', offset)

    def u16_le(self, offset: int) -> int:
        return self._unpack('<H', offset)

    def i16_le(self, offset: int) -> int:
        return self._unpack('<h', offset)

    def u32_le(self, offset: int) -> int:
        return self._unpack('<I', offset)

    def f32_le(self, offset: int) -> float:
        return self._unpack('<f', offset)

    def f64_le(self, offset: int) -> float:
        return self._unpack('<d', offset)

    # big-endian
    def i16_be(self, offset: int) -> int:
        return self._unpack('>h', offset)

    def u32_be(self, offset: int) -> int:
        return self._unpack('>I', offset)

    def i32_be(self, offset: int) -> int:
        return self._unpack('>i', offset)


# --- battery ----------------------------------------------------------------

def _cell_voltages(r: _Reader, count: int):
    return tuple(r.u16_le(2 * i) / BATTERY_VOLTAGE_SCALE for i in range(count))


def _pack_and_peripheral_current(r: _Reader):
    return PackAndPeripheralCurrent(pack_current=r.f32_le(0), peripheral_current=r.f32_le(4))


def _charge_and_discharge_current(r: _Reader):
    return ChargeAndDischargeCurrent(charge_current=r.f32_le(0), discharge_current=-1.0 * r.f32_le(4))


def _soc_errors_balancing(r: _Reader):
    return SocErrorFlagsAndBalancing(
        state_of_charge=r.u16_le(0) / BATTERY_SOC_SCALE,
        error_flags=r.u32_le(2),
        balancing_status=r.u16_le(6),
    )


def _cell_group(first_cell: int) -> Callable[[_Reader], CellVoltageGroup]:
    def parse(r: _Reader) -> CellVoltageGroup:
        return CellVoltageGroup(first_cell=first_cell, cell_voltages=_cell_voltages(r, 4))
    return parse


def _cells_13_14_pack_stack(r: _Reader):
    return CellVoltages13To14PackAndStack(
        cell_voltages=_cell_voltages(r, 2),
        pack_voltage=r.u16_le(4) / BATTERY_VOLTAGE_SCALE,
        stack_voltage=r.u16_le(6) / BATTERY_VOLTAGE_SCALE,
    )


def _temperatures_and_states(r: _Reader):
    return TemperaturesAndStates(
        temperatures=(r.i8(0), r.i8(1), r.i8(2), r.i8(3)),
        ic_temperature=r.i8(4),
        battery_state=r.u8(5),
        charge_state=r.u8(6),
        discharge_state=r.u8(7),
    )


def _uptime(r: _Reader):
    return BatteryUptime(uptime_ms=r.u32_le(0))


# --- GNSS -------------------------------------------------------------------

def _gnss_status(r: _Reader):
    return GnssStatus(fix=r.u8(0), sats=r.u8(1), sats_used=r.u8(2))


def _gnss_speed_heading(r: _Reader):
    return GnssSpeedAndHeading(speed_kmh=r.f32_le(0), heading=r.f32_le(4))


def _gnss_latitude(r: _Reader):
    return GnssLatitude(latitude=r.f64_le(0))


def _gnss_longitude(r: _Reader):
    return GnssLongitude(longitude=r.f64_le(0))


def _gnss_date_time(r: _Reader):
    return GnssDateTime(
        year=r.u16_le(0),
        month=r.u8(2),
        day=r.u8(3),
        hours=r.u8(4),
        minutes=r.u8(5),
        seconds=r.u8(6),
    )


# --- motor controller (big-endian) -----------------------------------------

def _vesc_status_1(r: _Reader):
    return StatusMessage1(
        rpm=r.i32_be(0),
        total_current=r.i16_be(4) / 10.0,
        duty_cycle=r.i16_be(6) / 10.0,
    )


def _vesc_status_2(r: _Reader):
    return StatusMessage2(
        amp_hours_used=r.u32_be(0) / 10000.0,
        amp_hours_generated=r.u32_be(4) / 10000.0,
    )


def _vesc_status_3(r: _Reader):
    return StatusMessage3(
        watt_hours_used=r.u32_be(0) / 10000.0,
        watt_hours_generated=r.u32_be(4) / 10000.0,
    )


def _vesc_status_4(r: _Reader):
    return StatusMessage4(
        fet_temp=r.i16_be(0) / 10.0,
        motor_temp=r.i16_be(2) / 10.0,
        total_input_current=r.i16_be(4) / 10.0,
        current_pid_position=r.i16_be(6) / 50.0,
    )


def _vesc_status_5(r: _Reader):
    return StatusMessage5(input_voltage=r.i16_be(4) / 10.0, tachometer=r.i32_be(0))


# --- throttle (big-endian) --------------------------------------------------

def _throttle_command(record_type):
    def parse(r: _Reader):
        return record_type(value=r.i32_be(0) / 1000.0)
    return parse


def _throttle_status_or_config(r: _Reader):
    # Status and config share the identifier; the DLC tells them apart
    length = len(r.data)
    if length == THROTTLE_STATUS_LENGTH:
        return ThrottleStatus(
            value=(r.i16_be(0) / THROTTLE_VALUE_SCALE) * 100.0,
            raw_angle=r.i16_be(2),
            raw_deadman=r.i16_be(4),
            gain=r.u8(6),
            errors=ThrottleErrors.from_byte(r.u8(7)),
        )
    if length == THROTTLE_CONFIG_LENGTH:
        return ThrottleConfig(
            control_type=ThrottleControlType.from_raw(r.u8(0)),
            lever_forward=r.i16_be(2),
            lever_backward=r.i16_be(4),
        )
    return None


# --- MPPT -------------------------------------------------------------------

def _mppt(can_id: int, r: _Reader) -> Optional[MpptMessage]:
    mppt_id = (can_id >> 4) & 0x7
    info_field = can_id & 0xF
    channel = info_field >> 1

    if info_field in (0, 2, 4, 6):
        info = MpptChannelPower(channel=channel, voltage_in=r.f32_le(0), current_in=r.f32_le(4))
    elif info_field in (1, 3, 5, 7):
        info = MpptChannelState(
            channel=channel,
            duty_cycle=r.u16_le(0),
            algorithm=r.u8(2),
            algorithm_state=r.u8(3),
            channel_active=r.u8(4) != 0,
        )
    elif info_field == MPPT_INFO_POWER:
        info = MpptPower(voltage_out=r.f32_le(0), current_out=r.f32_le(4))
    elif info_field == MPPT_INFO_STATUS:
        flags = r.u8(7)
        info = MpptStatus(
            voltage_out_switch=r.f32_le(0),
            temperature=r.i16_le(4),
            state=r.u8(6),
            pwm_enabled=bool(flags & 0b01),
            switch_on=bool(flags & 0b10),
        )
    else:
        # remaining info fields are not published by the controllers we know
        return None
    return MpptMessage(mppt_id=mppt_id, info=info)


_EXACT_DECODERS: Dict[int, Callable[[_Reader], Optional[DecodedMessage]]] = {
    CAN_ID_BATTERY_PACK_AND_PERIPHERAL_CURRENT: _pack_and_peripheral_current,
    CAN_ID_BATTERY_CHARGE_AND_DISCHARGE_CURRENT: _charge_and_discharge_current,
    CAN_ID_BATTERY_SOC_ERRORS_BALANCING: _soc_errors_balancing,
    CAN_ID_BATTERY_CELL_VOLTAGES_1_4: _cell_group(0),
    CAN_ID_BATTERY_CELL_VOLTAGES_5_8: _cell_group(4),
    CAN_ID_BATTERY_CELL_VOLTAGES_9_12: _cell_group(8),
    CAN_ID_BATTERY_CELL_VOLTAGES_13_14_PACK_STACK: _cells_13_14_pack_stack,
    CAN_ID_BATTERY_TEMPERATURES_AND_STATES: _temperatures_and_states,
    CAN_ID_BATTERY_UPTIME: _uptime,

    CAN_ID_GNSS_STATUS: _gnss_status,
    CAN_ID_GNSS_SPEED_AND_HEADING: _gnss_speed_heading,
    CAN_ID_GNSS_LATITUDE: _gnss_latitude,
    CAN_ID_GNSS_LONGITUDE: _gnss_longitude,
    CAN_ID_GNSS_DATE_TIME: _gnss_date_time,

    CAN_ID_VESC_STATUS_1: _vesc_status_1,
    CAN_ID_VESC_STATUS_2: _vesc_status_2,
    CAN_ID_VESC_STATUS_3: _vesc_status_3,
    CAN_ID_VESC_STATUS_4: _vesc_status_4,
    CAN_ID_VESC_STATUS_5: _vesc_status_5,

    CAN_ID_THROTTLE_DUTY_CYCLE: _throttle_command(ThrottleDutyCycleCommand),
    CAN_ID_THROTTLE_CURRENT: _throttle_command(ThrottleCurrentCommand),
    CAN_ID_THROTTLE_RPM: _throttle_command(ThrottleRpmCommand),
    CAN_ID_THROTTLE_STATUS: _throttle_status_or_config,
    CAN_ID_THROTTLE_STATUS_ALT: _throttle_status_or_config,
}


def is_known_id(can_id: int) -> bool:
    """Return True if ``can_id`` belongs to a band this codec understands."""
    return can_id in _EXACT_DECODERS or MPPT_BASE_ADDRESS <= can_id <= MPPT_STOP_ADDRESS


def decode(frame: CanFrame) -> Optional[DecodedMessage]:
    """Decode one CAN frame.

    The identifier is compared as a plain integer whether the frame uses a
    standard or an extended identifier.

    Args:
        frame: Frame received from the bus

    Returns:
        The decoded record, or None if the identifier is not recognized or the
        payload is too short.
    """
    can_id = int(frame.can_id)
    reader = _Reader(bytes(frame.data))
    try:
        parser = _EXACT_DECODERS.get(can_id)
        if parser is not None:
            return parser(reader)
        if MPPT_BASE_ADDRESS <= can_id <= MPPT_STOP_ADDRESS:
            return _mppt(can_id, reader)
    except _Truncated:
        return None
    return None
