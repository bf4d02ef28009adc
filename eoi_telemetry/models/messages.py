"""
Decoded telemetry message records.

Every record produced by :func:`eoi_telemetry.services.frame_codec.decode` is
one of the frozen dataclasses below. Records are grouped into five categories
(battery, motor controller, throttle, MPPT, GNSS); ``DecodedMessage`` is the
union of all of them. Consumers dispatch on the concrete type.
"""
import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Tuple, Union


class MessageCategory(str, enum.Enum):
    """Top-level subsystem a decoded message belongs to."""
    BATTERY = 'battery'
    MOTOR_CONTROLLER = 'motor_controller'
    THROTTLE = 'throttle'
    MPPT = 'mppt'
    GNSS = 'gnss'


class _Record:
    category: ClassVar[MessageCategory]

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON friendly representation including the record type."""
        data = asdict(self)
        data['type'] = type(self).__name__
        data['category'] = self.category.value
        return data


# --- Battery management unit ------------------------------------------------

@dataclass(frozen=True)
class PackAndPeripheralCurrent(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.BATTERY
    pack_current: float
    peripheral_current: float


@dataclass(frozen=True)
class ChargeAndDischargeCurrent(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.BATTERY
    charge_current: float
    discharge_current: float


@dataclass(frozen=True)
class SocErrorFlagsAndBalancing(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.BATTERY
    state_of_charge: float  # percent
    error_flags: int
    balancing_status: int


@dataclass(frozen=True)
class CellVoltageGroup(_Record):
    """Four consecutive cell voltages starting at ``first_cell`` (0-based)."""
    category: ClassVar[MessageCategory] = MessageCategory.BATTERY
    first_cell: int
    cell_voltages: Tuple[float, float, float, float]


@dataclass(frozen=True)
class CellVoltages13To14PackAndStack(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.BATTERY
    cell_voltages: Tuple[float, float]
    pack_voltage: float
    stack_voltage: float

    first_cell: ClassVar[int] = 12


@dataclass(frozen=True)
class TemperaturesAndStates(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.BATTERY
    temperatures: Tuple[int, int, int, int]
    ic_temperature: int
    battery_state: int
    charge_state: int
    discharge_state: int


@dataclass(frozen=True)
class BatteryUptime(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.BATTERY
    uptime_ms: int


# --- GNSS -------------------------------------------------------------------

@dataclass(frozen=True)
class GnssStatus(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.GNSS
    fix: int
    sats: int
    sats_used: int


@dataclass(frozen=True)
class GnssSpeedAndHeading(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.GNSS
    speed_kmh: float
    heading: float


@dataclass(frozen=True)
class GnssLatitude(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.GNSS
    latitude: float


@dataclass(frozen=True)
class GnssLongitude(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.GNSS
    longitude: float


@dataclass(frozen=True)
class GnssDateTime(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.GNSS
    year: int
    month: int
    day: int
    hours: int
    minutes: int
    seconds: int

    def as_datetime(self):
        """Return a ``datetime`` or None when the receiver sent an invalid date."""
        try:
            return datetime(self.year, self.month, self.day, self.hours, self.minutes, self.seconds)
        except ValueError:
            return None

    def __str__(self) -> str:
        return f"{self.hours:02}:{self.minutes:02}:{self.seconds:02}"


# --- MPPT -------------------------------------------------------------------

@dataclass(frozen=True)
class MpptChannelPower:
    channel: int
    voltage_in: float
    current_in: float

    @property
    def power(self) -> float:
        return self.voltage_in * self.current_in


@dataclass(frozen=True)
class MpptChannelState:
    channel: int
    duty_cycle: int
    algorithm: int
    algorithm_state: int
    channel_active: bool


@dataclass(frozen=True)
class MpptPower:
    voltage_out: float
    current_out: float


@dataclass(frozen=True)
class MpptStatus:
    voltage_out_switch: float
    temperature: int
    state: int
    pwm_enabled: bool
    switch_on: bool


MpptInfo = Union[MpptChannelPower, MpptChannelState, MpptPower, MpptStatus]


@dataclass(frozen=True)
class MpptMessage(_Record):
    """An MPPT info field together with the controller address it came from."""
    category: ClassVar[MessageCategory] = MessageCategory.MPPT
    mppt_id: int
    info: MpptInfo

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['info']['type'] = type(self.info).__name__
        return data


# --- Motor controller (VESC) ------------------------------------------------

@dataclass(frozen=True)
class StatusMessage1(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.MOTOR_CONTROLLER
    rpm: int
    total_current: float
    duty_cycle: float


@dataclass(frozen=True)
class StatusMessage2(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.MOTOR_CONTROLLER
    amp_hours_used: float
    amp_hours_generated: float


@dataclass(frozen=True)
class StatusMessage3(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.MOTOR_CONTROLLER
    watt_hours_used: float
    watt_hours_generated: float


@dataclass(frozen=True)
class StatusMessage4(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.MOTOR_CONTROLLER
    fet_temp: float
    motor_temp: float
    total_input_current: float
    current_pid_position: float


@dataclass(frozen=True)
class StatusMessage5(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.MOTOR_CONTROLLER
    input_voltage: float
    tachometer: int


# --- Throttle ---------------------------------------------------------------

class ThrottleControlType(enum.IntEnum):
    DUTY_CYCLE = 0
    FILTERED_DUTY_CYCLE = 1
    CURRENT = 2
    RPM = 3
    CURRENT_RELATIVE = 4
    UNKNOWN = 255

    @classmethod
    def from_raw(cls, raw: int) -> 'ThrottleControlType':
        """Map a raw byte to a control type; unknown values map to UNKNOWN."""
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ThrottleErrors:
    """Error byte of the throttle status frame, unpacked into its sub-flags."""
    active: bool = False
    twi: int = 0
    no_eeprom: bool = False
    gain_clipping: bool = False
    gain_invalid: bool = False
    deadman_missing: bool = False
    impedance_high: bool = False

    @classmethod
    def from_byte(cls, raw: int) -> 'ThrottleErrors':
        return cls(
            active=raw != 0,
            twi=raw & 0b111,
            no_eeprom=bool(raw & (1 << 3)),
            gain_clipping=bool(raw & (1 << 4)),
            gain_invalid=bool(raw & (1 << 5)),
            deadman_missing=bool(raw & (1 << 6)),
            impedance_high=bool(raw & (1 << 7)),
        )

    def has_error(self) -> bool:
        return self.active

    def __str__(self) -> str:
        if not self.active:
            return "none"
        flags = []
        if self.twi:
            flags.append(f"TWI({self.twi})")
        for name in ('no_eeprom', 'gain_clipping', 'gain_invalid', 'deadman_missing', 'impedance_high'):
            if getattr(self, name):
                flags.append(name.upper())
        return " ".join(flags)


@dataclass(frozen=True)
class ThrottleDutyCycleCommand(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.THROTTLE
    value: float


@dataclass(frozen=True)
class ThrottleCurrentCommand(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.THROTTLE
    value: float


@dataclass(frozen=True)
class ThrottleRpmCommand(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.THROTTLE
    value: float


@dataclass(frozen=True)
class ThrottleStatus(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.THROTTLE
    value: float  # percent
    raw_angle: int
    raw_deadman: int
    gain: int
    errors: ThrottleErrors = field(default_factory=ThrottleErrors)


@dataclass(frozen=True)
class ThrottleConfig(_Record):
    category: ClassVar[MessageCategory] = MessageCategory.THROTTLE
    control_type: ThrottleControlType
    lever_forward: int
    lever_backward: int


BatteryMessage = Union[
    PackAndPeripheralCurrent, ChargeAndDischargeCurrent, SocErrorFlagsAndBalancing,
    CellVoltageGroup, CellVoltages13To14PackAndStack, TemperaturesAndStates, BatteryUptime,
]
GnssMessage = Union[GnssStatus, GnssSpeedAndHeading, GnssLatitude, GnssLongitude, GnssDateTime]
MotorControllerMessage = Union[StatusMessage1, StatusMessage2, StatusMessage3, StatusMessage4, StatusMessage5]
ThrottleMessage = Union[
    ThrottleDutyCycleCommand, ThrottleCurrentCommand, ThrottleRpmCommand, ThrottleStatus, ThrottleConfig,
]
DecodedMessage = Union[BatteryMessage, GnssMessage, MpptMessage, MotorControllerMessage, ThrottleMessage]
