"""
Constants and protocol values for the EOI CAN telemetry core.

This module centralizes the identifiers, limits and default timings used
throughout the decoder, collector and pipeline. It is the single source of
truth for these values.

Constants are organized by category:
- CAN ID ranges and frame limits
- Battery management unit identifiers
- GNSS identifiers
- MPPT identifier band
- Motor controller (VESC) and throttle identifiers
- Keep-alive frame
- Default pipeline settings
"""

# CAN ID ranges
CAN_ID_MIN = 0
CAN_ID_MAX_STANDARD = 0x7FF  # Standard CAN (11-bit)
CAN_ID_MAX_EXTENDED = 0x1FFFFFFF  # Extended CAN (29-bit)

# CAN frame limits
CAN_FRAME_MAX_LENGTH = 8  # Classic CAN maximum data length

# Battery management unit (little-endian)
CAN_ID_BATTERY_PACK_AND_PERIPHERAL_CURRENT = 0x100
CAN_ID_BATTERY_CHARGE_AND_DISCHARGE_CURRENT = 0x101
CAN_ID_BATTERY_SOC_ERRORS_BALANCING = 0x102
CAN_ID_BATTERY_CELL_VOLTAGES_1_4 = 0x103
CAN_ID_BATTERY_CELL_VOLTAGES_5_8 = 0x104
CAN_ID_BATTERY_CELL_VOLTAGES_9_12 = 0x105
CAN_ID_BATTERY_CELL_VOLTAGES_13_14_PACK_STACK = 0x106
CAN_ID_BATTERY_TEMPERATURES_AND_STATES = 0x107
CAN_ID_BATTERY_UPTIME = 0x108

BATTERY_CELL_COUNT = 14
BATTERY_TEMPERATURE_COUNT = 4
BATTERY_SOC_SCALE = 100.0
BATTERY_VOLTAGE_SCALE = 1000.0

# GNSS (little-endian)
CAN_ID_GNSS_STATUS = 0x200
CAN_ID_GNSS_SPEED_AND_HEADING = 0x201
CAN_ID_GNSS_LATITUDE = 0x202
CAN_ID_GNSS_LONGITUDE = 0x203
CAN_ID_GNSS_DATE_TIME = 0x204

# MPPT band: 8 controller addresses x 16 info fields starting at 0x700
MPPT_BASE_ADDRESS = 0x700
MPPT_MAX_DEVICES = 8
MPPT_INFO_FIELDS = 16
MPPT_STOP_ADDRESS = MPPT_BASE_ADDRESS + (MPPT_MAX_DEVICES * MPPT_INFO_FIELDS) - 1
MPPT_INFO_POWER = 8
MPPT_INFO_STATUS = 9
MPPT_PANEL_COUNT = 11

# Motor controller status (VESC, big-endian)
CAN_ID_VESC_STATUS_1 = 0x0909
CAN_ID_VESC_STATUS_2 = 0x0E09
CAN_ID_VESC_STATUS_3 = 0x0F09
CAN_ID_VESC_STATUS_4 = 0x1009
CAN_ID_VESC_STATUS_5 = 0x1B09

# Throttle commands to the motor controller (big-endian)
CAN_ID_THROTTLE_DUTY_CYCLE = 0x0009
CAN_ID_THROTTLE_CURRENT = 0x0109
CAN_ID_THROTTLE_RPM = 0x0309
CAN_ID_THROTTLE_STATUS = 0x1337
CAN_ID_THROTTLE_STATUS_ALT = 0x0337
THROTTLE_STATUS_LENGTH = 8
THROTTLE_CONFIG_LENGTH = 6
THROTTLE_VALUE_SCALE = 512.0

# Keep-alive frame transmitted by the display node
CAN_ID_KEEPALIVE = 0x123
KEEPALIVE_PAYLOAD = bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08])

# Default pipeline settings
DEFAULT_TTL_SECONDS = 5.0  # Display value timeout
DEFAULT_COLLECTOR_CAPACITY = 100
DEFAULT_CHANNEL_CAPACITY = 100
DEFAULT_RENDER_PERIOD = 0.1  # seconds
DEFAULT_DRAIN_TIMEOUT = 1.0  # seconds the receive task waits for one frame
DEFAULT_KEEPALIVE_PERIOD = 1.0  # seconds
ADAPTER_POLL_TIMEOUT = 0.5  # seconds per blocking adapter recv()

# Topologies
TOPOLOGY_CHANNEL = 'channel'
TOPOLOGY_COLLECTOR = 'collector'
CHANNEL_POLICY_BLOCK = 'block'
CHANNEL_POLICY_DROP = 'drop'

# Default CAN settings
CAN_ADAPTER_DEFAULT = 'socketcan'
CAN_CHANNEL_DEFAULT = 'vcan0'
CAN_BITRATE_DEFAULT = 1000  # kbps

# Host entry point
SNAPSHOT_LOG_INTERVAL_DEFAULT = 5.0  # seconds between snapshot summaries in the log
