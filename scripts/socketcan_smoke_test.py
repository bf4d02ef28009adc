"""SocketCAN smoke-test script.

Usage (Linux with vcan0 or can0 configured):
  python scripts/socketcan_smoke_test.py --channel vcan0 --timeout 2.0

This script connects the SocketCAN adapter through CanService, sends the
display keep-alive frame and prints every frame it hears together with its
decoded record.
"""
from __future__ import annotations

import time
import argparse

from eoi_telemetry.config import CanSettings
from eoi_telemetry.constants import CAN_CHANNEL_DEFAULT, CAN_ID_KEEPALIVE, KEEPALIVE_PAYLOAD
from eoi_telemetry.models.can_frame import CanFrame
from eoi_telemetry.services.can_service import CanService, to_can_frame
from eoi_telemetry.services.frame_codec import decode


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--channel", default=CAN_CHANNEL_DEFAULT)
    p.add_argument("--timeout", type=float, default=2.0)
    args = p.parse_args()

    svc = CanService(CanSettings(adapter_type='socketcan', channel=args.channel))
    print("Opening SocketCAN adapter channel=", args.channel)
    svc.connect()

    print(f"Sending keep-alive frame id=0x{CAN_ID_KEEPALIVE:x} data={KEEPALIVE_PAYLOAD.hex()}")
    svc.send_frame(CanFrame(CAN_ID_KEEPALIVE, KEEPALIVE_PAYLOAD))

    print(f"Listening for {args.timeout} seconds...")
    start = time.time()
    count = 0
    try:
        while time.time() - start < args.timeout:
            r = svc.adapter.recv(timeout=0.5)
            if r is None:
                continue
            count += 1
            message = decode(to_can_frame(r))
            print(f"#{count}: id=0x{r.can_id:x} data={r.data.hex()} -> {message}")
    finally:
        svc.disconnect()

    print(f"Received {count} frame(s)")


if __name__ == "__main__":
    main()
