from can_backend.adapters.socketcan import SocketCanAdapter
from can_backend.adapters.interface import Frame
from can_backend import metrics


class FakeBus:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.sent = []

    def send(self, msg):
        # loop back like a vcan interface with local echo
        self.sent.append(msg)

    def recv(self, timeout=None):
        if self.sent:
            return self.sent.pop(0)
        return None

    def set_filters(self, filters):
        self.filters = filters

    def shutdown(self):
        pass


def test_socketcan_send_and_recv(monkeypatch):
    # patch can.Bus to return our FakeBus
    import can_backend.adapters.python_can_adapter as pc_mod

    buses = []

    def fake_bus_ctor(**kwargs):
        bus = FakeBus(**kwargs)
        buses.append(bus)
        return bus

    monkeypatch.setattr(pc_mod.can, "Bus", fake_bus_ctor)

    metrics.reset_all()
    a = SocketCanAdapter(channel="vcan0")
    a.open()
    assert buses[0].kwargs == {"channel": "vcan0", "interface": "socketcan"}

    a.send(Frame(can_id=0x200, data=b"\x01\x02"))
    got = a.recv(timeout=0.1)
    assert got is not None
    assert got.can_id == 0x200
    assert got.data == b"\x01\x02"
    assert got.is_extended is False

    m = metrics.get_all()
    assert m.get("python_can_send", 0) == 1
    assert m.get("python_can_recv", 0) == 1
    a.close()


def test_socketcan_channel_from_environment(monkeypatch):
    monkeypatch.setenv("SOCKETCAN_CHANNEL", "can2")
    assert SocketCanAdapter().channel == "can2"
