import pytest

can = pytest.importorskip("can")

from can_backend.adapters.python_can_adapter import PythonCanAdapter, frame_from_message
from can_backend.adapters.interface import Frame


def test_frame_from_message_keeps_extended_flag():
    msg = can.Message(arbitration_id=0x1B09, data=b"\x01\x02", is_extended_id=True, timestamp=12.5)
    f = frame_from_message(msg)
    assert f.can_id == 0x1B09
    assert f.data == b"\x01\x02"
    assert f.is_extended is True
    assert f.timestamp == 12.5


def test_python_can_virtual_send_recv():
    # two buses on the same virtual channel see each other's frames
    recv = PythonCanAdapter(channel='eoi-test', interface='virtual')
    send = PythonCanAdapter(channel='eoi-test', interface='virtual')
    recv.open()
    send.open()
    try:
        send.send(Frame(can_id=0x0909, data=b'\x00\x00\x13\x88\x00\x7b\x01\xc8', is_extended=True))
        r = recv.recv(timeout=1.0)
    finally:
        recv.close()
        send.close()

    assert r is not None
    assert r.can_id == 0x0909
    assert r.is_extended is True
    assert r.data == b'\x00\x00\x13\x88\x00\x7b\x01\xc8'


def test_short_payload_is_not_padded():
    recv = PythonCanAdapter(channel='eoi-test-dlc', interface='virtual')
    send = PythonCanAdapter(channel='eoi-test-dlc', interface='virtual')
    recv.open()
    send.open()
    try:
        send.send(Frame(can_id=0x337, data=bytes(6)))
        r = recv.recv(timeout=1.0)
    finally:
        recv.close()
        send.close()
    assert len(r.data) == 6


def test_send_before_open():
    a = PythonCanAdapter(channel='eoi-test', interface='virtual')
    with pytest.raises(RuntimeError):
        a.send(Frame(can_id=0x1, data=b''))
    assert a.recv(timeout=0) is None


def test_filters_applied_on_open(monkeypatch):
    import can_backend.adapters.python_can_adapter as pc_mod

    applied = []

    class FakeBus:
        def set_filters(self, filters):
            applied.append(filters)

        def shutdown(self):
            pass

    monkeypatch.setattr(pc_mod.can, "Bus", lambda **kw: FakeBus())
    a = PythonCanAdapter(channel='x', interface='virtual')
    a.set_filters([{'can_id': 0x100}])
    assert applied == []
    a.open()
    assert applied == [[{'can_id': 0x100, 'can_mask': 0x7FF, 'extended': False}]]
    a.close()
