from can_backend.adapters.sim import SimAdapter
from can_backend.adapters.interface import Frame
from can_backend import metrics


def test_sim_adapter_send_recv():
    a = SimAdapter()
    a.open()
    f = Frame(can_id=0x100, data=b"\x01\x02\x03")
    a.send(f)
    r = a.recv(timeout=1.0)
    assert r is not None
    assert r.can_id == 0x100
    assert r.data == b"\x01\x02\x03"
    assert a.sent == [f]
    a.close()


def test_sim_iter_recv():
    a = SimAdapter()
    a.open()
    frames = [Frame(can_id=i, data=bytes([i & 0xFF])) for i in range(3)]
    for fr in frames:
        a.send(fr)
    # consume via iterator
    seen = []
    for fr in a.iter_recv():
        seen.append(fr)
        if len(seen) >= 3:
            break
    assert [fr.can_id for fr in seen] == [0, 1, 2]
    a.close()


def test_sim_inject_without_loopback():
    metrics.reset_all()
    a = SimAdapter(loopback=False)
    a.open()
    a.send(Frame(can_id=0x123, data=b"\x01"))
    assert a.recv(timeout=0.05) is None

    a.inject(Frame(can_id=0x1B09, data=b"\x00" * 8, is_extended=True))
    r = a.recv(timeout=1.0)
    assert r.is_extended
    assert r.timestamp is not None
    assert metrics.get("sim_inject") == 1
    assert metrics.get("sim_recv") == 1
    a.close()


def test_sim_filters():
    a = SimAdapter()
    a.open()
    a.set_filters([{"can_id": 0x700, "can_mask": 0x780}])
    a.send(Frame(can_id=0x100, data=b""))
    a.send(Frame(can_id=0x722, data=b"\x01"))
    r = a.recv(timeout=1.0)
    assert r.can_id == 0x722
    a.close()


def test_sim_send_requires_open():
    a = SimAdapter()
    try:
        a.send(Frame(can_id=0x1, data=b""))
    except RuntimeError:
        pass
    else:
        raise AssertionError("send on a closed bus should fail")
