from hypothesis import given, settings, strategies as st

from eoi_telemetry.models.can_frame import CanFrame
from eoi_telemetry.services.frame_codec import decode

_INTERESTING_IDS = st.one_of(
    st.integers(min_value=0, max_value=0x1FFFFFFF),
    st.sampled_from([0x100, 0x101, 0x102, 0x103, 0x104, 0x105, 0x106, 0x107, 0x108,
                     0x200, 0x201, 0x202, 0x203, 0x204,
                     0x0009, 0x0109, 0x0309, 0x0337, 0x1337,
                     0x0909, 0x0E09, 0x0F09, 0x1009, 0x1B09]),
    st.integers(min_value=0x700, max_value=0x77F),
)


@given(can_id=_INTERESTING_IDS, data=st.binary(min_size=0, max_size=8))
@settings(max_examples=500, deadline=None)
def test_decode_never_raises(can_id, data):
    result = decode(CanFrame.from_id(can_id, data))
    assert result is None or hasattr(result, 'to_dict')
