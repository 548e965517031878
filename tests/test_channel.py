import pytest

from reactorhttp.channel import Channel, ChannelMap, FDEvent


@pytest.mark.parametrize(
    "raw, expected",
    [(0x01, FDEvent.TIMEOUT), (0x02, FDEvent.READ), (0x04, FDEvent.WRITE)],
)
def test_fd_event_values(raw, expected):
    assert Channel(1, raw).events == expected


def test_write_event_toggle_keeps_read():
    ch = Channel(5, FDEvent.READ)
    assert not ch.is_write_event_enabled()
    ch.write_event_enable(True)
    assert ch.is_write_event_enabled()
    assert ch.events == FDEvent.READ | FDEvent.WRITE
    ch.write_event_enable(False)
    assert not ch.is_write_event_enabled()
    assert ch.events == FDEvent.READ


def test_events_coerced_from_int():
    ch = Channel(3, 0x02 | 0x04)
    assert ch.events == FDEvent.READ | FDEvent.WRITE
    assert ch.is_write_event_enabled()


def test_channel_callbacks_stored():
    calls = []
    ch = Channel(1, FDEvent.READ, read_callback=lambda: calls.append("r"))
    ch.read_callback()
    assert calls == ["r"]
    assert ch.write_callback is None


def test_map_set_get_pop():
    m = ChannelMap(8)
    ch = Channel(3, FDEvent.READ)
    m.set(3, ch)
    assert m.get(3) is ch
    assert 3 in m
    assert len(m) == 1
    assert m.pop(3) is ch
    assert 3 not in m
    assert m.get(3) is None
    assert m.pop(3) is None


def test_make_room_doubles():
    m = ChannelMap(4)
    m.make_room(9)
    assert m.size == 16


def test_make_room_keeps_larger_size():
    m = ChannelMap(64)
    m.make_room(10)
    assert m.size == 64


def test_set_grows_to_hold_fd():
    m = ChannelMap(4)
    m.set(100, Channel(100, FDEvent.READ))
    assert m.size > 100
    assert m.get(100).fd == 100


def test_set_negative_fd_raises():
    m = ChannelMap(4)
    with pytest.raises(ValueError):
        m.set(-1, Channel(-1, FDEvent.READ))


def test_clear_then_reuse():
    m = ChannelMap(4)
    m.set(1, Channel(1, FDEvent.READ))
    m.set(2, Channel(2, FDEvent.READ))
    m.clear()
    assert len(m) == 0
    assert m.size == 0
    m.set(5, Channel(5, FDEvent.READ))
    assert m.size > 5
    assert list(m) == [5]