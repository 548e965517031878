import os
import socket
import threading

import pytest

from reactorhttp.channel import Channel, FDEvent
from reactorhttp.dispatcher import Dispatcher
from reactorhttp.event_loop import ElemType, EventLoop


class RecordingDispatcher(Dispatcher):
    def __init__(self):
        super().__init__()
        self.calls = []

    def add(self, channel):
        self.calls.append(("add", channel.fd))

    def remove(self, channel):
        self.calls.append(("remove", channel.fd))
        if channel.destroy_callback is not None:
            channel.destroy_callback()

    def modify(self, channel):
        self.calls.append(("modify", channel.fd))

    def dispatch(self, timeout):
        return []

    def clear(self):
        self.calls.append(("clear", None))


@pytest.fixture
def recorder():
    return RecordingDispatcher()


@pytest.fixture
def loop(recorder):
    ev = EventLoop("Tester", dispatcher=recorder)
    yield ev
    ev.close()


def test_default_thread_name():
    with EventLoop(dispatcher=RecordingDispatcher()) as ev:
        assert ev.thread_name == "MainThread"


def test_custom_thread_name(loop):
    assert loop.thread_name == "Tester"


def test_wakeup_channel_registered_on_creation(loop, recorder):
    assert loop.wakeup_fd in loop.channel_map
    assert ("add", loop.wakeup_fd) in recorder.calls


def test_add_task_in_owner_thread_runs_immediately(loop, recorder):
    channel = Channel(300, FDEvent.READ)
    loop.add_task(channel, ElemType.ADD)
    assert loop.channel_map.get(300) is channel
    assert recorder.calls[-1] == ("add", 300)
    assert loop.channel_map.size > 300


def test_adding_same_fd_twice_registers_once(loop, recorder):
    first = Channel(40, FDEvent.READ)
    second = Channel(40, FDEvent.WRITE)
    loop.add(first)
    loop.add(second)
    assert loop.channel_map.get(40) is first
    assert recorder.calls.count(("add", 40)) == 1


def test_modify_unknown_channel_raises(loop):
    with pytest.raises(KeyError):
        loop.modify(Channel(41, FDEvent.READ))


def test_modify_known_channel(loop, recorder):
    channel = Channel(42, FDEvent.READ)
    loop.add_task(channel, ElemType.ADD)
    channel.write_event_enable(True)
    loop.add_task(channel, ElemType.MODIFY)
    assert recorder.calls[-1] == ("modify", 42)
    assert loop.channel_map.get(42) is channel
    assert loop.channel_map.get(42).is_write_event_enabled() is True


def test_remove_beyond_map_size_raises(loop):
    with pytest.raises(KeyError):
        loop.remove(Channel(loop.channel_map.size + 5, FDEvent.READ))


def test_delete_task_runs_destroy_callback(loop, recorder):
    destroyed = []
    channel = Channel(43, FDEvent.READ, destroy_callback=lambda: destroyed.append(43))
    loop.add_task(channel, ElemType.ADD)
    loop.add_task(channel, ElemType.DELETE)
    assert destroyed == [43]
    assert recorder.calls[-1] == ("remove", 43)


def test_add_task_from_other_thread_is_deferred(loop, recorder):
    channel = Channel(77, FDEvent.READ)
    worker = threading.Thread(target=loop.add_task, args=(channel, ElemType.ADD))
    worker.start()
    worker.join(5)
    assert 77 not in loop.channel_map
    loop.process_tasks()
    assert loop.channel_map.get(77) is channel
    assert ("add", 77) in recorder.calls


def test_tasks_run_in_order(loop, recorder):
    channel = Channel(50, FDEvent.READ)
    worker = threading.Thread(
        target=lambda: [
            loop.add_task(channel, ElemType.ADD),
            loop.add_task(channel, ElemType.MODIFY),
        ]
    )
    worker.start()
    worker.join(5)
    assert 50 not in loop.channel_map
    before = len(recorder.calls)
    loop.process_tasks()
    assert recorder.calls[before:] == [("add", 50), ("modify", 50)]
    assert loop.channel_map.get(50) is channel


def test_activate_calls_matching_callbacks(loop):
    seen = []
    channel = Channel(
        60,
        FDEvent.READ | FDEvent.WRITE,
        read_callback=lambda: seen.append("read"),
        write_callback=lambda: seen.append("write"),
    )
    loop.add(channel)
    loop.activate(60, FDEvent.READ)
    loop.activate(60, FDEvent.WRITE)
    loop.activate(60, FDEvent.READ | FDEvent.WRITE)
    assert seen == ["read", "write", "read", "write"]


def test_activate_negative_fd_raises(loop):
    with pytest.raises(ValueError):
        loop.activate(-1, FDEvent.READ)


def test_activate_unknown_fd_raises(loop):
    with pytest.raises(KeyError):
        loop.activate(999, FDEvent.READ)


def test_activate_wakeup_without_data_does_not_block(loop):
    loop.activate(loop.wakeup_fd, FDEvent.READ)
    assert loop.wakeup_fd in loop.channel_map


def test_destroy_channel_forgets_and_closes(loop):
    read_fd, write_fd = os.pipe()
    try:
        channel = Channel(read_fd, FDEvent.READ)
        loop.add(channel)
        loop.destroy_channel(channel)
        assert read_fd not in loop.channel_map
        with pytest.raises(OSError):
            os.fstat(read_fd)
    finally:
        os.close(write_fd)


def test_run_from_other_thread_raises(loop):
    errors = []

    def attempt():
        try:
            loop.run()
        except RuntimeError as exc:
            errors.append(exc)

    worker = threading.Thread(target=attempt)
    worker.start()
    worker.join(5)
    assert len(errors) == 1
    assert loop.is_quit is False


def test_run_returns_after_quit(loop):
    loop.quit()
    loop.run()
    assert loop.is_quit is True


def test_run_and_quit_with_real_dispatcher():
    holder = {}
    ready = threading.Event()
    received = []

    def worker():
        ev = EventLoop("Worker")
        holder["loop"] = ev
        ready.set()
        try:
            ev.run()
        finally:
            ev.close()

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    assert ready.wait(5)
    ev = holder["loop"]

    a, b = socket.socketpair()
    try:
        def on_read():
            received.append(b.recv(64))
            ev.quit()

        ev.add_task(Channel(b.fileno(), FDEvent.READ, read_callback=on_read), ElemType.ADD)
        a.sendall(b"ping")
        thread.join(10)
        assert not thread.is_alive()
        assert received == [b"ping"]
        assert ev.is_quit is True
        assert ev.thread_name == "Worker"
    finally:
        a.close()
        b.close()