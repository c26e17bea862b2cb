import copy

from flexlog.level import Level
from flexlog.message import (
    Message,
    MessageRef,
    MessageState,
    SourceLocation,
    capture_location,
)


def test_message_defaults():
    msg = Message()
    assert msg.level is Level.INFO
    assert msg.state is MessageState.POOLED
    assert msg.ref_count == 0
    assert msg.structured_data == {}
    assert not msg.is_active()


def test_add_and_release_ref():
    msg = Message()
    msg.add_ref()
    msg.add_ref()
    assert msg.ref_count == 2
    assert msg.release_ref() is False
    assert msg.release_ref() is True
    assert msg.ref_count == 0


def test_is_active_follows_state():
    msg = Message(state=MessageState.ACTIVE)
    assert msg.is_active()
    msg.state = MessageState.RELEASING
    assert not msg.is_active()


def test_message_ref_counts_references():
    msg = Message(state=MessageState.ACTIVE)
    ref = MessageRef(msg)
    assert msg.ref_count == 1
    other = copy.copy(ref)
    assert msg.ref_count == 2
    assert other.get() is msg
    other.reset()
    assert msg.ref_count == 1
    assert other.get() is None


def test_message_ref_truthiness():
    assert not MessageRef()
    msg = Message(state=MessageState.ACTIVE)
    ref = MessageRef(msg)
    assert ref
    msg.state = MessageState.RELEASING
    assert not ref


def test_last_reset_on_releasing_message_finalizes():
    finalized = []
    msg = Message(state=MessageState.RELEASING)
    ref = MessageRef(msg, finalized.append)
    second = ref.copy()
    ref.reset()
    assert finalized == []
    second.reset()
    assert finalized == [msg]


def test_last_reset_on_active_message_does_not_finalize():
    finalized = []
    msg = Message(state=MessageState.ACTIVE)
    ref = MessageRef(msg, finalized.append)
    ref.reset()
    assert finalized == []
    assert msg.state is MessageState.ACTIVE


def test_default_finalize_returns_message_to_pool():
    msg = Message(state=MessageState.RELEASING)
    with MessageRef(msg) as held:
        assert held is msg
    assert msg.state is MessageState.POOLED


def test_reset_twice_is_harmless():
    msg = Message(state=MessageState.ACTIVE)
    ref = MessageRef(msg)
    ref.reset()
    ref.reset()
    assert msg.ref_count == 0


def test_capture_location_reports_caller():
    loc = capture_location(0)
    assert isinstance(loc, SourceLocation)
    assert loc.file_name == __file__
    assert loc.function_name == "test_capture_location_reports_caller"
    assert loc.line > 0


def _helper():
    return capture_location(1)


def test_capture_location_depth_skips_frames():
    loc = _helper()
    assert loc.function_name == "test_capture_location_depth_skips_frames"