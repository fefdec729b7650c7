"""
Tests for the in-memory chat hub: membership bookkeeping and fan-out.
"""
import pytest

from roomshare.chat.envelope import MessageEnvelope, RECEIVE_MESSAGE, UPDATE_MESSAGE
from roomshare.realtime.hub import ChatHub


def make_envelope(room="7", sender="1", content="hi there"):
    return MessageEnvelope(
        content=content,
        sender=sender,
        sender_name="alice",
        timestamp="2026-10-16T10:00:00+00:00",
        chat_room=room,
    )


class TestMembership:

    def test_join_requires_registered_connection(self):
        hub = ChatHub()
        assert hub.join("ghost", "7") is False
        assert hub.members("7") == set()

    def test_join_and_leave(self):
        hub = ChatHub()
        hub.connect("s1", 1, "alice")
        assert hub.join("s1", 7) is True
        assert hub.members("7") == {"s1"}
        assert hub.rooms_of("s1") == {"7"}

        assert hub.leave("s1", "7") is True
        assert hub.members("7") == set()
        assert "7" not in hub.room_members

    def test_leave_twice_is_noop(self):
        hub = ChatHub()
        hub.connect("s1", 1, "alice")
        hub.join("s1", "7")
        hub.leave("s1", "7")
        assert hub.leave("s1", "7") is False
        assert hub.leave("s1", "never-joined") is False

    def test_join_is_idempotent(self):
        hub = ChatHub()
        hub.connect("s1", 1, "alice")
        hub.join("s1", "7")
        hub.join("s1", "7")
        assert hub.members("7") == {"s1"}

    def test_disconnect_drops_every_membership(self):
        hub = ChatHub()
        hub.connect("s1", 1, "alice")
        hub.connect("s2", 2, "bob")
        hub.join("s1", "7")
        hub.join("s1", "8")
        hub.join("s2", "7")

        left = hub.disconnect("s1")

        assert left == {"7", "8"}
        assert hub.members("7") == {"s2"}
        assert "8" not in hub.room_members
        assert hub.connection("s1") is None
        assert hub.disconnect("s1") == set()

    def test_sids_for_user(self):
        hub = ChatHub()
        hub.connect("s1", 1, "alice")
        hub.connect("s2", 1, "alice")
        hub.connect("s3", 2, "bob")
        assert hub.sids_for_user(1) == {"s1", "s2"}
        assert hub.sids_for_user(99) == set()


class TestSend:

    @pytest.mark.anyio
    async def test_sender_skipped_for_receive_but_gets_update(self, emitter):
        hub = ChatHub(emitter=emitter)
        hub.connect("s1", 1, "alice")
        hub.connect("s2", 2, "bob")
        hub.join("s1", "7")
        hub.join("s2", "7")

        delivery = await hub.send(make_envelope(), skip_sids=["s1"])

        assert delivery.received == ["s2"]
        assert delivery.updated == ["s1", "s2"]
        assert [e for e, _ in emitter.events_for("s1")] == [UPDATE_MESSAGE]
        assert [e for e, _ in emitter.events_for("s2")] == [RECEIVE_MESSAGE, UPDATE_MESSAGE]

    @pytest.mark.anyio
    async def test_payload_shape(self, emitter):
        hub = ChatHub(emitter=emitter)
        hub.connect("s2", 2, "bob")
        hub.join("s2", "7")

        await hub.send(make_envelope())

        _, payload = emitter.events_for("s2")[0]
        assert payload == {
            "content": "hi there",
            "sender": "1",
            "senderName": "alice",
            "timestamp": "2026-10-16T10:00:00+00:00",
            "chatRoom": "7",
        }

    @pytest.mark.anyio
    async def test_only_room_members_receive(self, emitter):
        hub = ChatHub(emitter=emitter)
        hub.connect("s1", 1, "alice")
        hub.connect("s3", 3, "carol")
        hub.join("s1", "7")
        hub.join("s3", "8")

        await hub.send(make_envelope(room="7"))

        assert emitter.events_for("s3") == []

    @pytest.mark.anyio
    async def test_empty_room_reaches_nobody(self, emitter):
        hub = ChatHub(emitter=emitter)
        delivery = await hub.send(make_envelope())
        assert delivery.received == [] and delivery.updated == []
        assert emitter.emitted == []

    @pytest.mark.anyio
    async def test_failed_emit_does_not_stop_fanout(self):
        class FlakyEmitter:
            def __init__(self):
                self.ok = []

            async def emit(self, event, data=None, to=None):
                if to == "s1":
                    raise ConnectionError("socket gone")
                self.ok.append((to, event))

        flaky = FlakyEmitter()
        hub = ChatHub(emitter=flaky)
        hub.connect("s1", 1, "alice")
        hub.connect("s2", 2, "bob")
        hub.join("s1", "7")
        hub.join("s2", "7")

        delivery = await hub.send(make_envelope())

        assert delivery.received == ["s2"]
        assert delivery.updated == ["s2"]
        assert flaky.ok == [("s2", RECEIVE_MESSAGE), ("s2", UPDATE_MESSAGE)]

    @pytest.mark.anyio
    async def test_no_emitter_attached(self):
        hub = ChatHub()
        hub.connect("s1", 1, "alice")
        hub.join("s1", "7")
        delivery = await hub.send(make_envelope())
        assert delivery.updated == []
