import pytest

from common.events import HealthAckEvent, ModelsUpdatedEvent, StreamEndedEvent, StreamStartedEvent
from murmur.engine import DispatchOutcome, StreamState
from murmur.sessions.schema import AssistantMessage


def _delta(slot: int, version: int, text: str) -> dict:
    return {"type": "delta", "assistantIndex": slot, "versionIndex": version, "delta": text}


class TestSend:
    def test_happy_path_streams_into_placeholder(self, client, transport):
        assert client.send("hello") is DispatchOutcome.DISPATCHED
        assert client.engine.state is StreamState.STREAMING

        request = transport.sent_of("chat")[0]
        assert request["history"] == [
            {"role": "system", "content": client.active.system_prompt},
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": ""},
        ]
        assert request["model"] == "llama3"
        assert (request["assistantIndex"], request["versionIndex"]) == (1, 0)

        client.handle_message(_delta(1, 0, "Hi"))
        client.handle_message(_delta(1, 0, "!"))
        client.handle_message({"type": "done"})

        assert client.active.messages[1].current.content == "Hi!"
        assert client.engine.state is StreamState.IDLE
        assert client.engine.target is None

    def test_events_emitted_for_stream(self, client, events):
        events.clear()
        client.send("hello")
        client.handle_message({"type": "done"})

        started = [e for e in events if isinstance(e, StreamStartedEvent)]
        ended = [e for e in events if isinstance(e, StreamEndedEvent)]
        assert len(started) == 1 and started[0].model == "llama3"
        assert [e.reason for e in ended] == ["done"]

    def test_second_send_while_streaming_is_noop(self, client, transport):
        client.send("one")
        before = client.active.snapshot()

        assert client.send("two") is DispatchOutcome.ALREADY_STREAMING
        assert client.regenerate(1) is DispatchOutcome.ALREADY_STREAMING
        assert client.continue_message(1) is DispatchOutcome.ALREADY_STREAMING

        assert len(transport.sent_of("chat")) == 1
        assert client.active.snapshot() == before

    def test_blank_input_is_rejected(self, client, transport):
        assert client.send("   ") is DispatchOutcome.EMPTY_INPUT
        assert client.active.messages == []
        assert transport.sent_of("chat") == []

    def test_not_connected_leaves_chat_untouched(self, client, transport):
        transport.is_ready = False
        before = client.active.snapshot()

        assert client.send("hello") is DispatchOutcome.NOT_CONNECTED
        assert client.active.snapshot() == before
        assert client.engine.state is StreamState.IDLE

    def test_no_model_leaves_chat_untouched(self, client, transport):
        client.handle_message({"type": "models", "models": []})
        before = client.active.snapshot()

        assert client.send("hello") is DispatchOutcome.NO_MODEL_SELECTED
        assert client.active.snapshot() == before
        assert transport.sent_of("chat") == []

    def test_uses_selected_model(self, client, transport):
        client.select_model("mistral")
        client.send("hello")

        assert transport.sent_of("chat")[0]["model"] == "mistral"


class TestRegenerateAndContinue:
    @pytest.fixture
    def answered(self, client):
        client.send("hello")
        client.handle_message(_delta(1, 0, "first"))
        client.handle_message({"type": "done"})
        return client

    def test_regenerate_adds_and_streams_new_version(self, answered, transport):
        assert answered.regenerate(1) is DispatchOutcome.DISPATCHED

        message = answered.active.messages[1]
        assert len(message.versions) == 2
        assert message.current_version == 1
        request = transport.sent_of("chat")[-1]
        assert (request["assistantIndex"], request["versionIndex"]) == (1, 1)
        assert request["history"][-1] == {"role": "assistant", "content": ""}

        answered.handle_message(_delta(1, 1, "second"))
        answered.handle_message({"type": "done"})
        assert [v.content for v in message.versions] == ["first", "second"]

    def test_continue_appends_to_current_version(self, answered, transport):
        assert answered.continue_message(1) is DispatchOutcome.DISPATCHED

        request = transport.sent_of("chat")[-1]
        assert request["history"][-1] == {"role": "assistant", "content": "first"}
        answered.handle_message(_delta(1, 0, " and more"))
        answered.handle_message({"type": "done"})

        message = answered.active.messages[1]
        assert len(message.versions) == 1
        assert message.current.content == "first and more"

    def test_continue_selected_older_version(self, answered, transport):
        answered.regenerate(1)
        answered.handle_message({"type": "done"})
        answered.select_version(1, 0)

        answered.continue_message(1)

        request = transport.sent_of("chat")[-1]
        assert request["versionIndex"] == 0

    def test_user_slot_is_invalid_target(self, answered, transport):
        before = answered.active.snapshot()
        sent = len(transport.sent)

        assert answered.regenerate(0) is DispatchOutcome.INVALID_TARGET
        assert answered.continue_message(0) is DispatchOutcome.INVALID_TARGET
        assert answered.continue_message(9) is DispatchOutcome.INVALID_TARGET

        assert answered.active.snapshot() == before
        assert len(transport.sent) == sent


class TestStopAndAbandon:
    def test_stop_keeps_partial_content(self, client, transport, events):
        client.send("hello")
        client.handle_message(_delta(1, 0, "par"))

        assert client.stop()
        assert transport.sent_of("stop") == [{"type": "stop"}]
        assert client.engine.stop_requested
        client.handle_message({"type": "stopped"})

        assert client.engine.state is StreamState.IDLE
        assert client.active.messages[1].current.content == "par"
        assert isinstance(events[-1], StreamEndedEvent) and events[-1].reason == "stopped"

    def test_stop_when_idle_is_noop(self, client, transport):
        assert not client.stop()
        assert transport.sent_of("stop") == []

    def test_disconnect_abandons_stream_and_drops_late_deltas(self, client, events):
        client.send("hello")
        client.handle_message(_delta(1, 0, "part"))

        client.on_disconnected()

        assert client.engine.state is StreamState.IDLE
        ended = [e for e in events if isinstance(e, StreamEndedEvent)]
        assert [e.reason for e in ended] == ["abandoned"]

        client.handle_message(_delta(1, 0, "late"))
        assert client.active.messages[1].current.content == "part"

    def test_can_send_again_after_stream_ends(self, client, transport):
        client.send("one")
        client.handle_message({"type": "done"})

        assert client.send("two") is DispatchOutcome.DISPATCHED
        assert transport.sent_of("chat")[-1]["assistantIndex"] == 3


class TestInbound:
    def test_stale_delta_is_ignored(self, client, storage):
        client.send("hello")
        before = client.active.snapshot()
        writes = storage.writes

        client.handle_message(_delta(7, 0, "x"))
        client.handle_message(_delta(1, 3, "x"))
        client.handle_message(_delta(0, 0, "x"))

        assert client.active.snapshot() == before
        assert storage.writes == writes

    def test_delta_while_idle_is_dropped(self, client, storage):
        client.send("hello")
        client.handle_message({"type": "done"})
        before = client.active.snapshot()
        writes = storage.writes

        client.handle_message(_delta(1, 0, "x"))

        assert client.active.snapshot() == before
        assert storage.writes == writes

    @pytest.mark.parametrize(
        "data",
        [{"type": "bogus"}, {"type": "delta"}, "garbage", None, {"no": "type"}],
    )
    def test_unknown_messages_are_ignored(self, client, data):
        client.send("hello")
        before = client.active.snapshot()

        client.handle_message(data)

        assert client.active.snapshot() == before
        assert client.engine.is_streaming

    def test_done_while_idle_is_noop(self, client, events):
        events.clear()
        client.handle_message({"type": "done"})
        client.handle_message({"type": "stopped"})

        assert events == []

    def test_each_delta_is_persisted(self, client, storage):
        client.send("hello")
        client.handle_message(_delta(1, 0, "Hi"))

        saved = storage.get("chats")[client.active.id]["messages"][1]
        assert saved["versions"][0]["content"] == "Hi"
        assert saved["currentVersion"] == 0

    def test_models_update_emits_event(self, client, events):
        events.clear()
        client.handle_message({"type": "models", "models": ["a"]})

        assert events == [ModelsUpdatedEvent(models=("a",), selected="a")]
        assert client.models.selected == "a"

    def test_health_round_trip(self, client, transport, events):
        assert client.request_health()
        assert transport.sent_of("health") == [{"type": "health"}]

        client.handle_message({"type": "health"})

        assert client.engine.last_health_at is not None
        assert isinstance(events[-1], HealthAckEvent)

    def test_health_requires_connection(self, client, transport):
        transport.is_ready = False
        assert not client.request_health()

    def test_connect_requests_models(self, client, transport):
        client.on_connected()

        assert transport.sent_of("models") == [{"type": "models"}]


def test_placeholder_is_assistant_with_single_empty_version(client):
    client.send("hello")

    message = client.active.messages[1]
    assert isinstance(message, AssistantMessage)
    assert [v.content for v in message.versions] == [""]
