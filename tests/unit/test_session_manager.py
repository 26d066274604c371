"""Unit tests for SessionManager."""

import asyncio
import logging

import pytest

from conftest import FakeTransport, settle
from livelingo.errors import ServiceError, StartupError, TransportError
from livelingo.models.audio import EncodedChunk
from livelingo.models.session import SessionState
from livelingo.models.transcription import TranslationRequest
from livelingo.services.session_manager import SessionManager


def make_chunk(sequence_number: int = 1) -> EncodedChunk:
    return EncodedChunk(data="AAA=", sample_count=1, byte_length=2,
                        sequence_number=sequence_number, timestamp=0.0)


@pytest.mark.unit
class TestSessionManagerConnect:
    """Test cases for connecting with retry and backoff."""

    def test_connect_success(self, listener, recording_sleep):
        """Test that a successful connect fires on_connect and resets retries."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport, sleep=recording_sleep)

            assert manager.state == SessionState.IDLE
            connected = await manager.initialize(listener)

            assert connected is True
            assert manager.state == SessionState.CONNECTED
            assert manager.is_active() is True
            assert listener.connects == 1
            assert recording_sleep.delays == []
            await manager.disconnect()

        asyncio.run(scenario())

    def test_backoff_delays_double(self, listener, recording_sleep):
        """Test that three failures wait 1s, 2s and 4s before connecting."""
        async def scenario():
            transport = FakeTransport(failures=3)
            manager = SessionManager(transport, sleep=recording_sleep)

            connected = await manager.initialize(listener)

            assert connected is True
            assert recording_sleep.delays == [1.0, 2.0, 4.0]
            assert transport.attempts == 4
            assert manager.status.retry_count == 0
            assert manager.status.backoff_delay == 1.0
            assert listener.errors == []
            await manager.disconnect()

        asyncio.run(scenario())

    def test_fourth_failure_is_fatal(self, listener, recording_sleep):
        """Test that exhausting retries raises StartupError and reports it."""
        async def scenario():
            transport = FakeTransport(failures=10)
            manager = SessionManager(transport, sleep=recording_sleep)

            with pytest.raises(StartupError):
                await manager.initialize(listener)

            assert transport.attempts == 4
            assert recording_sleep.delays == [1.0, 2.0, 4.0]
            assert manager.state == SessionState.CLOSED
            assert len(listener.errors) == 1
            assert isinstance(listener.errors[0], StartupError)
            assert listener.errors[0].fatal is True
            assert listener.connects == 0

        asyncio.run(scenario())

    def test_disconnect_cancels_pending_retry(self, listener):
        """Test that disconnect during a backoff wait stops further attempts."""
        async def scenario():
            transport = FakeTransport(failures=10)
            manager = SessionManager(transport, initial_backoff=30.0)

            init_task = asyncio.ensure_future(manager.initialize(listener))
            await settle()
            assert manager.state == SessionState.CONNECTING

            await manager.disconnect()
            connected = await asyncio.wait_for(init_task, timeout=1.0)

            assert connected is False
            assert transport.attempts == 1
            assert manager.state == SessionState.CLOSED
            assert listener.errors == []

        asyncio.run(scenario())

    def test_concurrent_initialize_connects_once(self, listener):
        """Test that a second initialize joins the attempt already in flight."""
        async def scenario():
            gate = asyncio.Event()
            transport = FakeTransport(gate=gate)
            manager = SessionManager(transport)

            first = asyncio.ensure_future(manager.initialize(listener))
            await settle()
            second = asyncio.ensure_future(manager.initialize(listener))
            await settle()
            gate.set()

            assert await first is True
            assert await second is True
            assert transport.attempts == 1
            assert listener.connects == 1
            await manager.disconnect()

        asyncio.run(scenario())

    def test_get_session_state(self, listener, recording_sleep):
        async def scenario():
            manager = SessionManager(FakeTransport(), sleep=recording_sleep)
            await manager.initialize(listener)

            state = manager.get_session_state()

            assert state["state"] == "connected"
            assert state["is_connected"] is True
            assert state["has_connection"] is True
            assert state["retry_count"] == 0
            await manager.disconnect()

        asyncio.run(scenario())


@pytest.mark.unit
class TestSessionManagerSending:
    """Test cases for outbound audio, prompts and end-of-stream."""

    def test_send_audio_requires_connection(self, caplog):
        """Test that sending before connect is a logged no-op."""
        async def scenario():
            manager = SessionManager(FakeTransport())
            with caplog.at_level(logging.WARNING):
                sent = await manager.send_audio(make_chunk())
            assert sent is False
            assert "not connected" in caplog.text

        asyncio.run(scenario())

    def test_send_audio_forwards_in_order(self, listener):
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)

            for i in range(1, 4):
                assert await manager.send_audio(make_chunk(i)) is True

            assert [c.sequence_number for c in transport.connection.sent_audio] == [1, 2, 3]
            await manager.disconnect()

        asyncio.run(scenario())

    def test_send_failure_is_not_fatal(self, listener):
        """Test that a transport error while sending leaves the session connected."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            transport.connection.fail_sends = True

            assert await manager.send_audio(make_chunk()) is False
            assert await manager.send_translation_request(TranslationRequest(prompt="p", segment="s")) is False
            assert manager.state == SessionState.CONNECTED
            assert listener.errors == []
            await manager.disconnect()

        asyncio.run(scenario())

    def test_send_translation_request(self, listener):
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)

            await manager.send_translation_request(TranslationRequest(prompt="Translate this", segment="this"))

            assert transport.connection.sent_text == ["Translate this"]
            await manager.disconnect()

        asyncio.run(scenario())

    def test_end_of_stream_swallows_errors(self, listener):
        """Test that a failed end-of-stream signal is only logged."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            transport.connection.fail_sends = True

            await manager.send_end_of_stream()

            assert transport.connection.stream_ended is False
            await manager.disconnect()

        asyncio.run(scenario())

    def test_end_of_stream(self, listener):
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)

            await manager.send_end_of_stream()

            assert transport.connection.stream_ended is True
            await manager.disconnect()

        asyncio.run(scenario())


@pytest.mark.unit
class TestSessionManagerInbound:
    """Test cases for demultiplexing inbound messages."""

    def test_messages_dispatch_to_callbacks(self, listener):
        """Test that each message kind reaches the right callback."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            connection = transport.connection

            connection.push({"server_content": {"input_transcription": {"text": "Hello world."}}})
            connection.push({"server_content": {"model_turn": {"parts": [{"text": "こんにちは"}, {"text": "世界。"}]}}})
            connection.push({"server_content": {"turn_complete": True}})
            connection.push({"server_content": {"error": {"message": "quota exceeded"}}})
            await settle()

            assert listener.transcriptions == ["Hello world."]
            assert listener.translations == ["こんにちは世界。"]
            assert len(listener.errors) == 1
            assert isinstance(listener.errors[0], ServiceError)
            assert "quota exceeded" in str(listener.errors[0])
            assert manager.state == SessionState.CONNECTED
            await manager.disconnect()

        asyncio.run(scenario())

    def test_malformed_messages_are_ignored(self, listener):
        """Test that malformed messages do not stop later ones."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            connection = transport.connection

            connection.push("not a message")
            connection.push({"server_content": ["wrong"]})
            connection.push({"setup_complete": {}})
            connection.push({"server_content": {"input_transcription": {"text": "still here"}}})
            await settle()

            assert listener.transcriptions == ["still here"]
            assert listener.errors == []
            await manager.disconnect()

        asyncio.run(scenario())

    def test_unexpected_close_notifies_once_without_reconnect(self, listener):
        """Test that a server close fires on_disconnect once and does not reconnect."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)

            transport.connection.end()
            await settle()

            assert listener.disconnects == ["Connection closed by server"]
            assert manager.state == SessionState.CLOSED
            assert transport.attempts == 1
            await manager.disconnect()
            assert listener.disconnects == ["Connection closed by server"]

        asyncio.run(scenario())

    def test_receive_error_notifies_disconnect(self, listener):
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)

            transport.connection.fail(TransportError("socket reset"))
            await settle()

            assert len(listener.disconnects) == 1
            assert "socket reset" in listener.disconnects[0]
            assert transport.attempts == 1
            await manager.disconnect()

        asyncio.run(scenario())


@pytest.mark.unit
class TestSessionManagerDisconnect:
    """Test cases for teardown."""

    def test_disconnect_is_idempotent(self, listener):
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            connection = transport.connection

            await manager.disconnect()
            await manager.disconnect()

            assert connection.close_count == 1
            assert manager.state == SessionState.CLOSED
            assert manager.connection is None
            assert listener.disconnects == []

        asyncio.run(scenario())

    def test_disconnect_before_initialize(self):
        async def scenario():
            manager = SessionManager(FakeTransport())
            await manager.disconnect()
            assert manager.state == SessionState.IDLE

        asyncio.run(scenario())

    def test_close_errors_are_logged(self, listener, caplog):
        """Test that an exception while closing is caught and logged."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            transport.connection.fail_close = True

            with caplog.at_level(logging.ERROR):
                await manager.disconnect()

            assert manager.state == SessionState.CLOSED
            assert "Error closing session" in caplog.text

        asyncio.run(scenario())

    def test_send_after_disconnect_is_noop(self, listener):
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            connection = transport.connection
            await manager.disconnect()

            assert await manager.send_audio(make_chunk()) is False
            assert connection.sent_audio == []

        asyncio.run(scenario())


@pytest.mark.unit
class TestSessionManagerUnexpectedErrors:
    """Test cases for failures outside the transport error types."""

    def test_receive_failure_notifies_disconnect(self, listener):
        """Test that any exception from receive ends the session with one on_disconnect."""
        async def scenario():
            transport = FakeTransport()
            manager = SessionManager(transport)
            await manager.initialize(listener)
            connection = transport.connection

            connection.fail(ValueError("Failed to parse response: b'garbage'"))
            connection.push({"server_content": {"input_transcription": {"text": "lost"}}})
            await settle()

            assert len(listener.disconnects) == 1
            assert "Failed to parse response" in listener.disconnects[0]
            assert manager.state == SessionState.CLOSED
            assert manager.is_active() is False
            assert listener.transcriptions == []
            assert transport.attempts == 1
            await manager.disconnect()
            assert len(listener.disconnects) == 1

        asyncio.run(scenario())

    def test_unexpected_connect_error_is_startup_error(self, listener, recording_sleep):
        """Test that a non-connection failure during connect is fatal without retrying."""
        class BrokenTransport(FakeTransport):
            async def connect(self):
                self.attempts += 1
                raise ValueError("unsupported model config")

        async def scenario():
            transport = BrokenTransport()
            manager = SessionManager(transport, sleep=recording_sleep)

            with pytest.raises(StartupError):
                await manager.initialize(listener)

            assert transport.attempts == 1
            assert recording_sleep.delays == []
            assert manager.state == SessionState.CLOSED
            assert [type(e) for e in listener.errors] == [StartupError]
            assert "unsupported model config" in str(listener.errors[0])

        asyncio.run(scenario())
