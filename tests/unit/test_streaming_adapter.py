# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from adapters.llm.errors import CredentialMissing, EnhancementFailed, InvalidCredential
from adapters.llm.streaming import StreamingEnhancementAdapter
from orchestrator.enums.credential import CredentialStatus
from orchestrator.enums.failure import FailureKind
from orchestrator.enums.tone import Tone
from orchestrator.events import EnhancementChunk, EnhancementDone, EnhancementError
from session.credentials import CredentialSnapshot


# ---------------------------------------------------------------------
# Fake OpenAI-compatible client
# ---------------------------------------------------------------------

def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream:
    def __init__(self, parts, fail_after=None, gate=None):
        self._parts = list(parts)
        self._fail_after = fail_after
        self._gate = gate
        self.closed = 0

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for i, part in enumerate(self._parts):
            if self._gate is not None and i > 0:
                await self._gate.wait()
            yield _chunk(part)
        if self._fail_after is not None:
            raise self._fail_after

    async def close(self):
        self.closed += 1


class FakeCompletions:
    def __init__(self, stream=None, raise_on_create=None):
        self._stream = stream
        self._raise = raise_on_create
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self._raise is not None:
            raise self._raise
        return self._stream


class FakeClient:
    def __init__(self, completions):
        self.chat = SimpleNamespace(completions=completions)
        self.closed = 0

    async def close(self):
        self.closed += 1


def _adapter(completions, *, api_key="k-1", events=None, keys_seen=None, clients=None):
    events = events if events is not None else []

    async def emit(event):
        events.append(event)

    def factory(key):
        if keys_seen is not None:
            keys_seen.append(key)
        client = FakeClient(completions)
        if clients is not None:
            clients.append(client)
        return client

    status = CredentialStatus.CONNECTED if api_key else CredentialStatus.NOT_CONNECTED
    return StreamingEnhancementAdapter(
        emit_event=emit,
        credentials=lambda: CredentialSnapshot(status=status, api_key=api_key),
        client_factory=factory,
        model="gemini-2.5-flash",
        session_id="sess_test",
    )


def _collect(adapter, text="hello", tone=Tone.GENERAL):
    chunks = []

    async def sink(delta):
        chunks.append(delta)

    asyncio.run(adapter.stream(text, tone, sink))
    return chunks


# ---------------------------------------------------------------------
# stream()
# ---------------------------------------------------------------------

def test_stream_relays_chunks_in_order():
    completions = FakeCompletions(stream=FakeStream(["Hello", " world", " 🌍"]))

    assert _collect(_adapter(completions)) == ["Hello", " world", " 🌍"]


def test_stream_request_shape():
    completions = FakeCompletions(stream=FakeStream(["ok"]))

    _collect(_adapter(completions), text="Bom dia", tone=Tone.FORMAL)

    call = completions.calls[0]
    assert call["model"] == "gemini-2.5-flash"
    assert call["temperature"] == 0.8
    assert call["stream"] is True
    assert call["messages"][0]["role"] == "system"
    assert "TONE: Formal" in call["messages"][0]["content"]
    assert call["messages"][1] == {"role": "user", "content": "Bom dia"}


def test_blank_fragments_are_never_surfaced_alone():
    completions = FakeCompletions(
        stream=FakeStream(["Line one", "", "\n\n", None, "Line two", "  "])
    )

    assert _collect(_adapter(completions)) == ["Line one", "\n\nLine two"]


def test_missing_credential_raises_before_io():
    completions = FakeCompletions(stream=FakeStream(["x"]))
    keys_seen = []

    with pytest.raises(CredentialMissing):
        _collect(_adapter(completions, api_key=None, keys_seen=keys_seen))

    assert keys_seen == []
    assert completions.calls == []


def test_client_is_built_from_current_key():
    completions = FakeCompletions(stream=FakeStream(["x"]))
    keys_seen = []

    _collect(_adapter(completions, api_key="k-fresh", keys_seen=keys_seen))

    assert keys_seen == ["k-fresh"]


def test_rejected_key_raises_invalid_credential():
    exc = openai.AuthenticationError(
        "invalid api key",
        response=httpx.Response(401, request=httpx.Request("POST", "https://p.test")),
        body=None,
    )
    completions = FakeCompletions(raise_on_create=exc)

    with pytest.raises(InvalidCredential):
        _collect(_adapter(completions))


def test_mid_stream_failure_is_generic():
    completions = FakeCompletions(
        stream=FakeStream(["partial"], fail_after=ConnectionError("reset"))
    )

    with pytest.raises(EnhancementFailed):
        _collect(_adapter(completions))


# ---------------------------------------------------------------------
# Run management
# ---------------------------------------------------------------------

def test_run_emits_chunks_then_done():
    events = []
    adapter = _adapter(FakeCompletions(stream=FakeStream(["a", "b"])), events=events)

    async def scenario():
        await adapter.start_enhancement(run_id=7, text="hi", tone=Tone.GENERAL)
        while adapter.active_run_ids:
            await asyncio.sleep(0)

    asyncio.run(scenario())

    assert [type(e) for e in events] == [EnhancementChunk, EnhancementChunk, EnhancementDone]
    assert all(e.run_id == 7 for e in events)
    assert "".join(e.delta for e in events if isinstance(e, EnhancementChunk)) == "ab"


def test_run_emits_classified_error():
    events = []
    completions = FakeCompletions(raise_on_create=RuntimeError("Requested entity was not found."))
    adapter = _adapter(completions, events=events)

    async def scenario():
        await adapter.start_enhancement(run_id=1, text="hi", tone=Tone.GENERAL)
        while adapter.active_run_ids:
            await asyncio.sleep(0)

    asyncio.run(scenario())

    assert len(events) == 1
    assert isinstance(events[0], EnhancementError)
    assert events[0].kind is FailureKind.INVALID_CREDENTIAL
    assert events[0].message == "Session expired. Please sign in again."


def test_cancelled_run_emits_no_terminal_event():
    events = []
    adapter_holder = {}

    async def scenario():
        blocker = asyncio.Event()
        completions = FakeCompletions(stream=FakeStream(["first", "never"], gate=blocker))
        adapter = _adapter(completions, events=events)
        adapter_holder["a"] = adapter
        await adapter.start_enhancement(run_id=3, text="hi", tone=Tone.GENERAL)
        while not events:
            await asyncio.sleep(0)
        await adapter.cancel(3)
        await adapter.cancel(3)  # idempotent

    asyncio.run(scenario())

    assert [type(e) for e in events] == [EnhancementChunk]
    assert adapter_holder["a"].active_run_ids == []


# ---------------------------------------------------------------------
# Resource cleanup
# ---------------------------------------------------------------------

def test_every_stream_closes_its_client_and_response():
    clients = []
    streams = []

    class _PerCallCompletions(FakeCompletions):
        async def create(self, **kwargs):
            self.calls.append(kwargs)
            stream = FakeStream(["ok"])
            streams.append(stream)
            return stream

    adapter = _adapter(_PerCallCompletions(), clients=clients)

    for _ in range(3):
        _collect(adapter)

    assert [c.closed for c in clients] == [1, 1, 1]
    assert [s.closed for s in streams] == [1, 1, 1]


def test_failed_stream_still_closes_client():
    clients = []
    stream = FakeStream(["partial"], fail_after=ConnectionError("reset"))
    adapter = _adapter(FakeCompletions(stream=stream), clients=clients)

    with pytest.raises(EnhancementFailed):
        _collect(adapter)

    assert clients[0].closed == 1
    assert stream.closed == 1


def test_rejected_request_closes_client_without_stream():
    clients = []
    adapter = _adapter(
        FakeCompletions(raise_on_create=RuntimeError("API key not valid")),
        clients=clients,
    )

    with pytest.raises(InvalidCredential):
        _collect(adapter)

    assert clients[0].closed == 1


def test_cancelled_run_closes_client_and_response():
    clients = []
    events = []

    async def scenario():
        blocker = asyncio.Event()
        stream = FakeStream(["first", "never"], gate=blocker)
        adapter = _adapter(FakeCompletions(stream=stream), events=events, clients=clients)
        await adapter.start_enhancement(run_id=4, text="hi", tone=Tone.GENERAL)
        while not events:
            await asyncio.sleep(0)
        await adapter.cancel(4)
        return stream

    stream = asyncio.run(scenario())

    assert stream.closed == 1
    assert clients[0].closed == 1
