"""Tests for the session orchestrator."""

import asyncio

import httpx
import pytest

from photo_stylizer.core.generation import DirectGeminiBackend, ProxyBackend
from photo_stylizer.core.orchestrator import GenerationOrchestrator, NOT_CONFIGURED_MESSAGE
from photo_stylizer.models.enums import BatchStatus, FailureKind, GenerationMode
from photo_stylizer.models.schemas import GenerationFailure
from photo_stylizer.providers import ProxyClient
from photo_stylizer.utils.config import load_config
from photo_stylizer.utils.errors import ConfigurationError, InputError, TransportError

from .conftest import FakeBackend, RecordingHandler


@pytest.fixture
def make_orchestrator(config, catalog):
    def factory(backend=None, **overrides):
        cfg = config
        if overrides:
            cfg = load_config(
                PROGRESS_INTERVAL_SECONDS="0.01",
                PROGRESS_SETTLE_SECONDS="0.05",
                **overrides,
            )
        return GenerationOrchestrator(backend, catalog, cfg)

    return factory


class TestSingleGeneration:

    @pytest.mark.asyncio
    async def test_success_updates_state(self, make_orchestrator, sample_photo, sample_prompt):
        backend = FakeBackend()
        orchestrator = make_orchestrator(backend)
        orchestrator.select_photo(sample_photo)

        result = await orchestrator.generate_image(sample_photo, sample_prompt)

        state = orchestrator.state
        assert result.success is True
        assert state.generated_image == result.image_url
        assert state.last_result == result
        assert state.last_error is None
        assert state.is_generating is False
        assert backend.calls == [sample_prompt]

    @pytest.mark.asyncio
    async def test_progress_lifecycle(self, make_orchestrator, sample_photo, sample_prompt):
        gate = asyncio.Event()
        orchestrator = make_orchestrator(FakeBackend(gate=gate))
        snapshots = []
        orchestrator.subscribe(snapshots.append)

        task = asyncio.create_task(orchestrator.generate_image(sample_photo, sample_prompt))
        await asyncio.sleep(0.3)

        assert orchestrator.state.is_generating is True
        assert orchestrator.state.progress_percent == 90

        gate.set()
        await task

        assert orchestrator.state.progress_percent == 100
        assert orchestrator.state.is_generating is False

        await asyncio.sleep(0.1)
        assert orchestrator.state.progress_percent == 0

        generating = [s.progress_percent for s in snapshots if s.is_generating]
        assert generating[0] == 0
        assert generating == sorted(generating)
        assert max(generating) < 100

    @pytest.mark.asyncio
    async def test_failure_is_returned_and_recorded(self, make_orchestrator, sample_photo):
        failure = GenerationFailure(message="No image generated", kind=FailureKind.NO_IMAGE)
        orchestrator = make_orchestrator(FakeBackend(outcomes={"noir": failure}))

        result = await orchestrator.generate_image(sample_photo, "noir")

        assert result == failure
        assert orchestrator.state.last_error == "No image generated"
        assert orchestrator.state.generated_image is None

    @pytest.mark.asyncio
    async def test_backend_exception_becomes_failure(self, make_orchestrator, sample_photo):
        orchestrator = make_orchestrator(
            FakeBackend(outcomes={"noir": TransportError("connection reset")})
        )

        result = await orchestrator.generate_image(sample_photo, "noir")

        assert result.success is False
        assert result.kind == FailureKind.TRANSPORT
        assert orchestrator.state.last_error == "connection reset"

    @pytest.mark.asyncio
    async def test_timeout(self, make_orchestrator, sample_photo):
        orchestrator = make_orchestrator(
            FakeBackend(delay=1.0),
            REQUEST_TIMEOUT_SECONDS="0.05",
        )

        result = await orchestrator.generate_image(sample_photo, "noir")

        assert result.success is False
        assert result.kind == FailureKind.TIMEOUT
        assert orchestrator.state.is_generating is False

    @pytest.mark.asyncio
    async def test_missing_input(self, make_orchestrator, sample_photo):
        backend = FakeBackend()
        orchestrator = make_orchestrator(backend)

        with pytest.raises(InputError, match="select a photo"):
            await orchestrator.generate_image(None, "noir")
        with pytest.raises(InputError):
            await orchestrator.generate_image(sample_photo, "   ")

        assert backend.calls == []
        assert orchestrator.state.is_generating is False

    @pytest.mark.asyncio
    async def test_not_configured(self, make_orchestrator, sample_photo):
        orchestrator = make_orchestrator(None)

        assert orchestrator.can_generate is False
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            await orchestrator.generate_image(sample_photo, "noir")

    @pytest.mark.asyncio
    async def test_second_call_while_busy(self, make_orchestrator, sample_photo):
        gate = asyncio.Event()
        backend = FakeBackend(gate=gate)
        orchestrator = make_orchestrator(backend)

        task = asyncio.create_task(orchestrator.generate_image(sample_photo, "noir"))
        await backend.started.wait()

        with pytest.raises(InputError, match="already in progress"):
            await orchestrator.generate_image(sample_photo, "anime")

        gate.set()
        assert (await task).success is True
        assert backend.calls == ["noir"]

    @pytest.mark.asyncio
    async def test_cancel(self, make_orchestrator, sample_photo):
        backend = FakeBackend(gate=asyncio.Event())
        orchestrator = make_orchestrator(backend)

        task = asyncio.create_task(orchestrator.generate_image(sample_photo, "noir"))
        await backend.started.wait()

        assert orchestrator.cancel() is True
        result = await task

        assert result.kind == FailureKind.CANCELLED
        assert orchestrator.state.last_error == "Generation cancelled"
        assert orchestrator.state.is_generating is False
        assert orchestrator.cancel() is False

    @pytest.mark.asyncio
    async def test_generate_selected(self, make_orchestrator, catalog, sample_photo):
        backend = FakeBackend()
        orchestrator = make_orchestrator(backend)

        with pytest.raises(InputError):
            await orchestrator.generate_selected(style_id="anime")

        orchestrator.select_photo(sample_photo)
        await orchestrator.generate_selected(style_id="anime")
        await orchestrator.generate_selected(style_id="anime", custom_prompt="gold statue")

        assert backend.calls == [catalog.get("anime").prompt_text, "gold statue"]


    @pytest.mark.asyncio
    async def test_each_call_overwrites_previous_outcome(self, make_orchestrator, sample_photo):
        failure = GenerationFailure(message="No image generated", kind=FailureKind.NO_IMAGE)
        orchestrator = make_orchestrator(FakeBackend(outcomes={"noir": failure}))

        await orchestrator.generate_image(sample_photo, "noir")
        assert orchestrator.state.last_error == "No image generated"

        second = await orchestrator.generate_image(sample_photo, "anime")

        state = orchestrator.state
        assert second.success is True
        assert state.last_error is None
        assert state.last_result == second

    @pytest.mark.asyncio
    async def test_malformed_gemini_body_becomes_failure(
        self, make_orchestrator, gemini_factory, sample_photo
    ):
        gemini, _ = gemini_factory(httpx.Response(200, json=[]))
        backend = DirectGeminiBackend(gemini)
        orchestrator = make_orchestrator(backend)

        await backend.initialize()
        try:
            result = await orchestrator.generate_image(sample_photo, "noir")
        finally:
            await backend.close()

        assert result.kind == FailureKind.UPSTREAM
        assert "Malformed response" in orchestrator.state.last_error
        assert orchestrator.state.is_generating is False

    @pytest.mark.asyncio
    async def test_malformed_proxy_body_becomes_failure(self, make_orchestrator, sample_photo):
        handler = RecordingHandler(httpx.Response(200, json={"success": True, "imageUrl": 123}))
        client = ProxyClient("https://photos.example.com/api/generate-image", transport=httpx.MockTransport(handler))
        backend = ProxyBackend(client)
        orchestrator = make_orchestrator(backend)

        await backend.initialize()
        try:
            result = await orchestrator.generate_image(sample_photo, "noir")
        finally:
            await backend.close()

        assert result.kind == FailureKind.UPSTREAM
        assert "Malformed response" in orchestrator.state.last_error


class TestSessionChanges:

    @pytest.mark.asyncio
    async def test_new_photo_discards_stale_result(self, make_orchestrator, sample_photo):
        gate = asyncio.Event()
        backend = FakeBackend(gate=gate)
        orchestrator = make_orchestrator(backend)
        orchestrator.select_photo(sample_photo)

        task = asyncio.create_task(orchestrator.generate_selected(style_id="noir"))
        await backend.started.wait()

        orchestrator.select_photo("data:image/jpeg;base64,TkVX")
        gate.set()
        await task
        await asyncio.sleep(0.05)

        state = orchestrator.state
        assert state.current_photo == "data:image/jpeg;base64,TkVX"
        assert state.last_result is None
        assert state.generated_image is None
        assert state.progress_percent == 0
        assert state.is_generating is False

    @pytest.mark.asyncio
    async def test_new_photo_can_generate_immediately(self, make_orchestrator, sample_photo):
        old_gate = asyncio.Event()
        backend = FakeBackend(gate=old_gate)
        orchestrator = make_orchestrator(backend)
        orchestrator.select_photo(sample_photo)

        old_task = asyncio.create_task(orchestrator.generate_image(sample_photo, "noir"))
        await backend.started.wait()

        new_photo = sample_photo + "A"
        orchestrator.select_photo(new_photo)
        assert orchestrator.can_generate is True

        backend.gate = None
        result = await orchestrator.generate_image(new_photo, "anime")

        assert result.success is True
        assert orchestrator.state.generated_image == result.image_url
        assert (await old_task).kind == FailureKind.CANCELLED
        assert orchestrator.state.last_result == result
        assert backend.calls == ["noir", "anime"]

    @pytest.mark.asyncio
    async def test_reset_frees_the_session_for_a_new_call(self, make_orchestrator, sample_photo):
        backend = FakeBackend(gate=asyncio.Event())
        orchestrator = make_orchestrator(backend)

        old_task = asyncio.create_task(orchestrator.generate_image(sample_photo, "noir"))
        await backend.started.wait()

        orchestrator.reset()
        backend.gate = None

        assert (await orchestrator.generate_image(sample_photo, "anime")).success is True
        assert (await old_task).kind == FailureKind.CANCELLED
        assert orchestrator.state.last_error is None

    @pytest.mark.asyncio
    async def test_reset_keeps_photo(self, make_orchestrator, sample_photo):
        orchestrator = make_orchestrator(FakeBackend())
        orchestrator.select_photo(sample_photo)
        await orchestrator.generate_selected(style_id="noir")

        orchestrator.reset()

        state = orchestrator.state
        assert state.current_photo == sample_photo
        assert state.generated_image is None
        assert state.last_result is None
        assert state.progress_percent == 0

    @pytest.mark.asyncio
    async def test_mode_switch_cancels_in_flight(self, make_orchestrator, sample_photo):
        backend = FakeBackend(gate=asyncio.Event())
        orchestrator = make_orchestrator(backend)

        task = asyncio.create_task(orchestrator.generate_image(sample_photo, "noir"))
        await backend.started.wait()

        orchestrator.set_mode(GenerationMode.BATCH)
        result = await task

        assert result.kind == FailureKind.CANCELLED
        assert orchestrator.state.mode == GenerationMode.BATCH

    @pytest.mark.asyncio
    async def test_operations_record_their_mode(self, make_orchestrator, sample_photo):
        orchestrator = make_orchestrator(FakeBackend())

        await orchestrator.generate_all_styles(sample_photo)
        assert orchestrator.state.mode == GenerationMode.BATCH

        await orchestrator.generate_image(sample_photo, "noir")
        assert orchestrator.state.mode == GenerationMode.SINGLE

    @pytest.mark.asyncio
    async def test_selecting_batch_mode_keeps_running_batch(self, make_orchestrator, catalog, sample_photo):
        gate = asyncio.Event()
        backend = FakeBackend(gate=gate)
        orchestrator = make_orchestrator(backend)
        orchestrator.set_mode(GenerationMode.SINGLE)

        task = asyncio.create_task(orchestrator.generate_all_styles(sample_photo))
        await backend.started.wait()

        orchestrator.set_mode(GenerationMode.BATCH)
        gate.set()
        batch = await task

        assert batch.status == BatchStatus.COMPLETED
        assert len(batch.succeeded) == len(catalog)

    @pytest.mark.asyncio
    async def test_leaving_batch_mode_cancels_batch(self, make_orchestrator, sample_photo):
        backend = FakeBackend(gate=asyncio.Event())
        orchestrator = make_orchestrator(backend)

        task = asyncio.create_task(orchestrator.generate_all_styles(sample_photo))
        await backend.started.wait()

        orchestrator.set_mode(GenerationMode.SINGLE)
        batch = await task

        assert batch.status == BatchStatus.CANCELLED
        assert orchestrator.state.mode == GenerationMode.SINGLE

    def test_listeners(self, make_orchestrator, sample_photo):
        orchestrator = make_orchestrator(FakeBackend())
        seen = []

        def broken(state):
            raise RuntimeError("listener bug")

        orchestrator.subscribe(broken)
        unsubscribe = orchestrator.subscribe(seen.append)

        orchestrator.select_photo(sample_photo)
        unsubscribe()
        orchestrator.set_mode(GenerationMode.BATCH)

        assert len(seen) == 1
        assert seen[0].current_photo == sample_photo

        # Snapshots are copies
        seen[0].current_photo = None
        assert orchestrator.state.current_photo == sample_photo

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, make_orchestrator, sample_photo):
        failing = FakeBackend(
            outcomes={"noir": GenerationFailure(message="boom", kind=FailureKind.UPSTREAM)},
            delay=0.02,
        )
        first = make_orchestrator(FakeBackend(delay=0.05))
        second = make_orchestrator(failing)

        await asyncio.gather(
            first.generate_image(sample_photo, "noir"),
            second.generate_image(sample_photo, "noir"),
        )

        assert first.state.last_error is None
        assert first.state.generated_image is not None
        assert second.state.last_error == "boom"
        assert second.state.generated_image is None


class TestBatch:

    @pytest.mark.asyncio
    async def test_failures_do_not_abort_batch(self, make_orchestrator, catalog, sample_photo):
        styles = list(catalog)
        backend = FakeBackend(outcomes={
            styles[1].prompt_text: GenerationFailure(message="No image generated", kind=FailureKind.NO_IMAGE),
            styles[4].prompt_text: TransportError("connection reset"),
        })
        orchestrator = make_orchestrator(backend)

        batch = await orchestrator.generate_all_styles(sample_photo)

        assert batch.status == BatchStatus.COMPLETED
        assert [item.style.id for item in batch.items] == catalog.ids
        assert [i for i, item in enumerate(batch.items) if not item.result.success] == [1, 4]
        assert batch.items[4].result.kind == FailureKind.TRANSPORT
        assert len(batch.succeeded) == len(catalog) - 2
        assert backend.calls == [style.prompt_text for style in styles]

        state = orchestrator.state
        assert state.is_batch_generating is False
        assert len(state.batch.items) == len(catalog)

    @pytest.mark.asyncio
    async def test_batch_progress_is_observable(self, make_orchestrator, catalog, sample_photo):
        orchestrator = make_orchestrator(FakeBackend())
        counts = []
        orchestrator.subscribe(
            lambda s: counts.append(len(s.batch.items)) if s.is_batch_generating and s.batch else None
        )

        await orchestrator.generate_all_styles(sample_photo)

        assert counts[-1] == len(catalog)
        assert counts == sorted(counts)

    @pytest.mark.asyncio
    async def test_not_configured_makes_no_calls(self, make_orchestrator, sample_photo):
        orchestrator = make_orchestrator(None)
        orchestrator.select_photo(sample_photo)
        before = orchestrator.state

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.generate_all()

        assert str(exc_info.value) == NOT_CONFIGURED_MESSAGE
        assert orchestrator.state == before

    @pytest.mark.asyncio
    async def test_missing_photo(self, make_orchestrator):
        backend = FakeBackend()
        orchestrator = make_orchestrator(backend)

        with pytest.raises(InputError):
            await orchestrator.generate_all()

        assert backend.calls == []
        assert orchestrator.state.batch is None

    @pytest.mark.asyncio
    async def test_cancel_fills_remaining_styles(self, make_orchestrator, catalog, sample_photo):
        backend = FakeBackend(gate=asyncio.Event())
        orchestrator = make_orchestrator(backend)

        task = asyncio.create_task(orchestrator.generate_all_styles(sample_photo))
        await backend.started.wait()

        assert orchestrator.cancel() is True
        batch = await task

        assert batch.status == BatchStatus.CANCELLED
        assert len(batch.items) == len(catalog)
        assert all(item.result.kind == FailureKind.CANCELLED for item in batch.items)
        assert len(backend.calls) == 1
        assert orchestrator.state.is_batch_generating is False

    @pytest.mark.asyncio
    async def test_batch_refused_while_busy(self, make_orchestrator, sample_photo):
        gate = asyncio.Event()
        backend = FakeBackend(gate=gate)
        orchestrator = make_orchestrator(backend)

        task = asyncio.create_task(orchestrator.generate_image(sample_photo, "noir"))
        await backend.started.wait()

        with pytest.raises(InputError):
            await orchestrator.generate_all_styles(sample_photo)

        gate.set()
        await task
