"""
Unit tests for the request pipeline.
Tests state traces, failure isolation, cancellation and superseded requests.
"""

import asyncio

import pytest

from titan.core.errors import ErrorKind, InferenceFailed, TranscriptionFailed
from titan.core.metrics import DEFAULTS, Metric
from titan.core.pipeline import (
    ActionPipeline,
    OutcomeStatus,
    RequestSource,
    RequestState,
)

from fakes import (
    FakeAnalyzer,
    FakeClassifier,
    FakeTranscriber,
    GatedAnalyzer,
    GatedClassifier,
)

WATER_REPLY = '{"action": "add_water", "value": 500, "unit": "ml"}'
SALAD_REPLY = '{"food_name": "Salad", "calories": 150, "protein": 5, "carbs": 15, "fat": 8}'

APPLIED_TRACE = [
    RequestState.CAPTURING,
    RequestState.AWAITING_INFERENCE,
    RequestState.INTERPRETING,
    RequestState.APPLYING,
    RequestState.IDLE,
]


class TestSuccessfulRequests:
    """Tests for requests that reach the store."""

    @pytest.mark.asyncio
    async def test_text_command(self, store):
        classifier = FakeClassifier(WATER_REPLY)
        pipeline = ActionPipeline(store, classifier=classifier)

        ticket = pipeline.begin(RequestSource.TEXT)
        assert pipeline.state is RequestState.CAPTURING
        outcome = await pipeline.submit_text(ticket, "I drank two glasses of water")

        assert outcome.status is OutcomeStatus.APPLIED
        assert outcome.succeeded
        assert outcome.states == APPLIED_TRACE
        assert outcome.transcription == "I drank two glasses of water"
        assert outcome.change_set.deltas == {Metric.WATER: 500}
        assert store.get(Metric.WATER) == 500
        assert pipeline.state is RequestState.IDLE
        assert pipeline.current is None
        assert classifier.calls == ["I drank two glasses of water"]

    @pytest.mark.asyncio
    async def test_voice_command(self, store):
        transcriber = FakeTranscriber("I slept 7 hours")
        classifier = FakeClassifier('{"action": "add_sleep", "value": 7, "unit": "hours"}')
        pipeline = ActionPipeline(store, transcriber=transcriber, classifier=classifier)

        ticket = pipeline.begin(RequestSource.VOICE)
        outcome = await pipeline.submit_voice(ticket, b"audio", filename="rec.m4a")

        assert outcome.status is OutcomeStatus.APPLIED
        assert outcome.source is RequestSource.VOICE
        assert outcome.transcription == "I slept 7 hours"
        assert transcriber.calls == [(b"audio", "rec.m4a")]
        assert classifier.calls == ["I slept 7 hours"]
        assert store.get(Metric.SLEEP) == 7

    @pytest.mark.asyncio
    async def test_food_photo(self, store):
        analyzer = FakeAnalyzer(SALAD_REPLY)
        pipeline = ActionPipeline(store, analyzer=analyzer)

        ticket = pipeline.begin(RequestSource.IMAGE)
        outcome = await pipeline.submit_image(ticket, "aGVsbG8=", "image/png")

        assert outcome.status is OutcomeStatus.APPLIED
        assert outcome.states == APPLIED_TRACE
        assert outcome.nutrition.name == "Salad"
        assert outcome.change_set.food_name == "Salad"
        assert analyzer.calls == [("aGVsbG8=", "image/png")]
        assert store.get(Metric.CALORIES) == 150
        assert store.get(Metric.FAT) == 8

    @pytest.mark.asyncio
    async def test_consecutive_requests(self, store):
        pipeline = ActionPipeline(store, classifier=FakeClassifier(WATER_REPLY))
        for _ in range(3):
            await pipeline.submit_text(pipeline.begin(RequestSource.TEXT), "water")
        assert store.get(Metric.WATER) == 1500


class TestFailedRequests:
    """Failures end in ``failed`` and never touch the store."""

    @pytest.mark.asyncio
    async def test_transcription_failure(self, store):
        classifier = FakeClassifier(WATER_REPLY)
        pipeline = ActionPipeline(
            store,
            transcriber=FakeTranscriber(error=TranscriptionFailed("Whisper unavailable")),
            classifier=classifier,
        )

        outcome = await pipeline.submit_voice(pipeline.begin(RequestSource.VOICE), b"audio")

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.error_kind is ErrorKind.TRANSCRIPTION_FAILED
        assert outcome.error_message == "Whisper unavailable"
        assert outcome.states == [
            RequestState.CAPTURING,
            RequestState.AWAITING_INFERENCE,
            RequestState.FAILED,
            RequestState.IDLE,
        ]
        assert classifier.calls == []
        assert store.snapshot() == DEFAULTS
        assert pipeline.state is RequestState.IDLE

    @pytest.mark.asyncio
    async def test_inference_failure(self, store):
        pipeline = ActionPipeline(
            store, classifier=FakeClassifier(error=InferenceFailed("CommandClassifier timed out after 60s"))
        )

        outcome = await pipeline.submit_text(pipeline.begin(RequestSource.TEXT), "water")

        assert outcome.error_kind is ErrorKind.INFERENCE_FAILED
        assert store.snapshot() == DEFAULTS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply,kind", [
        ("I don't understand", ErrorKind.MALFORMED_ACTION),
        ('{"action": "dance"}', ErrorKind.UNKNOWN_ACTION_KIND),
        ('{"action": "add_water", "value": -5}', ErrorKind.INVALID_ACTION_PAYLOAD),
    ])
    async def test_interpretation_failure(self, store, reply, kind):
        pipeline = ActionPipeline(store, classifier=FakeClassifier(reply))

        outcome = await pipeline.submit_text(pipeline.begin(RequestSource.TEXT), "hello")

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.error_kind is kind
        assert outcome.states == [
            RequestState.CAPTURING,
            RequestState.AWAITING_INFERENCE,
            RequestState.INTERPRETING,
            RequestState.FAILED,
            RequestState.IDLE,
        ]
        assert outcome.change_set is None
        assert store.snapshot() == DEFAULTS

    @pytest.mark.asyncio
    async def test_incomplete_nutrition(self, store):
        pipeline = ActionPipeline(store, analyzer=FakeAnalyzer('{"food_name": "Soup", "calories": 120}'))

        outcome = await pipeline.submit_image(pipeline.begin(RequestSource.IMAGE), "aGVsbG8=")

        assert outcome.error_kind is ErrorKind.INVALID_ACTION_PAYLOAD
        assert outcome.nutrition is None
        assert store.snapshot() == DEFAULTS

    @pytest.mark.asyncio
    async def test_unconfigured_services(self, store):
        pipeline = ActionPipeline(store)

        voice = await pipeline.submit_voice(pipeline.begin(RequestSource.VOICE), b"audio")
        text = await pipeline.submit_text(pipeline.begin(RequestSource.TEXT), "water")
        image = await pipeline.submit_image(pipeline.begin(RequestSource.IMAGE), "aGVsbG8=")

        assert voice.error_kind is ErrorKind.TRANSCRIPTION_FAILED
        assert text.error_kind is ErrorKind.INFERENCE_FAILED
        assert image.error_kind is ErrorKind.INFERENCE_FAILED

    @pytest.mark.asyncio
    async def test_recovers_after_failure(self, store):
        classifier = FakeClassifier("not json")
        pipeline = ActionPipeline(store, classifier=classifier)
        await pipeline.submit_text(pipeline.begin(RequestSource.TEXT), "water")

        classifier.reply = WATER_REPLY
        outcome = await pipeline.submit_text(pipeline.begin(RequestSource.TEXT), "water")

        assert outcome.succeeded
        assert store.get(Metric.WATER) == 500

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates_and_resets_state(self, store):
        pipeline = ActionPipeline(store, classifier=FakeClassifier(error=RuntimeError("bug")))

        with pytest.raises(RuntimeError):
            await pipeline.submit_text(pipeline.begin(RequestSource.TEXT), "water")

        assert pipeline.state is RequestState.IDLE
        assert pipeline.current is None


class TestCancellation:
    """Tests for abandoned and superseded requests."""

    @pytest.mark.asyncio
    async def test_cancel_before_inference(self, store):
        classifier = FakeClassifier(WATER_REPLY)
        pipeline = ActionPipeline(store, classifier=classifier)

        ticket = pipeline.begin(RequestSource.TEXT)
        assert pipeline.cancel(ticket)
        assert pipeline.state is RequestState.IDLE

        outcome = await pipeline.submit_text(ticket, "water")

        assert outcome.status is OutcomeStatus.CANCELLED
        assert classifier.calls == []
        assert store.snapshot() == DEFAULTS

    @pytest.mark.asyncio
    async def test_cancel_stale_ticket(self, store):
        pipeline = ActionPipeline(store, classifier=FakeClassifier(WATER_REPLY))
        old = pipeline.begin(RequestSource.TEXT)
        pipeline.begin(RequestSource.TEXT)
        assert not pipeline.cancel(old)
        assert pipeline.state is RequestState.CAPTURING

    @pytest.mark.asyncio
    async def test_new_capture_supersedes_idle_ticket(self, store):
        classifier = FakeClassifier(WATER_REPLY)
        pipeline = ActionPipeline(store, classifier=classifier)

        first = pipeline.begin(RequestSource.VOICE)
        second = pipeline.begin(RequestSource.TEXT)

        stale = await pipeline.submit_text(first, "water")
        fresh = await pipeline.submit_text(second, "water")

        assert stale.status is OutcomeStatus.CANCELLED
        assert fresh.status is OutcomeStatus.APPLIED
        assert classifier.calls == ["water"]
        assert store.get(Metric.WATER) == 500

    @pytest.mark.asyncio
    async def test_reply_for_superseded_request_is_discarded(self, store):
        classifier = GatedClassifier(WATER_REPLY)
        pipeline = ActionPipeline(store, classifier=classifier)

        first = pipeline.begin(RequestSource.VOICE)
        task = asyncio.create_task(pipeline.submit_text(first, "water"))
        await classifier.started.wait()
        assert pipeline.state is RequestState.AWAITING_INFERENCE

        second = pipeline.begin(RequestSource.TEXT)
        classifier.release.set()
        stale = await task

        assert stale.status is OutcomeStatus.DISCARDED
        assert store.snapshot() == DEFAULTS
        assert pipeline.current == second
        assert pipeline.state is RequestState.CAPTURING

        fresh = await pipeline.submit_text(second, "water")
        assert fresh.succeeded
        assert store.get(Metric.WATER) == 500

    @pytest.mark.asyncio
    async def test_cancel_while_inference_in_flight(self, store):
        classifier = GatedClassifier(WATER_REPLY)
        pipeline = ActionPipeline(store, classifier=classifier)

        ticket = pipeline.begin(RequestSource.TEXT)
        task = asyncio.create_task(pipeline.submit_text(ticket, "water"))
        await classifier.started.wait()
        pipeline.cancel(ticket)
        classifier.release.set()

        assert (await task).status is OutcomeStatus.DISCARDED
        assert store.snapshot() == DEFAULTS

    @pytest.mark.asyncio
    async def test_channels_are_independent(self, store):
        analyzer = GatedAnalyzer(SALAD_REPLY)
        voice = ActionPipeline(store, classifier=FakeClassifier(WATER_REPLY), name="voice")
        camera = ActionPipeline(store, analyzer=analyzer, name="camera")

        photo = asyncio.create_task(camera.submit_image(camera.begin(RequestSource.IMAGE), "aGVsbG8="))
        await analyzer.started.wait()

        spoken = await voice.submit_text(voice.begin(RequestSource.TEXT), "water")
        analyzer.release.set()
        eaten = await photo

        assert spoken.succeeded
        assert eaten.succeeded
        assert store.get(Metric.WATER) == 500
        assert store.get(Metric.CALORIES) == 150
