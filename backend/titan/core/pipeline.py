"""
Action Pipeline - drives one voice/text or image request from capture to applied metrics.

Per request:  idle -> capturing -> awaiting_inference -> interpreting -> applying -> idle
Failures from awaiting_inference or interpreting go to ``failed`` and back to idle;
no metric is written on any path through ``failed``.

A pipeline serves one capture channel. Starting a new capture supersedes the previous
request: if that request is still waiting on inference, its reply is discarded.
"""

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel, Field

from .actions import ChangeSet, NutritionEstimate
from .applier import apply
from .errors import ErrorKind, InferenceFailed, TitanError, TranscriptionFailed
from .interpreter import interpret_command, interpret_image_analysis
from .logging_config import ContextLoggerAdapter
from .metric_store import MetricStore

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    AWAITING_INFERENCE = "awaiting_inference"
    INTERPRETING = "interpreting"
    APPLYING = "applying"
    FAILED = "failed"


class RequestSource(str, Enum):
    VOICE = "voice"
    TEXT = "text"
    IMAGE = "image"


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"
    CANCELLED = "cancelled"  # abandoned before inference started
    DISCARDED = "discarded"  # superseded while inference was in flight


@dataclass(frozen=True)
class CaptureTicket:
    """Handle for one request, returned by ``begin``."""
    request_id: int
    source: RequestSource


class RequestOutcome(BaseModel):
    """Typed result of one request; failures carry an ``error_kind`` instead of raising."""
    request_id: int
    source: RequestSource
    status: OutcomeStatus
    states: List[RequestState] = Field(default_factory=list)
    transcription: Optional[str] = None
    nutrition: Optional[NutritionEstimate] = None
    change_set: Optional[ChangeSet] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.APPLIED


class ActionPipeline:
    """
    Request state machine for one capture channel.

    Collaborators are duck-typed: ``transcriber.transcribe_audio(bytes, filename)``,
    ``classifier.classify(text)`` and ``analyzer.analyze(image_base64, media_type)``.
    """

    _ids = itertools.count(1)

    def __init__(self, store: MetricStore, transcriber=None, classifier=None, analyzer=None,
                 name: str = "default"):
        self.store = store
        self.transcriber = transcriber
        self.classifier = classifier
        self.analyzer = analyzer
        self.name = name
        self._current: Optional[CaptureTicket] = None
        self._state = RequestState.IDLE
        self._trace: List[RequestState] = []

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def current(self) -> Optional[CaptureTicket]:
        return self._current

    def begin(self, source: RequestSource) -> CaptureTicket:
        """Start capturing a new request, superseding any request in progress."""
        if self._current is not None:
            logger.info(f"[{self.name}] request {self._current.request_id} superseded")
        ticket = CaptureTicket(request_id=next(self._ids), source=source)
        self._current = ticket
        self._trace = []
        self._transition(RequestState.CAPTURING)
        return ticket

    def cancel(self, ticket: CaptureTicket) -> bool:
        """
        Abandon ``ticket``. Before inference starts nothing is ever built; after, the
        inference reply is discarded when it arrives.

        Returns:
            True if ``ticket`` was the current request
        """
        if self._current != ticket:
            return False
        self._current = None
        self._transition(RequestState.IDLE)
        logger.info(f"[{self.name}] request {ticket.request_id} cancelled")
        return True

    async def submit_voice(self, ticket: CaptureTicket, audio: bytes,
                           filename: str = "recording.webm") -> RequestOutcome:
        """Transcribe, classify, interpret and apply a recorded command."""
        transcript: dict = {}

        async def infer() -> str:
            if self.transcriber is None:
                raise TranscriptionFailed("No transcription service configured")
            result = await self.transcriber.transcribe_audio(audio, filename=filename)
            transcript["text"] = result["text"]
            return await self._classify(result["text"])

        outcome = await self._run(ticket, infer, interpret_command)
        outcome.transcription = transcript.get("text")
        return outcome

    async def submit_text(self, ticket: CaptureTicket, text: str) -> RequestOutcome:
        """Classify, interpret and apply a typed command."""
        outcome = await self._run(ticket, lambda: self._classify(text), interpret_command)
        outcome.transcription = text
        return outcome

    async def submit_image(self, ticket: CaptureTicket, image_base64: str,
                           media_type: str = "image/jpeg") -> RequestOutcome:
        """Analyze a food photo and log the estimate as a LogFood action."""

        async def infer() -> str:
            if self.analyzer is None:
                raise InferenceFailed("No image analysis service configured")
            return await self.analyzer.analyze(image_base64, media_type)

        estimates: List[NutritionEstimate] = []

        def interpret(raw: str):
            estimate = interpret_image_analysis(raw)
            estimates.append(estimate)
            return estimate.to_action()

        outcome = await self._run(ticket, infer, interpret)
        outcome.nutrition = estimates[0] if estimates else None
        return outcome

    async def _classify(self, text: str) -> str:
        if self.classifier is None:
            raise InferenceFailed("No command classifier configured")
        return await self.classifier.classify(text)

    async def _run(self, ticket: CaptureTicket, infer: Callable[[], Awaitable[str]],
                   interpret: Callable[[str], object]) -> RequestOutcome:
        log = ContextLoggerAdapter(logger, {"request_id": ticket.request_id, "channel": self.name})

        if self._current != ticket or self._state is not RequestState.CAPTURING:
            log.info(f"[{self.name}] request {ticket.request_id} abandoned before inference")
            return self._outcome(ticket, OutcomeStatus.CANCELLED, own_trace=False)

        self._transition(RequestState.AWAITING_INFERENCE)
        try:
            raw = await infer()
        except TitanError as e:
            return self._fail(ticket, e, log)
        except BaseException:
            self._finish(ticket)
            raise

        if self._current != ticket:
            log.info(f"[{self.name}] discarding inference reply for superseded request {ticket.request_id}")
            return self._outcome(ticket, OutcomeStatus.DISCARDED, own_trace=False)

        self._transition(RequestState.INTERPRETING)
        try:
            action = interpret(raw)
        except TitanError as e:
            return self._fail(ticket, e, log)

        self._transition(RequestState.APPLYING)
        try:
            change_set: ChangeSet = await apply(action, self.store)
        finally:
            self._finish(ticket)

        return self._outcome(ticket, OutcomeStatus.APPLIED, change_set=change_set)

    def _fail(self, ticket: CaptureTicket, error: TitanError, log: logging.LoggerAdapter) -> RequestOutcome:
        if self._current != ticket:
            return self._outcome(ticket, OutcomeStatus.DISCARDED, own_trace=False)
        self._transition(RequestState.FAILED)
        log.warning(
            f"[{self.name}] request {ticket.request_id} failed: {error.message}",
            extra={"extra_fields": {"error_kind": error.kind.value}}
        )
        outcome = self._outcome(
            ticket, OutcomeStatus.FAILED,
            error_kind=error.kind, error_message=error.message,
        )
        self._finish(ticket)
        outcome.states = list(self._trace)
        return outcome

    def _finish(self, ticket: CaptureTicket) -> None:
        if self._current == ticket:
            self._current = None
            self._transition(RequestState.IDLE)

    def _transition(self, state: RequestState) -> None:
        logger.debug(f"[{self.name}] {self._state.value} -> {state.value}")
        self._state = state
        self._trace.append(state)

    def _outcome(self, ticket: CaptureTicket, status: OutcomeStatus, own_trace: bool = True,
                 **fields) -> RequestOutcome:
        return RequestOutcome(
            request_id=ticket.request_id,
            source=ticket.source,
            status=status,
            states=list(self._trace) if own_trace else [],
            **fields,
        )
