"""
StepExecutor: one model call with retry, parsing and notepad application.

Flow per step:
1. Check cancellation, call the Completion Service
2. Check cancellation again (a late result is discarded)
3. Credential errors are fatal; anything else is retried with linear backoff
4. On success, parse the markup and apply notepad actions as the speaker
5. When retries run out, build a Checkpoint and raise ExhaustedStepError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..infrastructure.errors import CredentialError, ExhaustedStepError, TransientStepError
from ..llm_backends.base import (
    CompletionErrorKind,
    CompletionResult,
    CompletionService,
    ImagePayload,
)
from ..notepad import Notepad, NotepadAction, parse_response
from ..utils.timing import timing
from .cancellation import CancellationToken
from .checkpoint import Checkpoint
from .models import DiscussionPolicy, Notice, NoticeLevel, Speaker, StepRef, TurnRecord
from .runlog import (
    NotepadUpdatedEvent,
    RunLog,
    StepCompletedEvent,
    StepFailedEvent,
    StepRetryEvent,
    StepStartedEvent,
)

logger = logging.getLogger("dualchat.runtime")

NoticeSink = Callable[[Notice], None]


@dataclass
class StepRequest:
    """Everything needed to run one step and, on failure, to resume it."""
    step: StepRef
    prompt: str
    model_ref: str
    user_query: str
    discussion: DiscussionPolicy
    system_instruction: Optional[str] = None
    image: Optional[ImagePayload] = None
    transcript: list[TurnRecord] = field(default_factory=list)
    turn_index: int = 0
    partner_signaled_stop: bool = False

    @property
    def speaker(self) -> Speaker:
        return self.step.speaker

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint) -> "StepRequest":
        return cls(
            step=checkpoint.step,
            prompt=checkpoint.prompt,
            model_ref=checkpoint.model_ref,
            user_query=checkpoint.user_query,
            discussion=checkpoint.discussion,
            system_instruction=checkpoint.system_instruction,
            image=checkpoint.image,
            transcript=list(checkpoint.transcript),
            turn_index=checkpoint.turn_index,
            partner_signaled_stop=checkpoint.partner_signaled_stop,
        )


@dataclass
class ParsedStepResult:
    """Outcome of a successful step."""
    spoken_text: str
    termination_signal: bool
    duration_ms: float
    actions: list[NotepadAction] = field(default_factory=list)
    parse_errors: list[str] = field(default_factory=list)
    apply_errors: list[str] = field(default_factory=list)
    notepad_changed: bool = False


class StepExecutor:
    """
    Runs single steps against a Completion Service.

    Notices (retry announcements, notepad errors, exhaustion) go to the
    `on_notice` sink; the caller decides how to display them.
    """

    def __init__(
        self,
        service: CompletionService,
        *,
        max_auto_retries: int = 2,
        retry_delay_base: float = 1.0,
        runlog: Optional[RunLog] = None,
        on_notice: Optional[NoticeSink] = None,
        speaker_names: Optional[dict[Speaker, str]] = None,
    ):
        self.service = service
        self.max_auto_retries = max_auto_retries
        self.retry_delay_base = retry_delay_base
        self.runlog = runlog
        self.on_notice = on_notice
        self.speaker_names = speaker_names or {}

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_auto_retries

    def _name(self, speaker: Speaker) -> str:
        return self.speaker_names.get(speaker.persona, speaker.persona.value)

    def _notify(self, level: NoticeLevel, text: str, step: StepRef) -> Notice:
        notice = Notice(level=level, text=text, step_id=step.identifier)
        if self.on_notice is not None:
            self.on_notice(notice)
        return notice

    def _log(self, event) -> None:
        if self.runlog is not None:
            self.runlog.append(event)

    async def _call(self, request: StepRequest) -> CompletionResult:
        try:
            return await self.service.generate(
                request.prompt,
                request.model_ref,
                system_instruction=request.system_instruction,
                image=request.image,
            )
        except Exception as e:
            # Service exceptions are treated like any other transient failure
            logger.debug("Completion service raised for %s: %r", request.step.identifier, e)
            return CompletionResult.failure(CompletionErrorKind.OTHER, f"{type(e).__name__}: {e}")

    async def execute(
        self,
        request: StepRequest,
        notepad: Notepad,
        token: CancellationToken,
        *,
        max_attempts: Optional[int] = None,
    ) -> ParsedStepResult:
        """
        Execute one step.

        Raises:
            UserCancellation: cancellation observed before or after a call
            CredentialError: missing or rejected credentials (no retry)
            ExhaustedStepError: every attempt failed; carries the Checkpoint
        """
        attempts_allowed = max(max_attempts if max_attempts is not None else self.max_attempts, 1)
        step_id = request.step.identifier
        name = self._name(request.speaker)
        last_error: Optional[TransientStepError] = None

        for attempt in range(1, attempts_allowed + 1):
            token.raise_if_cancelled()
            self._log(StepStartedEvent(
                step_id=step_id,
                speaker=request.speaker.value,
                model=request.model_ref,
                prompt_chars=len(request.prompt),
            ))
            logger.debug("Step %s attempt %d/%d (model=%s)", step_id, attempt, attempts_allowed, request.model_ref)

            try:
                result = await self._attempt(request, token, attempt, attempts_allowed)
            except TransientStepError as e:
                last_error = e
                if e.retryable:
                    self._notify(
                        NoticeLevel.WARNING,
                        f"{name} failed to respond ({e.message}). "
                        f"Retrying (attempt {attempt + 1}/{attempts_allowed})...",
                        request.step,
                    )
                    self._log(StepRetryEvent(
                        step_id=step_id,
                        attempt=attempt,
                        max_attempts=attempts_allowed,
                        reason=e.message,
                    ))
                    await token.sleep(self.retry_delay_base * attempt)
                continue
            return self._finish(request, result, notepad)

        error_message = last_error.message if last_error else "unknown error"
        notice = self._notify(
            NoticeLevel.ERROR,
            f"{name} failed at step '{step_id}' after {attempts_allowed} attempt(s): {error_message}",
            request.step,
        )
        self._log(StepFailedEvent(step_id=step_id, attempts=attempts_allowed, error=error_message))

        checkpoint = Checkpoint(
            step=request.step,
            speaker=request.speaker,
            purpose=request.step.purpose,
            prompt=request.prompt,
            model_ref=request.model_ref,
            system_instruction=request.system_instruction,
            image=request.image,
            user_query=request.user_query,
            discussion=request.discussion,
            transcript=list(request.transcript),
            turn_index=request.turn_index,
            partner_signaled_stop=request.partner_signaled_stop,
            error_message=error_message,
            error_notice_id=notice.id,
            attempts=attempts_allowed,
        )
        raise ExhaustedStepError(checkpoint, original_error=last_error)

    async def _attempt(
        self,
        request: StepRequest,
        token: CancellationToken,
        attempt: int,
        attempts_allowed: int,
    ) -> CompletionResult:
        """
        One completion call.

        Raises:
            UserCancellation: cancelled while the call was in flight
            CredentialError: credential missing or rejected
            TransientStepError: any other failure
        """
        step_id = request.step.identifier
        result = await self._call(request)
        token.raise_if_cancelled()

        timing().record(
            step_id,
            "llm",
            result.duration_ms,
            model=request.model_ref,
            attempt=attempt,
            ok=result.ok,
        )
        if result.ok:
            return result

        if result.error_kind in (
            CompletionErrorKind.CREDENTIAL_MISSING,
            CompletionErrorKind.CREDENTIAL_INVALID,
        ):
            logger.debug("Credential error on %s: %s", step_id, result.error_message)
            raise CredentialError(
                result.error_message or "API key is missing or invalid",
                kind=result.error_kind.value,
                step_identifier=step_id,
            )
        raise TransientStepError(
            result.error_message or "unknown error",
            step_identifier=step_id,
            attempt=attempt,
            max_attempts=attempts_allowed,
        )

    def _finish(self, request: StepRequest, result: CompletionResult, notepad: Notepad) -> ParsedStepResult:
        step_id = request.step.identifier
        parsed = parse_response(result.text)

        for error in parsed.errors:
            self._notify(NoticeLevel.WARNING, f"Notepad markup problem: {error}", request.step)

        apply_errors: list[str] = []
        changed = False
        if parsed.actions:
            applied = notepad.apply(parsed.actions, actor=request.speaker.persona.value)
            apply_errors = applied.errors
            changed = applied.changed
            for error in apply_errors:
                self._notify(NoticeLevel.WARNING, f"Notepad update problem: {error}", request.step)
            self._log(NotepadUpdatedEvent(
                step_id=step_id,
                actor=request.speaker.value,
                applied=applied.applied,
                errors=apply_errors,
            ))

        self._log(StepCompletedEvent(
            step_id=step_id,
            speaker=request.speaker.value,
            duration_ms=result.duration_ms,
            termination_signal=parsed.termination_signal,
            action_count=len(parsed.actions),
        ))
        logger.debug(
            "Step %s done in %.0fms (actions=%d, signal=%s)",
            step_id, result.duration_ms, len(parsed.actions), parsed.termination_signal,
        )

        return ParsedStepResult(
            spoken_text=parsed.spoken_text,
            termination_signal=parsed.termination_signal,
            duration_ms=result.duration_ms,
            actions=list(parsed.actions),
            parse_errors=list(parsed.errors),
            apply_errors=apply_errors,
            notepad_changed=changed,
        )
