"""
Turn Orchestrator: drives one session through the two-persona protocol.

    INITIAL (logical) -> CREATIVE_REPLY(0) -> LOGICAL_REPLY(0) -> CREATIVE_REPLY(1) ...
                      -> SYNTHESIS (logical, as synthesizer) -> DONE

The discussion ends after N reply pairs in fixed-turns mode, or when two
consecutive utterances both carry the termination signal in AI-driven mode.
A step whose retries run out suspends the session on a Checkpoint; resume
re-executes exactly that step and continues with the same transition rules.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..agents.prompts import initial_prompt, reply_prompt, synthesis_prompt, system_prompt_for
from ..infrastructure.errors import CredentialError, ExhaustedStepError, UserCancellation
from .checkpoint import Checkpoint
from .executor import ParsedStepResult, StepExecutor, StepRequest
from .models import (
    DiscussionMode,
    DiscussionPolicy,
    Notice,
    NoticeLevel,
    SessionStatus,
    Speaker,
    StepPhase,
    StepRef,
    TurnRecord,
)
from .runlog import (
    DiscussionEndedEvent,
    RunLog,
    SessionCancelledEvent,
    SessionCompletedEvent,
    SessionFailedEvent,
)

if TYPE_CHECKING:
    from ..config import DualChatConfig
    from ..session.models import Session

logger = logging.getLogger("dualchat.runtime")


class OrchestratorState(str, Enum):
    IDLE = "idle"
    INITIAL_STATEMENT = "initial_statement"
    DISCUSSION_TURN = "discussion_turn"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    CANCELLED = "cancelled"
    AWAITING_MANUAL_RETRY = "awaiting_manual_retry"
    FAILED = "failed"


def next_step(
    policy: DiscussionPolicy,
    step: StepRef,
    signaled: bool,
    partner_signaled: bool,
) -> Optional[StepRef]:
    """
    Transition rule applied after `step` succeeded.

    Args:
        policy: Discussion policy of the session
        step: Step that just completed
        signaled: Termination signal of that step's reply
        partner_signaled: Signal of the utterance immediately before it

    Returns:
        The next step, or None when the session is done
    """
    ai_driven = policy.mode == DiscussionMode.AI_DRIVEN
    mutual = ai_driven and signaled and partner_signaled

    if step.phase == StepPhase.INITIAL:
        return StepRef.creative_reply(0)
    if step.phase == StepPhase.CREATIVE_REPLY:
        if mutual:
            return StepRef.synthesis()
        return StepRef.logical_reply(step.turn)
    if step.phase == StepPhase.LOGICAL_REPLY:
        if mutual:
            return StepRef.synthesis()
        if not ai_driven and step.turn >= policy.fixed_turns - 1:
            return StepRef.synthesis()
        return StepRef.creative_reply(step.turn + 1)
    return None


class TurnOrchestrator:
    """
    Runs a Session to a resting status.

    Progress fields (`state`, `current_turn`, `discussion_active`,
    `current_step`) are updated at every transition so a UI can poll them.
    """

    def __init__(
        self,
        config: "DualChatConfig",
        executor: StepExecutor,
        *,
        runlog: Optional[RunLog] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
        on_turn: Optional[Callable[[TurnRecord], None]] = None,
    ):
        self.config = config
        self.executor = executor
        self.runlog = runlog
        self.on_notice = on_notice
        self.on_turn = on_turn

        self.state = OrchestratorState.IDLE
        self.current_turn = 0
        self.discussion_active = False
        self.current_step: Optional[StepRef] = None

    @property
    def current_speaker(self) -> Optional[Speaker]:
        return self.current_step.speaker if self.current_step else None

    # === Names ===

    @property
    def names(self) -> dict[Speaker, str]:
        personas = self.config.personas
        return {Speaker.LOGICAL: personas.logical_name, Speaker.CREATIVE: personas.creative_name}

    def _name(self, speaker: Speaker) -> str:
        return self.names[speaker.persona]

    # === Helpers ===

    def _notify(self, session: "Session", level: NoticeLevel, text: str, step: Optional[StepRef] = None) -> None:
        notice = Notice(level=level, text=text, step_id=step.identifier if step else None)
        if self.on_notice is not None:
            self.on_notice(notice)
        else:
            session.notices.append(notice)

    def _log(self, event: Any) -> None:
        if self.runlog is not None:
            self.runlog.append(event)

    def _enter(self, step: StepRef) -> None:
        self.current_step = step
        if step.phase == StepPhase.INITIAL:
            self.state = OrchestratorState.INITIAL_STATEMENT
        elif step.phase == StepPhase.SYNTHESIS:
            self.state = OrchestratorState.SYNTHESIZING
            self.discussion_active = False
        else:
            self.state = OrchestratorState.DISCUSSION_TURN
            self.current_turn = step.turn
            self.discussion_active = True

    def build_request(self, session: "Session", step: StepRef, partner_signaled: bool) -> StepRequest:
        """Build a fresh request from the live transcript and notepad."""
        speaker = step.speaker
        model = self.config.model_for(speaker)
        names = self.names
        logical, creative = names[Speaker.LOGICAL], names[Speaker.CREATIVE]
        ai_driven = session.policy.mode == DiscussionMode.AI_DRIVEN
        has_image = session.image is not None
        notepad = session.notepad.content

        if step.phase == StepPhase.INITIAL:
            prompt = initial_prompt(
                session.query, notepad,
                logical=logical, creative=creative, ai_driven=ai_driven, has_image=has_image,
            )
        elif step.phase == StepPhase.SYNTHESIS:
            prompt = synthesis_prompt(
                session.query, session.transcript, notepad,
                logical=logical, creative=creative, names=names,
                ai_driven=ai_driven, has_image=has_image,
            )
        else:
            creative_speaking = step.phase == StepPhase.CREATIVE_REPLY
            prompt = reply_prompt(
                session.query, session.transcript, notepad,
                partner_name=logical if creative_speaking else creative,
                partner_role="the logical AI" if creative_speaking else "the creative AI",
                names=names,
                ai_driven=ai_driven,
                partner_signaled=partner_signaled,
                has_image=has_image,
            )

        system_instruction = None
        if model.supports_system_instruction:
            personas = self.config.personas
            is_creative = speaker.persona == Speaker.CREATIVE
            override = personas.creative_system_prompt if is_creative else personas.logical_system_prompt
            system_instruction = system_prompt_for(is_creative, logical, creative, override)

        return StepRequest(
            step=step,
            prompt=prompt,
            model_ref=model.name,
            user_query=session.query,
            discussion=session.policy,
            system_instruction=system_instruction,
            image=session.image,
            transcript=list(session.transcript),
            turn_index=step.turn,
            partner_signaled_stop=partner_signaled,
        )

    def _record(self, session: "Session", step: StepRef, result: ParsedStepResult) -> TurnRecord:
        record = TurnRecord(
            speaker=step.speaker,
            purpose=step.purpose,
            text=result.spoken_text,
            duration_ms=result.duration_ms,
            termination_signal=result.termination_signal,
            step=step,
        )
        session.transcript.append(record)
        if step.phase == StepPhase.INITIAL:
            self.discussion_active = True
        if self.on_turn is not None:
            self.on_turn(record)
        return record

    def _advance(
        self,
        session: "Session",
        step: StepRef,
        signaled: bool,
        partner_signaled: bool,
    ) -> Optional[StepRef]:
        nxt = next_step(session.policy, step, signaled, partner_signaled)
        ai_driven = session.policy.mode == DiscussionMode.AI_DRIVEN

        if ai_driven and signaled and step.phase != StepPhase.SYNTHESIS:
            speaker = self._name(step.speaker)
            if nxt is not None and nxt.phase == StepPhase.SYNTHESIS:
                partner = self._name(
                    Speaker.CREATIVE if step.speaker == Speaker.LOGICAL else Speaker.LOGICAL
                )
                self._notify(
                    session, NoticeLevel.INFO,
                    f"Both {partner} and {speaker} agreed to end the discussion.", step,
                )
            else:
                self._notify(session, NoticeLevel.INFO, f"{speaker} suggested ending the discussion.", step)

        if nxt is not None and nxt.phase == StepPhase.SYNTHESIS:
            self.discussion_active = False
            self._log(DiscussionEndedEvent(
                reason="mutual_agreement" if ai_driven else "fixed_turns",
                turns=step.turn + 1,
            ))
        return nxt

    async def _drive(self, session: "Session", step: Optional[StepRef], partner_signaled: bool) -> None:
        while step is not None:
            session.token.raise_if_cancelled()
            self._enter(step)
            request = self.build_request(session, step, partner_signaled)
            result = await self.executor.execute(request, session.notepad, session.token)
            self._record(session, step, result)
            nxt = self._advance(session, step, result.termination_signal, partner_signaled)
            partner_signaled = result.termination_signal
            step = nxt

    async def _guarded(self, session: "Session", body) -> "Session":
        """Run `body` and map its outcome onto session status."""
        try:
            await body
        except UserCancellation:
            self.state = OrchestratorState.CANCELLED
            self.discussion_active = False
            session.status = SessionStatus.CANCELLED
            self._notify(session, NoticeLevel.INFO, "Session cancelled by user.", self.current_step)
            self._log(SessionCancelledEvent(
                step_id=self.current_step.identifier if self.current_step else None
            ))
        except ExhaustedStepError as e:
            self.state = OrchestratorState.AWAITING_MANUAL_RETRY
            session.status = SessionStatus.AWAITING_MANUAL_RETRY
            session.pending_checkpoint = e.checkpoint
            logger.debug("Session %s suspended at %s", session.id, e.checkpoint.step.identifier)
        except CredentialError as e:
            self.state = OrchestratorState.FAILED
            self.discussion_active = False
            session.status = SessionStatus.FAILED
            session.error = str(e)
            self._log(SessionFailedEvent(error=str(e)))
            raise
        else:
            self.state = OrchestratorState.DONE
            self.discussion_active = False
            session.status = SessionStatus.DONE
            self._log(SessionCompletedEvent(
                completed_turns=session.completed_turn_count,
                duration_ms=(datetime.now() - session.started_at).total_seconds() * 1000,
            ))
        finally:
            if session.status != SessionStatus.RUNNING:
                session.ended_at = datetime.now()
        return session

    async def run(self, session: "Session") -> "Session":
        """Run a fresh session from the initial statement."""
        self.current_turn = 0
        self.discussion_active = False
        return await self._guarded(session, self._drive(session, StepRef.initial(), False))

    async def _resume_body(self, session: "Session", checkpoint: Checkpoint) -> None:
        session.token.raise_if_cancelled()
        self._enter(checkpoint.step)
        if checkpoint.step.phase != StepPhase.INITIAL and checkpoint.step.phase != StepPhase.SYNTHESIS:
            self.discussion_active = True
        request = StepRequest.from_checkpoint(checkpoint)
        result = await self.executor.execute(request, session.notepad, session.token, max_attempts=1)
        self._record(session, checkpoint.step, result)
        nxt = self._advance(session, checkpoint.step, result.termination_signal, checkpoint.partner_signaled_stop)
        await self._drive(session, nxt, result.termination_signal)

    async def resume(self, session: "Session", checkpoint: Checkpoint) -> "Session":
        """
        Resume a suspended session from its checkpoint.

        The failed step is re-executed once with the exact stored prompt; the
        transcript, turn index and partner signal come from the checkpoint.
        """
        session.pending_checkpoint = None
        session.status = SessionStatus.RUNNING
        session.ended_at = None
        session.policy = checkpoint.discussion
        session.transcript = list(checkpoint.transcript)
        self.current_turn = checkpoint.turn_index
        return await self._guarded(session, self._resume_body(session, checkpoint))
