"""
SessionController - the surface a UI or CLI talks to.

- Starts sessions (one at a time) and runs them to a resting status
- Exposes cooperative cancellation and manual retry of a failed step
- Owns the current notepad and its undo/redo
- Reports progress and timing
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from ..config import DualChatConfig
from ..infrastructure.errors import CredentialError, SessionBusyError
from ..llm_backends.base import CompletionService, ImagePayload
from ..notepad import Notepad
from ..runtime.checkpoint import Checkpoint
from ..runtime.executor import StepExecutor
from ..runtime.models import DiscussionPolicy, Notice, NoticeLevel, SessionStatus, Speaker, StepRef, TurnRecord
from ..runtime.orchestrator import OrchestratorState, TurnOrchestrator
from ..runtime.runlog import (
    CheckpointSavedEvent,
    ManualRetryEvent,
    RunLog,
    SessionCancelledEvent,
    SessionStartedEvent,
)
from ..utils.timing import timing
from .models import Session

logger = logging.getLogger("dualchat.runtime")


class SessionController:
    """
    Owns the current Session and runs it through the TurnOrchestrator.

    Example:
        controller = SessionController(config, build_completion_service(config))
        session = await controller.start_session("Explain monads")
        if session.status == SessionStatus.AWAITING_MANUAL_RETRY:
            session = await controller.retry_failed_step()
    """

    def __init__(
        self,
        config: DualChatConfig,
        service: CompletionService,
        *,
        runlog_dir: Optional[Path] = None,
        checkpoint_dir: Optional[Path] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
        on_turn: Optional[Callable[[TurnRecord], None]] = None,
    ):
        self.config = config
        self.service = service
        self.runlog_dir = Path(runlog_dir) if runlog_dir else None
        self.checkpoint_dir = Path(checkpoint_dir) if checkpoint_dir else None
        self.on_notice = on_notice
        self.on_turn = on_turn

        self.notepad = Notepad(config.notepad_initial_content)
        self._session: Optional[Session] = None
        self._orchestrator: Optional[TurnOrchestrator] = None
        self._runlog: Optional[RunLog] = None
        self._running = False
        self._last_duration_ms: Optional[float] = None
        self._last_completed_turns = 0

    # === Progress ===

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def runlog(self) -> Optional[RunLog]:
        return self._runlog

    @property
    def state(self) -> OrchestratorState:
        return self._orchestrator.state if self._orchestrator else OrchestratorState.IDLE

    @property
    def current_turn(self) -> int:
        return self._orchestrator.current_turn if self._orchestrator else 0

    @property
    def current_step(self) -> Optional[StepRef]:
        return self._orchestrator.current_step if self._orchestrator else None

    @property
    def current_speaker(self) -> Optional[Speaker]:
        return self._orchestrator.current_speaker if self._orchestrator else None

    @property
    def discussion_active(self) -> bool:
        return self._orchestrator.discussion_active if self._orchestrator else False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_session_duration_ms(self) -> Optional[float]:
        return self._last_duration_ms

    @property
    def last_completed_turn_count(self) -> int:
        return self._last_completed_turns

    @property
    def pending_checkpoint(self) -> Optional[Checkpoint]:
        return self._session.pending_checkpoint if self._session else None

    # === Internals ===

    def _handle_notice(self, notice: Notice) -> None:
        if self._session is not None:
            self._session.notices.append(notice)
        if self.on_notice is not None:
            self.on_notice(notice)

    def _build_orchestrator(self) -> TurnOrchestrator:
        personas = self.config.personas
        executor = StepExecutor(
            self.service,
            max_auto_retries=self.config.retry.max_auto_retries,
            retry_delay_base=self.config.retry.retry_delay_base_seconds,
            runlog=self._runlog,
            on_notice=self._handle_notice,
            speaker_names={
                Speaker.LOGICAL: personas.logical_name,
                Speaker.CREATIVE: personas.creative_name,
            },
        )
        return TurnOrchestrator(
            self.config,
            executor,
            runlog=self._runlog,
            on_notice=self._handle_notice,
            on_turn=self.on_turn,
        )

    async def _run(self, session: Session, body) -> Session:
        self._running = True
        start = time.perf_counter()
        try:
            await body
        except CredentialError as e:
            # Status is already FAILED; surface the message verbatim
            self._handle_notice(Notice(
                level=NoticeLevel.ERROR,
                text=str(e),
                step_id=e.step_identifier,
            ))
        finally:
            self._running = False
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._last_duration_ms = elapsed_ms
            self._last_completed_turns = session.completed_turn_count
            timing().record(session.id, "session", elapsed_ms, status=session.status.value)

        if session.pending_checkpoint is not None:
            self._persist_checkpoint(session.pending_checkpoint)
        return session

    def _persist_checkpoint(self, checkpoint: Checkpoint) -> None:
        path = None
        if self.checkpoint_dir is not None:
            path = checkpoint.save(self.checkpoint_dir)
            logger.debug("Saved checkpoint %s to %s", checkpoint.checkpoint_id, path)
        if self._runlog is not None:
            self._runlog.append(CheckpointSavedEvent(
                checkpoint_id=checkpoint.checkpoint_id,
                step_id=checkpoint.step.identifier,
                checkpoint_path=str(path) if path else None,
            ))

    # === Operations ===

    async def start_session(
        self,
        query: str,
        image: Optional[ImagePayload] = None,
        policy: Optional[DiscussionPolicy] = None,
    ) -> Session:
        """
        Start a new session and run it until it rests.

        Raises:
            ValueError: no query text and no image
            SessionBusyError: another run is in progress
        """
        query = (query or "").strip()
        if not query and image is None:
            raise ValueError("Query must not be blank")
        if self._running:
            raise SessionBusyError()

        policy = policy or self.config.discussion.to_policy()
        self.notepad = Notepad(self.config.notepad_initial_content)
        session = Session(query=query, policy=policy, notepad=self.notepad, image=image)
        self._session = session
        self._runlog = RunLog(session.id, self.runlog_dir)
        self._runlog.append(SessionStartedEvent(
            query=query,
            discussion=policy.model_dump(mode="json"),
            has_image=image is not None,
        ))
        self._orchestrator = self._build_orchestrator()
        logger.debug("Starting session %s (%s)", session.id, policy.label)
        return await self._run(session, self._orchestrator.run(session))

    def cancel_session(self) -> bool:
        """
        Cancel the active run, or abandon a session awaiting manual retry.

        Returns:
            True if something was cancelled
        """
        session = self._session
        if session is None:
            return False
        if self._running:
            session.token.cancel()
            return True
        if session.status == SessionStatus.AWAITING_MANUAL_RETRY:
            checkpoint = session.pending_checkpoint
            session.pending_checkpoint = None
            session.status = SessionStatus.CANCELLED
            if self._orchestrator is not None:
                self._orchestrator.state = OrchestratorState.CANCELLED
                self._orchestrator.discussion_active = False
            self._handle_notice(Notice(
                level=NoticeLevel.INFO,
                text="Failed step abandoned; session cancelled.",
                step_id=checkpoint.step.identifier if checkpoint else None,
            ))
            if self._runlog is not None:
                self._runlog.append(SessionCancelledEvent(
                    step_id=checkpoint.step.identifier if checkpoint else None
                ))
            return True
        return False

    async def retry_failed_step(self, checkpoint: Optional[Checkpoint] = None) -> Session:
        """
        Re-execute the failed step once and continue the session.

        Raises:
            SessionBusyError: another run is in progress
            ValueError: nothing to retry, or checkpoint does not match the pending one
        """
        if self._running:
            raise SessionBusyError()
        session = self._session
        if session is None or session.pending_checkpoint is None:
            raise ValueError("No failed step to retry")
        pending = session.pending_checkpoint
        if checkpoint is not None and checkpoint.checkpoint_id != pending.checkpoint_id:
            raise ValueError(
                f"Checkpoint {checkpoint.checkpoint_id} does not match pending checkpoint {pending.checkpoint_id}"
            )

        self._handle_notice(Notice(
            level=NoticeLevel.INFO,
            text=f"Retrying step '{pending.step.identifier}'...",
            step_id=pending.step.identifier,
        ))
        if self._runlog is not None:
            self._runlog.append(ManualRetryEvent(
                checkpoint_id=pending.checkpoint_id,
                step_id=pending.step.identifier,
            ))
        if self._orchestrator is None:
            self._orchestrator = self._build_orchestrator()
        return await self._run(session, self._orchestrator.resume(session, pending))

    def clear(self) -> None:
        """Discard the current session and reset the notepad to the template (undoable)."""
        if self._running:
            raise SessionBusyError("Cannot clear while a session is running")
        self._session = None
        self._orchestrator = None
        self._runlog = None
        self.notepad.clear()

    def undo_notepad(self) -> bool:
        if self._running:
            raise SessionBusyError("Cannot edit the notepad while a session is running")
        return self.notepad.undo()

    def redo_notepad(self) -> bool:
        if self._running:
            raise SessionBusyError("Cannot edit the notepad while a session is running")
        return self.notepad.redo()


async def run_dualchat(
    query: str,
    *,
    config: Optional[DualChatConfig] = None,
    service: Optional[CompletionService] = None,
    image: Optional[ImagePayload] = None,
    policy: Optional[DiscussionPolicy] = None,
) -> Session:
    """
    Run one query end to end with the configured backend.

    Returns the resting Session; its notepad holds the final answer when the
    status is DONE.
    """
    from ..config import get_config
    from ..llm_backends import build_completion_service

    config = config or get_config()
    owns_service = service is None
    service = service or build_completion_service(config)
    try:
        controller = SessionController(config, service)
        return await controller.start_session(query, image=image, policy=policy)
    finally:
        if owns_service:
            await service.aclose()
