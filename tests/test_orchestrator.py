"""Tests for the turn protocol: transitions, termination, resume and cancellation."""

import pytest

from DualChat.agents import partner_signal_addendum
from DualChat.runtime import (
    DiscussionPolicy,
    NoticeLevel,
    OrchestratorState,
    SessionStatus,
    Speaker,
    StepPhase,
    StepRef,
    TurnPurpose,
    next_step,
)
from DualChat.session import SessionController

from conftest import ScriptedCompletionService, fail

DONE_TAG = "<DISCUSSION_COMPLETE>"


def step_ids(session):
    return [r.step.identifier for r in session.transcript]


def count(session, phase):
    return sum(1 for r in session.transcript if r.step.phase == phase)


# === Pure transition rule ===

def test_next_step_fixed_turns():
    policy = DiscussionPolicy.fixed(2)
    assert next_step(policy, StepRef.initial(), False, False) == StepRef.creative_reply(0)
    assert next_step(policy, StepRef.creative_reply(0), True, True) == StepRef.logical_reply(0)
    assert next_step(policy, StepRef.logical_reply(0), True, True) == StepRef.creative_reply(1)
    assert next_step(policy, StepRef.logical_reply(1), False, False) == StepRef.synthesis()
    assert next_step(policy, StepRef.synthesis(), False, False) is None


def test_next_step_ai_driven_requires_both_signals():
    policy = DiscussionPolicy.ai_driven()
    assert next_step(policy, StepRef.creative_reply(0), True, False) == StepRef.logical_reply(0)
    assert next_step(policy, StepRef.creative_reply(0), False, True) == StepRef.logical_reply(0)
    assert next_step(policy, StepRef.creative_reply(0), True, True) == StepRef.synthesis()
    assert next_step(policy, StepRef.logical_reply(4), True, True) == StepRef.synthesis()
    assert next_step(policy, StepRef.logical_reply(4), True, False) == StepRef.creative_reply(5)


def test_fixed_turns_clamped_to_one():
    assert DiscussionPolicy.fixed(0).fixed_turns == 1
    assert DiscussionPolicy.fixed(-3).fixed_turns == 1


def test_step_identifiers():
    assert StepRef.initial().identifier == "logical-initial"
    assert StepRef.creative_reply(2).identifier == "creative-reply-turn-2"
    assert StepRef.logical_reply(0).identifier == "logical-reply-turn-0"
    assert StepRef.synthesis().identifier == "synthesis"
    assert StepRef.synthesis().speaker == Speaker.SYNTHESIZER
    assert StepRef.synthesis().purpose == TurnPurpose.FINAL_ANSWER


# === Full sessions ===

@pytest.mark.asyncio
async def test_hello_fixed_one_turn(config):
    service = ScriptedCompletionService([
        "Hi! I'm here to help.",
        "Agreed, a greeting is enough.",
        "Then we are done.",
        "The answer is in the notepad. <np-replace-all># Hello!\nNice to meet you.</np-replace-all>",
    ])
    controller = SessionController(config, service)

    session = await controller.start_session("Hello", policy=DiscussionPolicy.fixed(1))

    assert session.status == SessionStatus.DONE
    assert step_ids(session) == [
        "logical-initial",
        "creative-reply-turn-0",
        "logical-reply-turn-0",
        "synthesis",
    ]
    assert session.notepad.content == "# Hello!\nNice to meet you."
    assert session.transcript[-1].speaker == Speaker.SYNTHESIZER
    assert session.transcript[-1].text == "The answer is in the notepad."
    assert controller.last_completed_turn_count == 1
    assert controller.state == OrchestratorState.DONE
    assert controller.discussion_active is False
    # Synthesis runs on the logical persona's model
    assert [c.model for c in service.calls] == ["model-l", "model-c", "model-l", "model-l"]


@pytest.mark.asyncio
@pytest.mark.parametrize("turns", [1, 2, 3, 5])
async def test_fixed_turns_yield_n_replies_each(config, turns):
    service = ScriptedCompletionService(default=f"More to add. {DONE_TAG}")
    controller = SessionController(config, service)

    session = await controller.start_session("Design a cache", policy=DiscussionPolicy.fixed(turns))

    assert session.status == SessionStatus.DONE
    assert count(session, StepPhase.CREATIVE_REPLY) == turns
    assert count(session, StepPhase.LOGICAL_REPLY) == turns
    assert count(session, StepPhase.SYNTHESIS) == 1
    assert len(service.calls) == 2 * turns + 2
    assert controller.last_completed_turn_count == turns


@pytest.mark.asyncio
async def test_ai_driven_early_agreement(config):
    service = ScriptedCompletionService([
        f"It's 4. {DONE_TAG}",
        f"Yes, nothing to add. {DONE_TAG}",
        "Final answer ready. <np-replace-all>2 + 2 = 4</np-replace-all>",
    ])
    notices = []
    controller = SessionController(config, service, on_notice=notices.append)

    session = await controller.start_session("What is 2 + 2?")

    assert session.status == SessionStatus.DONE
    assert step_ids(session) == ["logical-initial", "creative-reply-turn-0", "synthesis"]
    assert session.notepad.content == "2 + 2 = 4"
    assert controller.last_completed_turn_count == 1
    assert partner_signal_addendum("Cognito") in service.calls[1].prompt
    assert any("agreed to end" in n.text for n in notices)


@pytest.mark.asyncio
async def test_ai_driven_non_consecutive_signals_do_not_end(config):
    service = ScriptedCompletionService([
        f"Initial. {DONE_TAG}",
        "Not yet.",
        f"Maybe now. {DONE_TAG}",
        "Still no.",
        f"Surely now. {DONE_TAG}",
        f"Fine. {DONE_TAG}",
        "<np-replace-all>answer</np-replace-all>",
    ])
    controller = SessionController(config, service)

    session = await controller.start_session("Debate tabs vs spaces")

    assert step_ids(session) == [
        "logical-initial",
        "creative-reply-turn-0",
        "logical-reply-turn-0",
        "creative-reply-turn-1",
        "logical-reply-turn-1",
        "creative-reply-turn-2",
        "synthesis",
    ]
    assert controller.last_completed_turn_count == 3


@pytest.mark.asyncio
async def test_system_instruction_respects_model_support(config):
    service = ScriptedCompletionService()
    controller = SessionController(config, service)

    await controller.start_session("Q", policy=DiscussionPolicy.fixed(1))

    assert "Cognito" in service.calls[0].system_instruction
    # The creative model in the test config does not accept system instructions
    assert service.calls[1].system_instruction is None


# === Failure, resume and cancellation ===

@pytest.mark.asyncio
async def test_exhaustion_at_creative_turn_one_resumes_into_logical_turn_one(config):
    service = ScriptedCompletionService([
        "init", "c0", "l0", fail(), fail(), fail(),
    ])
    controller = SessionController(config, service)

    session = await controller.start_session("Q", policy=DiscussionPolicy.fixed(2))

    assert session.status == SessionStatus.AWAITING_MANUAL_RETRY
    assert controller.state == OrchestratorState.AWAITING_MANUAL_RETRY
    checkpoint = controller.pending_checkpoint
    assert checkpoint.step == StepRef.creative_reply(1)
    assert [r.text for r in checkpoint.transcript] == ["init", "c0", "l0"]
    assert any(n.id == checkpoint.error_notice_id and n.level == NoticeLevel.ERROR for n in session.notices)

    service.script = ["c1", "l1", "<np-replace-all>done</np-replace-all>"]
    session = await controller.retry_failed_step()

    assert session.status == SessionStatus.DONE
    assert session.pending_checkpoint is None
    assert step_ids(session)[3:] == ["creative-reply-turn-1", "logical-reply-turn-1", "synthesis"]
    assert service.calls[6].prompt == checkpoint.prompt
    assert controller.last_completed_turn_count == 2


@pytest.mark.asyncio
async def test_resume_matches_unfailed_run(config):
    texts = ["init", "c0", "l0", "c1", "l1", "c2", "l2", "c3", "l3", "answer"]
    policy = DiscussionPolicy.fixed(4)

    clean = await SessionController(config, ScriptedCompletionService(list(texts))).start_session(
        "Q", policy=policy
    )

    failing = ScriptedCompletionService(texts[:5] + [fail(), fail(), fail()])
    controller = SessionController(config, failing)
    session = await controller.start_session("Q", policy=policy)
    assert controller.pending_checkpoint.step == StepRef.creative_reply(2)

    failing.script = texts[5:]
    session = await controller.retry_failed_step()

    assert session.status == SessionStatus.DONE
    assert [r.text for r in session.transcript] == [r.text for r in clean.transcript]
    assert step_ids(session) == step_ids(clean)
    assert "creative-reply-turn-3" in step_ids(session)


@pytest.mark.asyncio
async def test_ai_driven_resume_uses_partner_signal_from_checkpoint(config):
    service = ScriptedCompletionService([f"Simple enough. {DONE_TAG}", fail(), fail(), fail()])
    controller = SessionController(config, service)

    await controller.start_session("Hi")
    checkpoint = controller.pending_checkpoint
    assert checkpoint.step == StepRef.creative_reply(0)
    assert checkpoint.partner_signaled_stop is True

    service.script = [f"Agreed. {DONE_TAG}", "Ready. <np-replace-all>Hello!</np-replace-all>"]
    session = await controller.retry_failed_step()

    assert session.status == SessionStatus.DONE
    assert step_ids(session) == ["logical-initial", "creative-reply-turn-0", "synthesis"]
    assert session.notepad.content == "Hello!"


@pytest.mark.asyncio
async def test_synthesis_checkpoint_resumes_straight_to_done(config):
    service = ScriptedCompletionService(["init", "c0", "l0", fail(), fail(), fail()])
    controller = SessionController(config, service)
    await controller.start_session("Q", policy=DiscussionPolicy.fixed(1))
    assert controller.pending_checkpoint.step == StepRef.synthesis()

    service.script = ["Ready. <np-replace-all>final</np-replace-all>"]
    session = await controller.retry_failed_step()

    assert session.status == SessionStatus.DONE
    assert session.notepad.content == "final"
    assert len(service.calls) == 7


@pytest.mark.asyncio
async def test_failed_manual_retry_creates_new_checkpoint(config):
    service = ScriptedCompletionService(["init", fail(), fail(), fail(), fail()])
    controller = SessionController(config, service)
    await controller.start_session("Q", policy=DiscussionPolicy.fixed(1))
    first = controller.pending_checkpoint

    session = await controller.retry_failed_step()

    assert session.status == SessionStatus.AWAITING_MANUAL_RETRY
    second = controller.pending_checkpoint
    assert second.checkpoint_id != first.checkpoint_id
    assert second.step == first.step == StepRef.creative_reply(0)
    assert second.attempts == 1
    assert len(service.calls) == 5


@pytest.mark.asyncio
async def test_cancellation_mid_session(config):
    controller = None

    def cancel_on_second_call(n):
        if n == 2:
            controller.cancel_session()

    service = ScriptedCompletionService(on_call=cancel_on_second_call)
    notices = []
    controller = SessionController(config, service, on_notice=notices.append)

    session = await controller.start_session("Q", policy=DiscussionPolicy.fixed(3))

    assert session.status == SessionStatus.CANCELLED
    assert step_ids(session) == ["logical-initial"]
    assert len(service.calls) == 2
    assert session.pending_checkpoint is None
    assert controller.state == OrchestratorState.CANCELLED
    assert any("cancelled" in n.text.lower() for n in notices)


@pytest.mark.asyncio
async def test_credential_error_fails_session(config):
    from DualChat.llm_backends.base import CompletionErrorKind, CompletionResult

    service = ScriptedCompletionService([
        CompletionResult.failure(CompletionErrorKind.CREDENTIAL_INVALID, "API key is invalid"),
    ])
    notices = []
    controller = SessionController(config, service, on_notice=notices.append)

    session = await controller.start_session("Q")

    assert session.status == SessionStatus.FAILED
    assert session.pending_checkpoint is None
    assert len(service.calls) == 1
    assert controller.state == OrchestratorState.FAILED
    assert notices[-1].level == NoticeLevel.ERROR
    assert notices[-1].text == "API key is invalid"
