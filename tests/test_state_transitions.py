"""State transition tests for Prompt model.

Tests focus on validating the prompt lifecycle state machine:
- Valid transitions between states
- Terminal states (completed, failed) are never left
- Failed state is reachable from any non-terminal state
"""

from uuid import uuid4

import pytest

from promptcanvas.models.prompt import InvalidStateTransition, Prompt, PromptStatus


def _prompt(status: PromptStatus = PromptStatus.PENDING) -> Prompt:
    return Prompt(user_id=uuid4(), prompt_text="a red fox in snow", status=status)


def test_new_prompt_starts_pending():
    prompt = Prompt(user_id=uuid4(), prompt_text="a red fox in snow")

    assert prompt.status == PromptStatus.PENDING
    assert not prompt.is_terminal


def test_valid_state_transitions():
    """Happy path: pending → processing → completed."""
    prompt = _prompt()

    prompt.mark_processing()
    assert prompt.status == PromptStatus.PROCESSING

    prompt.mark_completed()
    assert prompt.status == PromptStatus.COMPLETED
    assert prompt.is_terminal


@pytest.mark.parametrize("status", [PromptStatus.PENDING, PromptStatus.PROCESSING])
def test_failed_reachable_from_non_terminal_states(status):
    prompt = _prompt(status)

    prompt.mark_failed({"error": "provider_failure", "reason": "boom"})

    assert prompt.status == PromptStatus.FAILED
    assert prompt.error_data == {"error": "provider_failure", "reason": "boom"}


@pytest.mark.parametrize("status", [PromptStatus.COMPLETED, PromptStatus.FAILED])
def test_terminal_states_reject_every_transition(status):
    prompt = _prompt(status)

    with pytest.raises(InvalidStateTransition):
        prompt.mark_processing()
    with pytest.raises(InvalidStateTransition):
        prompt.mark_completed()
    with pytest.raises(InvalidStateTransition) as exc_info:
        prompt.mark_failed({"error": "late"})

    assert "terminal" in str(exc_info.value)
    assert prompt.status == status


def test_completed_requires_processing():
    """A pending prompt cannot skip the generating step."""
    prompt = _prompt()

    with pytest.raises(InvalidStateTransition) as exc_info:
        prompt.mark_completed()

    assert "pending" in str(exc_info.value)
    assert prompt.status == PromptStatus.PENDING


@pytest.mark.asyncio
async def test_transitions_persist_through_repository(uow_factory, create_user):
    user = await create_user()

    async with await uow_factory() as uow:
        prompt = await uow.prompts.create_pending(
            user_id=user.id, prompt_text="a red fox in snow", model_settings={"model": "m"}
        )
        prompt_id = prompt.id

    async with await uow_factory() as uow:
        await uow.prompts.mark_processing(prompt_id)

    async with await uow_factory() as uow:
        await uow.prompts.mark_failed(prompt_id, {"error": "upload_failure"})

    async with await uow_factory() as uow:
        stored = await uow.prompts.get_by_id(prompt_id)
        assert stored is not None
        assert stored.status == PromptStatus.FAILED
        assert stored.error_data == {"error": "upload_failure"}
        assert stored.model_settings == {"model": "m"}

        with pytest.raises(InvalidStateTransition):
            await uow.prompts.mark_completed(prompt_id)
