import pytest
from pydantic import BaseModel, ValidationError

from llm_agent.models.agent_schemas import AgentConfig, AgentStepType, generate_step_instructions
from llm_agent.models.schemas import (
    ChatFile,
    ChatMessageContent,
    InvocationContext,
    LLMCallSource,
    Role,
    ToolContextError,
)


def test_chat_preset_is_direct_chat():
    config = AgentConfig.chat()
    assert config.is_direct_chat
    assert config.max_thoughts == 10


def test_presets():
    assert AgentConfig.react(["a"]).allowed_steps == {AgentStepType.ACTION}
    assert AgentConfig.plan_and_execute(["a"]).allowed_steps == {
        AgentStepType.PLAN,
        AgentStepType.ACTION,
    }
    assert AgentConfig.reflexion(["a"], max_thoughts=3).max_thoughts == 3


def test_camel_case_aliases():
    config = AgentConfig.model_validate(
        {
            "allowedSteps": ["action", "plan"],
            "tools": ["calc"],
            "maxThoughts": 4,
            "systemMessage": "Be nice",
        }
    )
    assert config.allowed_steps == {AgentStepType.ACTION, AgentStepType.PLAN}
    assert config.max_thoughts == 4
    assert config.system_prompt == "Be nice"


def test_max_thoughts_must_be_positive():
    with pytest.raises(ValidationError):
        AgentConfig(max_thoughts=0)


def test_step_instructions_follow_fixed_order():
    text = generate_step_instructions([AgentStepType.REFLECTION, AgentStepType.PLAN])
    assert text.index(AgentStepType.PLAN.instruction) < text.index(
        AgentStepType.REFLECTION.instruction
    )
    assert AgentStepType.ACTION.instruction not in text


def test_prompt_lists_only_allowed_decisions():
    prompt = AgentConfig.react(["calc"]).prompt
    assert '"final_answer"' in prompt
    assert AgentStepType.ACTION.instruction in prompt
    assert AgentStepType.PLAN.instruction not in prompt
    assert "{" in prompt and "{{" not in prompt


def test_build_prompt_sections():
    config = AgentConfig.react(["calc"], system_prompt="You are helpful.")
    prompt = config.build_prompt("TOOLS HERE")
    assert prompt.startswith("You are helpful.\n\nTOOLS HERE\n\n")


def test_needs_observation():
    assert AgentStepType.ACTION.needs_observation
    assert not AgentStepType.PLAN.needs_observation


def test_user_message_with_image():
    message = ChatMessageContent(
        role=Role.USER,
        content="What is this?",
        files=(ChatFile(kind="base64_image", value="aGk="),),
    )
    assert message.to_openai() == {
        "role": "user",
        "content": [
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,aGk="}},
        ],
    }


def test_call_source_description():
    assert LLMCallSource(type="app", identifier="notes").description == "App: notes"
    assert LLMCallSource().description == "System"


def test_invocation_context_resolve():
    class UserContext(BaseModel):
        user_id: str

    ctx = InvocationContext(user_id="u-1", extra="x")
    assert ctx.resolve(UserContext).user_id == "u-1"
    with pytest.raises(ToolContextError):
        InvocationContext().resolve(UserContext)


def test_prompt_templates():
    from llm_agent.prompts.prompt_layer import PromptNotFoundError, available_prompts, load_prompt

    assert available_prompts() == ["agent_strategy", "step_action", "step_plan", "step_reflection"]
    with pytest.raises(PromptNotFoundError):
        load_prompt("missing")
