"""
Tests for CompletionAgent and JSON reply parsing.
"""
import pytest
from unittest.mock import AsyncMock, Mock

from src.agents.completion_agent import CompletionAgent, parse_json_reply
from src.models.conversation import ConversationTurn, TurnRole
from src.utils.llm_client import LLMCriticalError, get_circuit_status


def mock_agent(output="ok"):
    agent = Mock()
    result = Mock()
    result.output = output
    agent.run = AsyncMock(return_value=result)
    return agent


class TestParseJsonReply:

    def test_plain_object(self):
        assert parse_json_reply('{"found": true}') == {"found": True}

    def test_fenced_object(self):
        assert parse_json_reply('```json\n{"score": 70}\n```') == {"score": 70}

    def test_object_inside_prose(self):
        assert parse_json_reply('Here you go: {"a": 1} hope it helps') == {"a": 1}

    def test_no_object(self):
        with pytest.raises(ValueError):
            parse_json_reply("I could not find that company")

    def test_array_rejected(self):
        with pytest.raises(ValueError):
            parse_json_reply("[1, 2, 3]")


class TestPromptRendering:

    def test_system_turns_become_instructions(self):
        agent = CompletionAgent("openai:gpt-4o-mini", agent=mock_agent())

        prompt = agent._render_prompt([
            ConversationTurn(role=TurnRole.SYSTEM, text="Extract fields."),
            ConversationTurn(role=TurnRole.USER, text="We have 40 nurses"),
            ConversationTurn(role=TurnRole.ASSISTANT, text="Thanks!"),
        ])

        assert prompt.startswith("Extract fields.")
        assert "CONVERSATION:\nUSER: We have 40 nurses\nASSISTANT: Thanks!" in prompt

    def test_without_system_turns(self):
        agent = CompletionAgent("openai:gpt-4o-mini", agent=mock_agent())

        prompt = agent._render_prompt([ConversationTurn(role=TurnRole.USER, text="hi")])

        assert prompt == "USER: hi"


@pytest.mark.asyncio
class TestComplete:

    async def test_returns_agent_output(self):
        inner = mock_agent('{"found": false}')
        agent = CompletionAgent("openai:gpt-4o-mini", caller="test", agent=inner)

        reply = await agent.complete([ConversationTurn(role=TurnRole.USER, text="Acme")])

        assert reply == '{"found": false}'
        inner.run.assert_awaited_once_with("USER: Acme")

    async def test_critical_errors_propagate(self):
        inner = Mock()
        inner.run = AsyncMock(side_effect=Exception("Authentication failed: Invalid API key"))
        agent = CompletionAgent("openai:gpt-4o-mini", agent=inner)

        with pytest.raises(LLMCriticalError):
            await agent.complete([ConversationTurn(role=TurnRole.USER, text="Acme")])

    async def test_uses_named_circuit(self):
        agent = CompletionAgent("openai:gpt-4o-mini", circuit_name="identity", agent=mock_agent())

        await agent.complete([ConversationTurn(role=TurnRole.USER, text="Acme")])

        assert get_circuit_status("identity")["total_successes"] == 1
