import json
import re
import time
from typing import Any, Dict, Protocol, Sequence
from pydantic_ai import Agent
from loguru import logger
from src.config import settings
from src.models.conversation import ConversationTurn, TurnRole, format_transcript
from src.utils.llm_client import run_agent_with_circuit_breaker
from src.utils.observability import log_llm_call


class TextCompleter(Protocol):
    """The external text-completion service: message history in, text out."""

    async def complete(self, messages: Sequence[ConversationTurn]) -> str:
        ...


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_reply(reply: str) -> Dict[str, Any]:
    """
    Parse a JSON-mode completion.
    Tolerates markdown code fences; raises ValueError on anything that is not a JSON object.
    """
    cleaned = _FENCE.sub("", reply.strip())
    if not cleaned.startswith("{"):
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("Completion did not contain a JSON object")
        cleaned = cleaned[start:end + 1]

    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("Completion JSON is not an object")
    return data


class CompletionAgent:
    """
    PydanticAI-backed TextCompleter.

    System turns become the agent instructions for the call; the rest of
    the history is rendered as a ROLE: text transcript. Runs with retries
    behind the named circuit breaker, so a sustained provider outage fails
    fast with CircuitOpenError.
    """

    def __init__(
        self,
        model_name: str | None = None,
        caller: str = "completion",
        circuit_name: str = "openai",
        agent: Agent | None = None,
    ):
        self.model_name = model_name or settings.extraction_model
        self.caller = caller
        self.circuit_name = circuit_name
        self._agent = agent

    @property
    def agent(self) -> Agent:
        # Built on first use so importing the pipeline never needs an API key
        if self._agent is None:
            self._agent = Agent(self.model_name, output_type=str)
            logger.info(f"CompletionAgent[{self.caller}] initialized with model: {self.model_name}")
        return self._agent

    def _render_prompt(self, messages: Sequence[ConversationTurn]) -> str:
        system = "\n\n".join(m.text for m in messages if m.role == TurnRole.SYSTEM)
        history = format_transcript([m for m in messages if m.role != TurnRole.SYSTEM])
        if not system:
            return history
        return f"{system}\n\nCONVERSATION:\n{history}"

    async def complete(self, messages: Sequence[ConversationTurn]) -> str:
        prompt = self._render_prompt(messages)
        start = time.perf_counter()
        try:
            output = await run_agent_with_circuit_breaker(
                self.agent, prompt, circuit_name=self.circuit_name
            )
        except Exception as e:
            log_llm_call(
                self.caller, self.model_name,
                (time.perf_counter() - start) * 1000,
                success=False, error=str(e),
            )
            raise

        log_llm_call(self.caller, self.model_name, (time.perf_counter() - start) * 1000)
        return str(output)
