"""
LLM Client with Retry Logic & Error Handling
Provides resilient LLM execution with exponential backoff and circuit breaker.
"""
import asyncio
import random
from typing import TypeVar, Any
from loguru import logger
from pydantic_ai import Agent
from src.config import get_settings
from src.utils.circuit_breaker import get_circuit, CircuitState

# Type variable for generic agent output
T = TypeVar('T')


class LLMError(Exception):
    """Recoverable LLM errors that should trigger retries."""
    pass


class LLMCriticalError(Exception):
    """Non-recoverable errors (auth failure, invalid prompt, etc.)."""
    pass


def _categorize_error(error: Exception) -> str:
    """Map a raw provider exception onto a retry category."""
    error_msg = str(error).lower()

    if "rate" in error_msg and "limit" in error_msg:
        return "rate_limit"
    if "timeout" in error_msg or "timed out" in error_msg:
        return "timeout"
    if any(code in error_msg for code in ["500", "502", "503", "504"]):
        return "server_error"
    if "authentication" in error_msg or "api key" in error_msg or "401" in error_msg:
        return "auth"
    if "invalid" in error_msg and "request" in error_msg:
        return "invalid_request"
    return "unknown"


async def run_agent_with_retry(
    agent: Agent,
    prompt: str,
    deps: Any = None,
    max_retries: int | None = None
) -> T:
    """
    Executes an agent with exponential backoff retry logic.

    Args:
        agent: The PydanticAI agent to run
        prompt: The prompt to send to the agent
        deps: Optional dependencies for the agent
        max_retries: Override default retry count from settings

    Returns:
        The agent's output (typed based on agent's output_type)

    Raises:
        LLMCriticalError: For non-recoverable failures
        LLMError: After max retries exhausted

    Example:
        >>> agent = Agent('openai:gpt-4o-mini', output_type=str)
        >>> reply = await run_agent_with_retry(agent, "Summarize this site")
    """
    settings = get_settings()
    max_attempts = max_retries or settings.max_retries
    min_wait = settings.retry_min_wait_seconds
    max_wait = settings.retry_max_wait_seconds

    last_error = None

    for attempt in range(1, max_attempts + 1):
        try:
            logger.debug(f"LLM attempt {attempt}/{max_attempts}")

            if deps is not None:
                result = await agent.run(prompt, deps=deps)
            else:
                result = await agent.run(prompt)

            return result.output

        except Exception as e:
            last_error = e
            error_type = _categorize_error(e)

            if error_type == "auth":
                logger.error(f"🚨 Authentication failure: {e}")
                raise LLMCriticalError(f"Authentication failed: {e}") from e

            if error_type == "invalid_request":
                logger.error(f"🚨 Invalid request: {e}")
                raise LLMCriticalError(f"Invalid request: {e}") from e

            if error_type == "rate_limit":
                logger.warning(f"⏱️ Rate limit hit (attempt {attempt}/{max_attempts})")
            elif error_type == "timeout":
                logger.warning(f"⏱️ Timeout (attempt {attempt}/{max_attempts})")
            elif error_type == "server_error":
                logger.warning(f"🔧 Server error (attempt {attempt}/{max_attempts})")
            else:
                logger.warning(f"⚠️ Unknown error (attempt {attempt}/{max_attempts}): {e}")

            if attempt == max_attempts:
                logger.error(f"❌ Max retries ({max_attempts}) exhausted. Last error: {e}")
                raise LLMError(f"Failed after {max_attempts} attempts: {e}") from e

            # Exponential backoff with 20% jitter
            wait_time = min(min_wait * (2 ** (attempt - 1)), max_wait)
            wait_time = wait_time * (0.8 + 0.4 * random.random())

            logger.info(f"⏳ Retrying in {wait_time:.1f}s... (error: {error_type})")
            await asyncio.sleep(wait_time)

    raise LLMError(f"Unexpected retry loop exit. Last error: {last_error}")


async def run_agent_with_circuit_breaker(
    agent: Agent,
    prompt: str,
    circuit_name: str = "openai",
    deps: Any = None,
    max_retries: int | None = None
) -> T:
    """
    Executes an agent with retries behind a named circuit breaker.

    While the provider keeps failing, the circuit opens and calls are
    rejected with CircuitOpenError instead of burning retries. Callers
    degrade on any exception, so the error type only matters for logging.

    Raises:
        CircuitOpenError: When the circuit rejects the call
        LLMError / LLMCriticalError: When the call itself fails
    """
    circuit = get_circuit(circuit_name)

    async def execute():
        return await run_agent_with_retry(agent, prompt, deps=deps, max_retries=max_retries)

    return await circuit.call(execute)


def get_circuit_status(circuit_name: str = "openai") -> dict:
    """Get current circuit breaker status for monitoring."""
    return get_circuit(circuit_name).get_status()


def is_circuit_open(circuit_name: str = "openai") -> bool:
    """Check if circuit breaker is currently open."""
    return get_circuit(circuit_name).state == CircuitState.OPEN
