# src/conductor_board/llm/client.py

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..config import Settings
from ..planning.plan import PlanGenerationError, skeletons_from_json
from ..tasks.task_models import LogLine, LogSeverity, Task, TaskSkeleton

logger = logging.getLogger(__name__)

LOG_LINE_FALLBACK = "Executing internal process..."
LOG_LINE_EMPTY = "Processing..."

PLAN_SYSTEM_PROMPT = (
    "You are the Conductor, an advanced AI software architect. "
    "Break project goals down into granular, actionable technical tasks for a developer."
)

PLAN_USER_TEMPLATE = """\
Goal: "{goal}"

Return a list of 4-8 tasks.
Prioritize logical flow (Setup -> Core Logic -> UI -> Testing).
Answer with a JSON array only. Each item must be an object with keys:
"title" (string), "description" (string), "priority" ("low" | "medium" | "high").
"""

LOG_LINE_TEMPLATE = """\
You are simulating a CLI terminal output for a task runner.
Task: {title}
Current Progress: {progress}%
Context: The task is currently running.

Generate ONE single line of technical terminal log output that represents what is happening right now.
Examples: "Compiling src/utils.ts...", "Running unit tests...", "Fetching dependency...", "Optimizing assets..."
Keep it short and technical. Do not include timestamps.
"""


class LLMConfigError(RuntimeError):
    """The LLM is not configured (missing key / models / base URL)."""


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError, httpx.TransportError)):
        return True
    return isinstance(exc, TimeoutError)


def _is_not_found_error(exc: Exception) -> bool:
    if isinstance(exc, openai.NotFoundError):
        return True
    status = getattr(exc, "status_code", None)
    return status == 404


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if isinstance(err, LLMConfigError):
        return f"LLM is not configured: {msg}"
    return msg


def _message_text(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class OpenRouterConductorClient:
    """
    OpenAI-compatible (OpenRouter) client acting as both the plan generator
    and the log-text provider.

    Behavior:
    - Tries models in the configured order; 404 -> skip the model for an hour,
      rate limit / network issues -> try next, auth issues -> fail fast.
    - SDK retries are disabled so fallback across models stays quick.
    - Blocking SDK calls run in a worker thread (asyncio.to_thread).
    - No secrets required at construction; a missing key surfaces on first call.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: OpenAI | None = None
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

    @property
    def configured(self) -> bool:
        key = self._settings.openrouter_api_key
        return bool(key and key.strip())

    def _get_client(self) -> OpenAI:
        if self._client is not None:
            return self._client

        s = self._settings
        if not self.configured:
            raise LLMConfigError("API key is not set. Set CONDUCTOR_OPENROUTER_API_KEY in your .env.")
        if not s.openrouter_base_url.strip():
            raise LLMConfigError("Base URL is not set. Set CONDUCTOR_OPENROUTER_BASE_URL in your .env.")

        timeout = httpx.Timeout(
            connect=s.llm_connect_timeout_seconds,
            read=s.llm_read_timeout_seconds,
            write=10.0,
            pool=s.llm_connect_timeout_seconds,
        )
        self._client = OpenAI(
            base_url=s.openrouter_base_url,
            api_key=str(s.openrouter_api_key),
            timeout=timeout,
            max_retries=0,
        )
        return self._client

    def _complete(self, messages: list[dict[str, str]], *, max_tokens: int | None = None) -> str:
        """Run one chat completion with model fallback. Raises RuntimeError when every model fails."""
        models = [m.strip() for m in self._settings.llm_models if m and m.strip()]
        if not models:
            raise LLMConfigError("Model list is empty. Set CONDUCTOR_LLM_MODELS in your .env.")

        client = self._get_client()
        headers = dict(self._settings.extra_headers or {})
        last_error: Exception | None = None
        now = time.monotonic()

        for model in models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            t0 = time.monotonic()
            try:
                kwargs: dict[str, Any] = {
                    "model": model,
                    "messages": messages,
                    "extra_headers": headers or None,
                }
                if max_tokens is not None:
                    kwargs["max_tokens"] = max_tokens
                response = client.chat.completions.create(**kwargs)
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (CONDUCTOR_OPENROUTER_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + 3600.0
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            text = _message_text(response).strip()
            if text:
                logger.debug("LLM: model=%s answered in %.2fs", model, time.monotonic() - t0)
                return text
            last_error = RuntimeError(f"Model returned no content: {model}")

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error
        raise RuntimeError("All LLM models failed.")

    # ---- PlanGenerator ----

    def generate_plan_sync(self, goal: str) -> list[TaskSkeleton]:
        text = self._complete(
            [
                {"role": "system", "content": PLAN_SYSTEM_PROMPT},
                {"role": "user", "content": PLAN_USER_TEMPLATE.format(goal=goal)},
            ]
        )
        try:
            return skeletons_from_json(text)
        except PlanGenerationError:
            logger.info("LLM: unusable plan output: %r", text[:200])
            raise

    async def generate_plan(self, goal: str) -> list[TaskSkeleton]:
        return await asyncio.to_thread(self.generate_plan_sync, goal)

    # ---- LogTextProvider ----

    def task_log_line_sync(self, task: Task) -> LogLine:
        try:
            text = self._complete(
                [{"role": "user", "content": LOG_LINE_TEMPLATE.format(title=task.title, progress=task.progress)}],
                max_tokens=20,
            )
        except Exception as e:
            logger.debug("LLM: log line failed for task %s: %s", task.id, e)
            return LogLine(LOG_LINE_FALLBACK, LogSeverity.INFO)

        first = text.strip().splitlines()[0].strip() if text.strip() else ""
        return LogLine(first or LOG_LINE_EMPTY, LogSeverity.INFO)

    async def task_log_line(self, task: Task) -> LogLine:
        return await asyncio.to_thread(self.task_log_line_sync, task)
