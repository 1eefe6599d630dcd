"""Resilience layer: per-attempt timeout, retry with backoff, error translation.

Innermost layer, directly around the base handler. Every failure leaving it is
a ToolException with a symbolic code; after the last allowed attempt the
caller sees one RetryExhaustedError instead of the individual failures.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from toolguard.foundation.core import ToolDefinition, ToolHandler, current_context, decorated, invoke
from toolguard.foundation.errors import (
    RetryExhaustedError,
    ToolException,
    ToolTimeoutError,
    translate_error,
)
from toolguard.runtime.middleware.config import ResilienceConfig
from toolguard.runtime.retry import RetryContext, backoff_for, is_retryable

logger = logging.getLogger("toolguard.middleware")

Sleep = Callable[[float], Awaitable[None]]
# (params, final error) -> substitute result, sync or async
Fallback = Callable[[Any, ToolException], Any]


def _discard_outcome(task: asyncio.Future[Any]) -> None:
    """Consume the result of an abandoned attempt."""
    if task.cancelled():
        return
    if (exc := task.exception()) is not None:
        logger.debug("Abandoned attempt failed after timeout: %r", exc)


@dataclass(slots=True)
class ResilienceDecorator:
    """Retry failed attempts with backoff, bounding each attempt by a timeout.

    Validation, not-found and authentication failures are never retried.
    Timeouts are retryable: the timed-out attempt is abandoned (left running,
    its outcome discarded), not cancelled.

    Args:
        config: Retry and timeout settings
        sleep: Delay coroutine (injectable for tests)
        fallback: Called once with (params, error) after the final failure

    Example:
        >>> layer = ResilienceDecorator(ResilienceConfig(maxRetries=2, retryDelayMs=100))
        >>> handler = layer.wrap(base, definition)
    """

    name: ClassVar[str] = "resilience"

    config: ResilienceConfig = field(default_factory=ResilienceConfig)
    sleep: Sleep = asyncio.sleep
    fallback: Fallback | None = None

    def wrap(self, handler: ToolHandler, definition: ToolDefinition) -> ToolHandler:
        cfg, tool = self.config, definition.name
        backoff = backoff_for(cfg.retry_backoff, cfg.retry_delay_ms)

        async def resilient(params: Any) -> Any:
            retry = RetryContext(max_attempts=cfg.max_attempts)
            while not retry.exhausted:
                retry.attempt += 1
                if retry.attempt > 1:
                    delay = backoff.delay(retry.attempt)
                    logger.warning(
                        "[%s] Attempt %d/%d failed (%s). Retrying in %.3fs",
                        tool, retry.attempt - 1, retry.max_attempts, retry.last_error, delay,
                    )
                    await self.sleep(delay)
                    retry.record_delay(delay)
                try:
                    result = await self._attempt(handler, params, tool)
                except Exception as e:
                    err = translate_error(tool, e, attempt=retry.attempt)
                    retryable = is_retryable(err)
                    retry.record_failure(err, retryable=retryable)
                    if not retryable:
                        break
                else:
                    _report(retry)
                    return result

            _report(retry)
            final = self._final_error(retry, tool)
            if self.fallback is None:
                raise final
            try:
                return await invoke(self.fallback, params, final)
            except Exception:
                logger.exception("[%s] Fallback failed, raising original error", tool)
            raise final

        return decorated(handler, resilient, self.name, cfg)

    async def _attempt(self, handler: ToolHandler, params: Any, tool: str) -> Any:
        """One attempt, raced against the timeout."""
        timeout_ms = self.config.timeout_ms
        if not timeout_ms:
            return await handler(params)
        task = asyncio.ensure_future(handler(params))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()
        task.add_done_callback(_discard_outcome)
        raise ToolTimeoutError.create(tool, f"Tool {tool} timed out after {timeout_ms}ms", timeout_ms=timeout_ms)

    @staticmethod
    def _final_error(retry: RetryContext, tool: str) -> ToolException:
        last = retry.last_error
        assert isinstance(last, ToolException)
        # Non-retryable failures and single-attempt configs surface as-is
        if retry.max_attempts == 1 or not is_retryable(last):
            return last
        exhausted = RetryExhaustedError.create(
            tool,
            f"Tool {tool} failed after {retry.attempt} attempts: {last.error.message}",
            retry_context=retry.trace(),
            last_error_code=last.code.value,
        )
        exhausted.__cause__ = last
        return exhausted


def _report(retry: RetryContext) -> None:
    if (ctx := current_context()) is not None:
        ctx.update(retry_attempts=retry.attempt, retry_delay_ms=round(retry.total_delay * 1000, 3))
