"""DeepSeek chat-completions client with bounded exponential-backoff retry."""

from __future__ import annotations

import asyncio
import logging

import httpx
from rich.console import Console
from rich.markup import escape
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from yitpush.config import DeepSeekConfig

logger = logging.getLogger(__name__)
console = Console()

TRUNCATION_MARKER = "\n\n...[TRUNCATED - {omitted} characters omitted]...\n\n"
QUOTE_CHARS = "\"' \n\r"


def truncate(text: str, max_chars: int) -> str:
    """Keep the head and tail of an oversized text, dropping the middle.

    The first ``max_chars // 2`` and the last ``max_chars - max_chars // 2``
    characters are kept verbatim, with a marker noting how many characters
    were omitted in between. Text within budget is returned unchanged.
    """
    if not text or len(text) <= max_chars:
        return text

    console.print(
        f"\n[yellow]Diff is too large ({len(text)} chars). Truncating to {max_chars} chars...[/yellow]"
    )
    logger.warning("Truncating prompt input from %d to %d characters", len(text), max_chars)

    keep_beginning = max_chars // 2
    keep_end = max_chars - keep_beginning
    marker = TRUNCATION_MARKER.format(omitted=len(text) - max_chars)
    return text[:keep_beginning] + marker + text[len(text) - keep_end :]


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class TransientResponseError(Exception):
    """A response worth another attempt: rate limit, server error or no completions."""


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def _announce_retry(retry_state: RetryCallState) -> None:
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    console.print(f"Retrying in {delay:g}s...")


class DeepSeekClient:
    """Send prompts to the DeepSeek chat-completions endpoint."""

    def __init__(
        self,
        config: DeepSeekConfig,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.api_key = api_key if api_key is not None else config.api_key
        self._transport = transport

    def _payload(self, prompt: str) -> dict:
        return {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.config.max_tokens,
        }

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=self.config.base_delay, exp_base=2),
            retry=retry_if_exception_type((httpx.HTTPError, TransientResponseError)),
            before_sleep=_announce_retry,
            sleep=_sleep,
        )

    async def _attempt(self, client: httpx.AsyncClient, prompt: str, progress: str) -> str:
        """One request. Raises on transient failures, returns "" on permanent ones."""
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            response = await client.post(self.config.api_url, json=self._payload(prompt), headers=headers)
        except httpx.TimeoutException as e:
            console.print(f"[yellow]Request timeout {progress}: {escape(str(e))}[/yellow]")
            logger.warning("DeepSeek request timed out %s", progress)
            raise
        except httpx.HTTPError as e:
            console.print(f"[yellow]Network error {progress}: {escape(str(e))}[/yellow]")
            logger.warning("DeepSeek network error %s: %s", progress, e)
            raise

        if not response.is_success:
            console.print(f"[red]API Error {progress}: {response.status_code}[/red]")
            console.print(f"Response: {escape(response.text)}")
            logger.warning("DeepSeek returned HTTP %d %s", response.status_code, progress)
            if _is_retryable_status(response.status_code):
                raise TransientResponseError(f"HTTP {response.status_code}")
            return ""

        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        try:
            data = response.json()
        except ValueError as e:
            console.print(f"[red]Could not parse API response {progress}: {escape(str(e))}[/red]")
            logger.error("Malformed JSON from DeepSeek: %s", e)
            return ""

        choices = (data.get("choices") or []) if isinstance(data, dict) else None
        if not isinstance(choices, list):
            console.print(f"[red]Unexpected API response shape {progress}[/red]")
            logger.error("DeepSeek response has no usable choices list: %.200r", data)
            return ""
        if not choices:
            console.print(f"[yellow]No response from API {progress}[/yellow]")
            logger.warning("DeepSeek returned no choices %s", progress)
            raise TransientResponseError("no choices")

        console.print(f"[green]Response received {progress}[/green]")
        return _extract_content(choices[0])

    async def generate(self, prompt: str) -> str:
        """Return the generated text, or "" when every attempt failed."""
        max_retries = self.config.max_retries

        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            try:
                async for attempt in self._retrying():
                    with attempt:
                        progress = f"(attempt {attempt.retry_state.attempt_number}/{max_retries})"
                        return await self._attempt(client, prompt, progress)
            except RetryError:
                logger.error("DeepSeek request failed after %d attempts", max_retries)

        return ""


def _extract_content(choice: object) -> str:
    message = choice.get("message") if isinstance(choice, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        logger.error("DeepSeek completion has no message content")
        return ""

    reasoning = message.get("reasoning_content")
    if isinstance(reasoning, str):
        logger.debug("Model reasoning: %d characters", len(reasoning))

    return content.strip().strip(QUOTE_CHARS)


async def generate(api_key: str, prompt: str, config: DeepSeekConfig | None = None) -> str:
    """Generate text for a single prompt with a fresh retry budget."""
    client = DeepSeekClient(config or DeepSeekConfig(), api_key=api_key)
    return await client.generate(prompt)
