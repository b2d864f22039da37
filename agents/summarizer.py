"""Summarization client for extracted paper text.

Builds a bounded prompt for one paper and sends it to an OpenAI-compatible
chat completions endpoint through a shared AsyncOpenAI client. The SDK's own
retries are disabled so the policy below is the only one in effect.

Retry Policy:
    - Up to MAX_ATTEMPTS total attempts (default 3)
    - Retried: connection errors, timeouts, HTTP 429, HTTP 5xx
    - Terminal: any other API status error, unparseable body, zero choices
    - Attempt n (n >= 2) waits RETRY_DELAY_MS * n before sending

The paper text is truncated before the request is built, so every attempt
submits the same body.
"""

import asyncio
import logging

from openai import (
    APIConnectionError,
    APIResponseValidationError,
    APIStatusError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from openai.types.chat import ChatCompletion

from config import Config
from models.outcomes import AttemptStatus, SummaryAttempt
from models.paper import Paper

logger = logging.getLogger(__name__)

# Response bodies are clipped to this many characters in error messages
_MAX_ERROR_BODY = 500


SUMMARY_PROMPT = """Please provide a comprehensive, evidence-based summary of the following academic paper based on the provided text.
Title: {title}
arXiv ID: {paper_id}
PDF URL: {pdf_url}

Paper Content:
{content}

Please analyze the text provided and structure your summary using the following specific sections:
1. **Overview**: A concise description of the paper's core mission, what it introduces (e.g., specific benchmarks, datasets, or models), and its primary goal.
2. **Key Results**: detailed quantitative findings. Do not be vague. Extract specific metrics, leaderboard rankings, scores (e.g., "Model X scored 56.1%"), and domain-specific performance comparisons.
3. **Methodology**: Explain the specific approach used. Detail the dataset composition (e.g., number of test cases, expert sources) and the evaluation/grading process (e.g., "hurdle criteria," "grounding checks," or specific algorithms).
4. **Critical Insights**: Discuss the nuances, limitations, or specific behaviors observed in the study. Look for failure modes (e.g., hallucinations), performance gaps between domains, or qualitative observations made by the authors.

**Constraint:** Do not hallucinate. Base the summary *strictly* on the provided text context."""


def build_prompt(paper: Paper, text: str, max_chars: int = 50000) -> str:
    """Build the user prompt for a paper.

    Args:
        paper: Paper metadata
        text: Extracted paper text
        max_chars: Maximum characters of paper text to include

    Returns:
        Prompt string containing at most max_chars characters of text
    """
    return SUMMARY_PROMPT.format(
        title=paper.title,
        paper_id=paper.paper_id,
        pdf_url=paper.pdf_url,
        content=text[:max_chars],
    )


def render_summary(paper: Paper, content: str) -> str:
    """Assemble the summary document: header, metadata, separator, content."""
    return (
        f"# {paper.title}\n\n"
        f"**arXiv ID**: {paper.paper_id}\n"
        f"**PDF**: {paper.pdf_url}\n\n"
        f"---\n\n"
        f"{content}"
    )


def _clip(body: str) -> str:
    if len(body) > _MAX_ERROR_BODY:
        return body[:_MAX_ERROR_BODY] + "..."
    return body


def retry_delay(attempt: int, base_ms: int) -> float:
    """Seconds to wait before the given attempt (attempt >= 2)."""
    return base_ms * attempt / 1000


def _status_message(e: APIStatusError) -> str:
    return f"API error {e.status_code}: {_clip(str(e.message))}"


def _first_content(completion: object) -> str | None:
    """Return the first choice's content, or None if there are no choices.

    Raises:
        ValueError: If the response is not a chat completion
    """
    # Non-JSON bodies come back from the SDK as plain text
    if not isinstance(completion, ChatCompletion):
        raise ValueError(f"unexpected response type {type(completion).__name__}: {_clip(str(completion))}")
    try:
        choices = completion.choices
        if not choices:
            return None
        return choices[0].message.content or ""
    except (AttributeError, IndexError, TypeError) as e:
        raise ValueError(f"malformed completion: {e}") from e


class SummarizationClient:
    """Generates paper summaries with a bounded retry policy.

    The client holds no per-request state, so one instance (and the
    AsyncOpenAI client it wraps) is shared by every concurrent paper task.

    Example:
        >>> client = SummarizationClient(config)
        >>> result = await client.summarize(paper, text)
        >>> if result.ok:
        ...     save_summary(paper, result.document, config.summary_dir)
        >>> await client.close()
    """

    def __init__(self, config: Config, client: AsyncOpenAI | None = None):
        """Initialize the client.

        Args:
            config: Application configuration (endpoint, model, retry settings)
            client: Optional preconfigured AsyncOpenAI client
        """
        self.config = config
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.api_base_url,
            timeout=config.http_timeout,
            max_retries=0,
        )

    async def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        await self._client.close()

    async def _attempt(self, prompt: str) -> SummaryAttempt:
        """Send one request and classify the result."""
        try:
            completion = await self._client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": "user", "content": prompt}],
                max_completion_tokens=self.config.max_completion_tokens,
            )
        except (RateLimitError, InternalServerError) as e:
            return SummaryAttempt.retryable(_status_message(e))
        except APIConnectionError as e:
            # Includes APITimeoutError
            return SummaryAttempt.retryable(f"{type(e).__name__}: {e}")
        except APIStatusError as e:
            return SummaryAttempt.terminal(_status_message(e))
        except APIResponseValidationError as e:
            return SummaryAttempt.terminal(f"Parse error: {e}")

        try:
            content = _first_content(completion)
        except ValueError as e:
            return SummaryAttempt.terminal(f"Parse error: {e}")

        if content is None:
            return SummaryAttempt.terminal("No response from API")

        return SummaryAttempt.success(content)

    async def summarize(self, paper: Paper, text: str) -> SummaryAttempt:
        """Summarize a paper, retrying transient failures.

        Args:
            paper: Paper metadata
            text: Extracted paper text (truncated here before submission)

        Returns:
            SUCCESS with the full summary document, or TERMINAL with the reason
        """
        prompt = build_prompt(paper, text, self.config.max_prompt_chars)
        max_attempts = self.config.max_attempts
        last: SummaryAttempt | None = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = retry_delay(attempt, self.config.retry_delay_ms)
                logger.info(
                    "Retrying summary | title=%s attempt=%d/%d delay=%.1fs",
                    paper.title[:50], attempt, max_attempts, delay,
                )
                await asyncio.sleep(delay)

            result = await self._attempt(prompt)
            if result.status is AttemptStatus.SUCCESS:
                return SummaryAttempt.success(render_summary(paper, result.document))
            if result.status is AttemptStatus.TERMINAL:
                return result

            last = result
            logger.warning(
                "Summary attempt failed | title=%s attempt=%d/%d error=%s",
                paper.title[:50], attempt, max_attempts, result.message[:200],
            )

        return SummaryAttempt.terminal(f"Failed after {max_attempts} attempts: {last.message}")
