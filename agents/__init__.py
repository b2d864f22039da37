"""Generation client for the paper summarization pipeline.

SummarizationClient:
    Builds the four-section summary prompt, POSTs it to an
    OpenAI-compatible chat completions endpoint and retries transient
    failures (transport errors, HTTP 429 and 5xx) with a linear backoff.

Example:
    >>> from agents import SummarizationClient
    >>> client = SummarizationClient(config, session)
    >>> attempt = await client.summarize(paper, text)
"""

from agents.summarizer import SummarizationClient, build_prompt, render_summary

__all__ = [
    "SummarizationClient",
    "build_prompt",
    "render_summary",
]
