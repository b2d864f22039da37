"""Configuration management for the paper summarization pipeline.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults.

Environment Variables:
    Required:
        OPENAI_API_KEY: Bearer credential for the generation endpoint
            (the legacy name OPEN_AI_API_KEY is also accepted)
        BASE_DIR: Working directory for papers/ and summary/
            (defaults to $HOME/ras when HOME is set)

    Discovery:
        DISCOVERY_SOURCE: 'listing' (arXiv HTML listing) or 'rss'
        LISTING_URL: arXiv listing page to scrape
        RSS_URL: arXiv RSS feed URL
        MAX_PAPERS: Maximum papers to discover per run

    Generation:
        MODEL: Chat completion model name
        API_BASE_URL: OpenAI-compatible API base URL (chat completions live under it)
        MAX_COMPLETION_TOKENS: Completion token limit per summary
        MAX_PROMPT_CHARS: Paper text characters included in the prompt
        MAX_ATTEMPTS: Total attempts per summary request
        RETRY_DELAY_MS: Base delay; attempt n waits RETRY_DELAY_MS * n

    Pipeline Behavior:
        GROUP_SIZE: Papers processed concurrently per group
        EXTRACTION_TIMEOUT: Hard deadline (seconds) per PDF extraction
        SANDBOX_MODE: 'process' (default) or 'thread' isolation
        SANDBOX_START_METHOD: multiprocessing start method ('' = forkserver where available)
        MIN_PDF_BYTES: Downloads smaller than this are treated as corrupt
        HTTP_TIMEOUT: Total timeout (seconds) for each HTTP request

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_DIR: Directory for log files
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Parsed integer or default value

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def _default_base_dir() -> str:
    """Resolve BASE_DIR, falling back to $HOME/ras."""
    base = _env("BASE_DIR")
    if base:
        return base
    home = _env("HOME")
    return str(Path(home) / "ras") if home else ""


DEFAULT_LISTING_URL = "https://arxiv.org/list/cs.AI/recent"
DEFAULT_RSS_URL = "https://rss.arxiv.org/rss/cs.AI"
DEFAULT_API_BASE_URL = "https://api.openai.com/v1"


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables. Use Config.load()
    to create an instance with values from the environment.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Required ===
    api_key: str = ""  # OPENAI_API_KEY - generation endpoint credential
    base_dir: Path | None = None  # BASE_DIR - holds papers/ and summary/

    # === Discovery ===
    discovery_source: str = "listing"  # DISCOVERY_SOURCE - 'listing' or 'rss'
    listing_url: str = DEFAULT_LISTING_URL  # LISTING_URL
    rss_url: str = DEFAULT_RSS_URL  # RSS_URL
    max_papers: int = 100  # MAX_PAPERS - cap on discovered papers

    # === Generation ===
    model: str = "gpt-4o-mini"  # MODEL
    api_base_url: str = DEFAULT_API_BASE_URL  # API_BASE_URL
    max_completion_tokens: int = 2000  # MAX_COMPLETION_TOKENS
    max_prompt_chars: int = 50000  # MAX_PROMPT_CHARS - paper text cap in prompt
    max_attempts: int = 3  # MAX_ATTEMPTS - total attempts per summary
    retry_delay_ms: int = 500  # RETRY_DELAY_MS - attempt n waits delay * n

    # === Pipeline Behavior ===
    group_size: int = 10  # GROUP_SIZE - concurrent papers per group
    extraction_timeout: float = 120.0  # EXTRACTION_TIMEOUT - seconds per PDF
    sandbox_mode: str = "process"  # SANDBOX_MODE - 'process' or 'thread'
    sandbox_start_method: str = ""  # SANDBOX_START_METHOD - '' = forkserver where available
    min_pdf_bytes: int = 1000  # MIN_PDF_BYTES - smaller downloads are corrupt
    http_timeout: int = 120  # HTTP_TIMEOUT - seconds per request

    # === Logging Configuration ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT - Number of rotated logs to keep
    log_max_bytes: int = 0  # LOG_MAX_BYTES - Max file size (0 = time-based rotation)
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json' for structured logging

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE - Enable distributed tracing
    logfire_token: str = ""  # LOGFIRE_TOKEN - Authentication token

    @property
    def papers_dir(self) -> Path:
        """Download cache: <base>/papers/<key>.pdf"""
        return (self.base_dir or Path(".")) / "papers"

    @property
    def summary_dir(self) -> Path:
        """Artifact directory: <base>/summary/<key>-summary.md"""
        return (self.base_dir or Path(".")) / "summary"

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        base_dir = _default_base_dir()
        return cls(
            api_key=_env("OPENAI_API_KEY") or _env("OPEN_AI_API_KEY"),
            base_dir=Path(base_dir).expanduser() if base_dir else None,
            discovery_source=_env("DISCOVERY_SOURCE", "listing").lower(),
            listing_url=_env("LISTING_URL", DEFAULT_LISTING_URL),
            rss_url=_env("RSS_URL", DEFAULT_RSS_URL),
            max_papers=_env_int("MAX_PAPERS", 100),
            model=_env("MODEL", "gpt-4o-mini"),
            api_base_url=_env("API_BASE_URL", DEFAULT_API_BASE_URL),
            max_completion_tokens=_env_int("MAX_COMPLETION_TOKENS", 2000),
            max_prompt_chars=_env_int("MAX_PROMPT_CHARS", 50000),
            max_attempts=_env_int("MAX_ATTEMPTS", 3),
            retry_delay_ms=_env_int("RETRY_DELAY_MS", 500),
            group_size=_env_int("GROUP_SIZE", 10),
            extraction_timeout=_env_float("EXTRACTION_TIMEOUT", 120.0),
            sandbox_mode=_env("SANDBOX_MODE", "process").lower(),
            sandbox_start_method=_env("SANDBOX_START_METHOD"),
            min_pdf_bytes=_env_int("MIN_PDF_BYTES", 1000),
            http_timeout=_env_int("HTTP_TIMEOUT", 120),
            log_dir=Path(_env("LOG_DIR", "log")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
        )

    def validate(self) -> str | None:
        """Validate configuration for required fields and valid values.

        Returns:
            Error message string if invalid, None if valid.
        """
        if not self.api_key:
            return "OPENAI_API_KEY environment variable is required"
        if self.base_dir is None:
            return "BASE_DIR (or HOME) environment variable is required"
        if self.discovery_source not in ("listing", "rss"):
            return f"Invalid DISCOVERY_SOURCE '{self.discovery_source}' - must be 'listing' or 'rss'"
        if self.sandbox_mode not in ("process", "thread"):
            return f"Invalid SANDBOX_MODE '{self.sandbox_mode}' - must be 'process' or 'thread'"
        if self.max_papers <= 0:
            return "MAX_PAPERS must be positive"
        if self.group_size <= 0:
            return "GROUP_SIZE must be positive"
        if self.extraction_timeout <= 0:
            return "EXTRACTION_TIMEOUT must be positive"
        if self.max_attempts <= 0:
            return "MAX_ATTEMPTS must be positive"
        if self.max_prompt_chars <= 0:
            return "MAX_PROMPT_CHARS must be positive"
        if self.retry_delay_ms < 0:
            return "RETRY_DELAY_MS must be non-negative"
        if self.http_timeout <= 0:
            return "HTTP_TIMEOUT must be positive"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
