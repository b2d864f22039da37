"""Shared fixtures for the test suite."""

import pytest

from config import Config
from models.paper import Paper


@pytest.fixture
def config(tmp_path):
    """Config rooted in a temporary directory with fast retries."""
    return Config(
        api_key="test-key",
        base_dir=tmp_path,
        retry_delay_ms=0,
        extraction_timeout=5.0,
        sandbox_mode="thread",
        log_dir=tmp_path / "log",
    )


@pytest.fixture
def paper():
    return Paper(
        paper_id="2501.01234",
        title="Scaling Laws: Revisited",
        pdf_url="https://arxiv.org/pdf/2501.01234.pdf",
    )
