"""I/O tools used by the pipeline for each paper.

create_session:
    Shared aiohttp session (certifi SSL context, pooled connections).

download_file:
    Stream a PDF to disk atomically; raises DownloadError.

extract_pdf_text:
    pypdf text extraction; raises ExtractionFailure on unreadable files.

ProcessSandbox / ThreadSandbox:
    Run an extractor with a hard deadline, crash containment and
    stdout/stderr suppression. create_sandbox() picks one from config.

Example:
    >>> from tools import create_sandbox
    >>> outcome = create_sandbox(config).run("paper.pdf")
    >>> outcome.status
"""

from tools.utils import create_session, create_ssl_context, USER_AGENT
from tools.download import download_file, DownloadError
from tools.extract import extract_pdf_text, ExtractionFailure
from tools.sandbox import ProcessSandbox, ThreadSandbox, create_sandbox, suppress_output

__all__ = [
    "create_session",
    "create_ssl_context",
    "USER_AGENT",
    "download_file",
    "DownloadError",
    "extract_pdf_text",
    "ExtractionFailure",
    "ProcessSandbox",
    "ThreadSandbox",
    "create_sandbox",
    "suppress_output",
]
