"""
prosbc_files
============
Python package for managing routeset Definition and Digit Map files on a
ProSBC appliance that only offers server-rendered HTML forms.

Package structure
-----------------
prosbc_files/
├── __init__.py        – package init and public API
├── config.py          – paths, timeouts, markers, env defaults
├── logging_setup.py   – colorlog console + optional file logging
├── models.py          – enums and dataclass records
├── errors.py          – exception taxonomy and status mapping
├── session.py         – requests.Session factory, SessionManager
├── forms.py           – per-kind multipart form builder
├── transport.py       – single HTTP call + outcome classification
├── client.py          – ApplianceClient: reads and token sourcing
├── orchestrator.py    – RetryOrchestrator: busy flag, session retries
├── batch.py           – BatchCoordinator: sequential multi-file runs
├── cli.py             – argparse CLI (``python -m prosbc_files``)
└── extract/           – sub-package: scraping appliance HTML
    ├── __init__.py
    ├── html.py        – BeautifulSoup helpers
    ├── token.py       – CSRF token + record id strategies
    ├── listing.py     – listing page table parser
    └── fragments.py   – error text and embedded file content

Quick start
-----------
    from prosbc_files import ApplianceClient, RetryOrchestrator, ResourceKind

    client = ApplianceClient("https://sbc.example.net", "admin", "secret")
    orchestrator = RetryOrchestrator(client)
    with open("routes_dm.csv", "rb") as fh:
        result = orchestrator.update(ResourceKind.DIGIT_MAP_FILE, "7",
                                     "routes_dm.csv", fh.read())
    print(result.success, result.outcome.value, result.message)
"""

from .batch        import BatchCoordinator, BatchItem
from .client       import ApplianceClient
from .errors       import (
    ApplianceError,
    BatchAborted,
    BusyError,
    SessionError,
    TokenNotFound,
    ValidationError,
)
from .extract      import extract_token, parse_file_table
from .forms        import build_form_request
from .models       import (
    BatchResult,
    Operation,
    OperationResult,
    Outcome,
    Payload,
    ResourceDescriptor,
    ResourceKind,
)
from .orchestrator import RetryOrchestrator

__all__ = [
    "ApplianceClient",
    "RetryOrchestrator",
    "BatchCoordinator",
    "BatchItem",
    "ResourceKind",
    "ResourceDescriptor",
    "Operation",
    "Outcome",
    "Payload",
    "OperationResult",
    "BatchResult",
    "ApplianceError",
    "SessionError",
    "TokenNotFound",
    "ValidationError",
    "BusyError",
    "BatchAborted",
    "extract_token",
    "parse_file_table",
    "build_form_request",
]
