"""
Third-party integrations.

Adapters speak to external HTTP APIs with httpx. Each adapter accepts an
optional ``transport`` so tests can plug in ``httpx.MockTransport``.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class TestConnectionResult:
    success: bool
    error: Optional[str] = None

    __test__ = False  # not a pytest test class
