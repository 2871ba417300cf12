# src/backend/base_backend.py — v1
"""Contracts of the expensive analysis backend.

Two operations sit behind the caches: resolving the local types a file
imports, and producing raw inspection text for a piece of code. Both
accept an optional cancellation token; callers race them against it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from copilens.core.models import ImportClass, Inspection

if TYPE_CHECKING:
    from copilens.concurrency.cancellation import CancelToken


class BackendError(Exception):
    """The backend failed (network, service or SDK error). Never cached."""


class ImportBackend(ABC):
    """Resolves the project-local classes imported by a document."""

    @abstractmethod
    async def resolve_imports(
        self, document_uri: str, token: CancelToken | None = None
    ) -> list[ImportClass]:
        """Local types imported by `document_uri`.

        Raises:
            BackendError: If resolution failed.
        """


class InspectionBackend(ABC):
    """Produces raw inspection text in the tagged or JSON grammar."""

    @abstractmethod
    async def run_inspection(
        self,
        document_text: str,
        token: CancelToken | None = None,
        *,
        start_line: int = 0,
        end_line: int | None = None,
        previous: list[Inspection] | None = None,
    ) -> str:
        """Inspect lines `start_line..end_line` (inclusive) of `document_text`.

        With `previous`, findings already known are replayed as the
        backend's own earlier answer and only additional ones are requested.

        Raises:
            BackendError: If the call failed.
        """
