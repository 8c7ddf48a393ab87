"""HTTP client for the documentation-generation collaborator.

The service turns a structured artifact (JSON) into prose markdown.  The
orchestrator only relies on the two methods of :class:`DocGenerator`, so
tests and alternative backends can substitute their own implementation.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .config import DOCS_ENDPOINT, DOCS_CHECK_TIMEOUT_SECONDS, DOCS_TIMEOUT_SECONDS
from .errors import DocumentationError
from .models import utc_now_iso

logger = logging.getLogger(__name__)

# artifact kind -> document type understood by the service
DOC_API_TYPES: Dict[str, str] = {
    "summary": "codebaseSummary",
    "dataModel": "dataModel",
    "architecture": "architecture",
    "workflow": "workflows",
}


@dataclass
class GeneratedDoc:
    markdown: str
    generated_at_utc: str


class DocGenerator(ABC):
    """Anything able to turn an artifact into markdown."""

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def generate(self, kind: str, json_content: str, project_name: str) -> GeneratedDoc:
        ...


class DocumentationGenerator(DocGenerator):
    """Client for the documentation endpoint, built on ``requests``."""

    def __init__(
        self,
        endpoint: str = DOCS_ENDPOINT,
        api_key: Optional[str] = None,
        timeout: float = DOCS_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def is_available(self) -> bool:
        """Lightweight reachability check; any HTTP answer below 500 counts."""
        try:
            response = self._session.get(
                self.endpoint, headers=self._headers(), timeout=DOCS_CHECK_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            logger.info("Documentation API unreachable at %s: %s", self.endpoint, exc)
            return False
        return response.status_code < 500

    def generate(self, kind: str, json_content: str, project_name: str) -> GeneratedDoc:
        """Request markdown documentation for one artifact.

        Args:
            kind: Core artifact kind (``summary``, ``dataModel``, ...).
            json_content: The artifact's structured content.
            project_name: Human-readable project name for the prompt.

        Returns:
            The generated markdown with its generation timestamp.

        Raises:
            DocumentationError: On transport failure, a non-2xx status or a
                response without markdown.
        """
        doc_type = DOC_API_TYPES.get(kind)
        if doc_type is None:
            raise DocumentationError(f"No documentation type for artifact kind '{kind}'")

        try:
            response = self._session.post(
                self.endpoint,
                headers=self._headers(),
                json={"type": doc_type, "content": json_content, "projectName": project_name},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload: Any = response.json()
        except requests.Timeout as exc:
            raise DocumentationError(f"Documentation request for {kind} timed out") from exc
        except requests.RequestException as exc:
            raise DocumentationError(f"Documentation request for {kind} failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise DocumentationError(f"Documentation API returned invalid JSON for {kind}") from exc

        markdown = payload.get("markdown") if isinstance(payload, dict) else None
        if not isinstance(markdown, str) or not markdown.strip():
            raise DocumentationError(f"Documentation API returned no markdown for {kind}")
        generated = payload.get("generatedAtUtc") or payload.get("generatedAt") or utc_now_iso()
        return GeneratedDoc(markdown=markdown, generated_at_utc=str(generated))
