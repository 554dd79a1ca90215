"""
Client for the external scoring service used by model-backed filters.

The service exposes one POST endpoint per scoring kind
(``{base_url}/sentiment``, ``{base_url}/tone``) that accepts
``{"text": ..., "params": {...}}`` and returns a JSON object. Requests
are made with ``requests`` on a worker thread so evaluators can await
them without blocking the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import requests

from ..core.config import settings
from ..core.errors import ScoringServiceError


logger = logging.getLogger("scoring")


class ScoringClient:
    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 20.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        # Calls run on worker threads; each one gets its own session.
        self.session_factory = session_factory

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _post(self, kind: str, payload: dict) -> dict:
        if not self.configured:
            raise ScoringServiceError("SCORING_SERVICE_URL is not configured")
        url = f"{self.base_url}/{kind}"
        try:
            with self.session_factory() as session:
                response = session.post(url, json=payload, timeout=(5, self.timeout))
        except requests.RequestException as exc:
            raise ScoringServiceError(f"Scoring request failed kind={kind}: {exc}") from exc

        if response.status_code // 100 != 2:
            raise ScoringServiceError(
                f"Scoring service returned status={response.status_code} kind={kind} detail={response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ScoringServiceError(f"Scoring response was not JSON kind={kind}: {exc}") from exc
        if not isinstance(data, dict):
            raise ScoringServiceError(f"Scoring response must be an object kind={kind}")
        logger.debug("Scored kind=%s status=%s", kind, response.status_code)
        return data

    async def score(self, kind: str, text: str, params: Optional[dict] = None) -> dict:
        return await asyncio.to_thread(self._post, kind, {"text": text, "params": params or {}})


_client: Optional[ScoringClient] = None


def get_scoring_client() -> ScoringClient:
    global _client
    if _client is None:
        _client = ScoringClient(settings.scoring_service_url, timeout=settings.scoring_timeout_sec)
    return _client


def set_scoring_client(client: Optional[ScoringClient]) -> None:
    """Replace the process-wide client (``None`` rebuilds it from settings on next use)."""
    global _client
    _client = client
