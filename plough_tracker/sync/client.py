"""Client for the remote sheet endpoint receiving field data.

Submissions never raise into the engine: transport and endpoint errors are
logged and returned as a failed :class:`SyncResult` so the caller can keep
the payload and retry later. Local tracking state is never touched.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from ..config import REQUEST_TIMEOUT, SYNC_MAX_WORKERS, SYNC_URL
from ..errors import IncompleteRegistration, SyncFailure
from ..geojson import boundary_feature
from ..models import CoverageSessionSummary, FarmerProfile, FinalizedBoundary
from .response_handling import extract_error, is_success
from .session import get_default_session

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncResult:
    ok: bool
    detail: Optional[str] = None
    status_code: Optional[int] = None


class SyncClient:
    def __init__(
        self,
        url: str | None = None,
        *,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
        max_workers: int = SYNC_MAX_WORKERS,
    ) -> None:
        self.url = SYNC_URL if url is None else url
        self._session = session
        self._timeout = timeout
        self._max_workers = max(1, max_workers)
        self._executor: ThreadPoolExecutor | None = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = get_default_session()
        return self._session

    # ------------------------------------------------------------------
    # Payload submissions
    # ------------------------------------------------------------------
    def submit_registration(self, farmer: FarmerProfile) -> SyncResult:
        """Register a farmer; every form field is required.

        Raises:
            IncompleteRegistration: one or more fields are blank.
        """

        missing = farmer.missing_fields()
        if missing:
            raise IncompleteRegistration(
                "Please fill all fields to continue: " + ", ".join(missing)
            )
        return self._submit("registration", farmer.to_payload())

    def submit_boundary(
        self, farmer: FarmerProfile, boundary: FinalizedBoundary
    ) -> SyncResult:
        payload = {
            "farmId": farmer.id,
            "farmerName": farmer.name,
            "fieldArea": boundary.area_acres,
            "geojson": boundary_feature(boundary, farmer),
        }
        return self._submit("boundary", payload)

    def submit_session(self, summary: CoverageSessionSummary) -> SyncResult:
        return self._submit("session", summary.to_payload())

    def submit_session_async(
        self, summary: CoverageSessionSummary
    ) -> "Future[SyncResult]":
        """Fire-and-forget submission on the client's worker pool."""

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="plough-sync"
            )
        return self._executor.submit(self.submit_session, summary)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _submit(self, context: str, payload: Dict[str, Any]) -> SyncResult:
        if not self.url:
            _LOGGER.warning("Sync URL not configured; %s kept locally", context)
            return SyncResult(ok=False, detail="Sync URL not configured")
        try:
            data, status = self._post(context, payload)
        except SyncFailure as exc:
            _LOGGER.warning("%s submission failed: %s", context.capitalize(), exc)
            return SyncResult(ok=False, detail=str(exc))
        if is_success(data):
            _LOGGER.info("%s submitted status=%s", context.capitalize(), status)
            return SyncResult(ok=True, status_code=status)
        detail = (
            f"Unexpected response: {data.get('result')}"
            if isinstance(data, dict)
            else "Unexpected response"
        )
        _LOGGER.warning("%s rejected by endpoint: %s", context.capitalize(), detail)
        return SyncResult(ok=False, detail=detail, status_code=status)

    def _post(self, context: str, payload: Dict[str, Any]) -> tuple[Any, int]:
        """POST ``payload`` and return the decoded body and status.

        Raises:
            SyncFailure: transport errors, non-2xx status, or a non-JSON body.
        """

        try:
            resp = self.session.post(self.url, json=payload, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            raise SyncFailure(f"Transport failure during {context} sync") from exc
        status = resp.status_code
        if status >= 400:
            detail = extract_error(resp)
            message = f"{context} sync failed with status {status}"
            raise SyncFailure(f"{message} | {detail}" if detail else message)
        try:
            return resp.json(), status
        except ValueError as exc:
            raise SyncFailure(f"{context} sync returned invalid JSON") from exc


__all__ = ["SyncClient", "SyncResult"]
