"""
HURE Core - HTTP Collaborator Clients

httpx implementations of the staff, attendance and audit collaborators.

Every request is bounded:
- a per-request timeout (collaborator_timeout_seconds)
- a bounded number of retries with exponential backoff on timeouts,
  transport errors and 5xx responses
After the last attempt an ExternalServiceException is raised.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from hurecore.integrations.collaborators import (
    AttendanceProvider,
    AttendanceRecord,
    AuditSink,
    StaffProfile,
    StaffProvider,
)
from hurecore.utils.error_handling import ExternalServiceException

logger = logging.getLogger(__name__)


class CollaboratorClient:
    """Shared request/retry logic for a collaborator REST service."""

    service_name = "collaborator"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Any]:
        """
        Make an HTTP request, retrying transient failures.

        Returns:
            Parsed JSON body, or None for a 404 when allow_not_found is set

        Raises:
            ExternalServiceException: On a 4xx response or when retries are exhausted
        """
        url = f"{self.base_url}{endpoint}"
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            for attempt in range(1, attempts + 1):
                try:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=self._get_headers(),
                        params=params,
                        json=data,
                    )
                    logger.debug(f"{self.service_name} {method} {endpoint}: status={response.status_code}")

                    if response.status_code == 404 and allow_not_found:
                        return None
                    if response.status_code >= 500:
                        last_error = httpx.HTTPStatusError(
                            f"HTTP {response.status_code}", request=response.request, response=response
                        )
                    elif response.status_code >= 400:
                        raise ExternalServiceException(
                            service_name=self.service_name,
                            message=f"{self.service_name} rejected {method} {endpoint}: HTTP {response.status_code}",
                            details={"status_code": response.status_code},
                        )
                    else:
                        if response.status_code == 204 or not response.content:
                            return None
                        return response.json()

                except httpx.TimeoutException as e:
                    logger.warning(f"{self.service_name} timeout: {method} {endpoint} (attempt {attempt}/{attempts})")
                    last_error = e
                except httpx.RequestError as e:
                    logger.warning(f"{self.service_name} request error: {e} (attempt {attempt}/{attempts})")
                    last_error = e

                if attempt < attempts:
                    await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        logger.error(f"{self.service_name} unavailable after {attempts} attempts: {method} {endpoint}")
        raise ExternalServiceException(
            service_name=self.service_name,
            message=f"{self.service_name} unavailable: {method} {endpoint}",
            original_error=last_error,
            details={"attempts": attempts},
        )


class HttpStaffProvider(CollaboratorClient, StaffProvider):
    """Staff profiles from the staff service."""

    service_name = "staff-service"

    async def get_active_staff(self, organization_id: str) -> List[StaffProfile]:
        body = await self._request(
            "GET",
            f"/organizations/{organization_id}/staff",
            params={"status": "Active"},
        )
        items = body.get("data", []) if isinstance(body, dict) else (body or [])
        return [_parse_staff(item) for item in items]

    async def get_staff(self, organization_id: str, staff_id: str) -> Optional[StaffProfile]:
        body = await self._request(
            "GET",
            f"/organizations/{organization_id}/staff/{staff_id}",
            allow_not_found=True,
        )
        if body is None:
            return None
        if isinstance(body, dict) and "data" in body:
            body = body["data"]
        return _parse_staff(body)


class HttpAttendanceProvider(CollaboratorClient, AttendanceProvider):
    """Attendance records from the attendance service."""

    service_name = "attendance-service"

    async def get_records(
        self,
        organization_id: str,
        staff_id: str,
        start_date: date,
        end_date: date,
    ) -> List[AttendanceRecord]:
        body = await self._request(
            "GET",
            f"/organizations/{organization_id}/attendance",
            params={
                "staffId": staff_id,
                "startDate": start_date.isoformat(),
                "endDate": end_date.isoformat(),
            },
        )
        items = body.get("data", []) if isinstance(body, dict) else (body or [])
        return [_parse_attendance(item) for item in items]


class HttpAuditSink(CollaboratorClient, AuditSink):
    """Audit events posted to the audit service."""

    service_name = "audit-service"

    async def record(self, organization_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        await self._request(
            "POST",
            f"/organizations/{organization_id}/audit-events",
            data={"type": event_type, "payload": payload},
        )


def _parse_staff(item: Dict[str, Any]) -> StaffProfile:
    return StaffProfile(
        id=str(item["id"]),
        full_name=item.get("fullName") or "",
        pay_method=item.get("payMethod") or "Fixed",
        monthly_salary_cents=int(item.get("monthlySalaryCents") or 0),
        hourly_rate_cents=int(item.get("hourlyRateCents") or 0),
        shift_rate_cents=int(item.get("shiftRateCents") or 0),
        daily_rate_cents=int(item.get("dailyRateCents") or 0),
        email=item.get("email"),
        job_title=item.get("jobTitle"),
        staff_status=item.get("staffStatus") or "Active",
    )


def _parse_attendance(item: Dict[str, Any]) -> AttendanceRecord:
    hours = item.get("totalHours")
    return AttendanceRecord(
        date=date.fromisoformat(item["date"][:10]),
        status=item.get("status") or "",
        total_hours=Decimal(str(hours)) if hours is not None else None,
    )
