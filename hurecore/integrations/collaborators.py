"""
HURE Core - Collaborator Interfaces

The payroll engine does not own staff profiles, attendance or audit storage.
It consumes them through these interfaces:
- StaffProvider: active staff and their pay configuration
- AttendanceProvider: per-day attendance records for a date range
- AuditSink: append-only audit event storage
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class AttendanceRecord:
    """One day of attendance for a staff member."""
    date: date
    status: str
    total_hours: Optional[Decimal] = None


@dataclass(frozen=True)
class StaffProfile:
    """Staff member with the pay configuration used by payroll."""
    id: str
    full_name: str
    pay_method: str = "Fixed"
    monthly_salary_cents: int = 0
    hourly_rate_cents: int = 0
    shift_rate_cents: int = 0
    daily_rate_cents: int = 0
    email: Optional[str] = None
    job_title: Optional[str] = None
    staff_status: str = "Active"


# =============================================================================
# ABSTRACT COLLABORATORS
# =============================================================================

class StaffProvider(ABC):
    """Source of staff profiles."""

    @abstractmethod
    async def get_active_staff(self, organization_id: str) -> List[StaffProfile]:
        """List the organization's active staff."""
        pass

    @abstractmethod
    async def get_staff(self, organization_id: str, staff_id: str) -> Optional[StaffProfile]:
        """Fetch one staff member, or None if unknown."""
        pass


class AttendanceProvider(ABC):
    """Source of attendance records."""

    @abstractmethod
    async def get_records(
        self,
        organization_id: str,
        staff_id: str,
        start_date: date,
        end_date: date,
    ) -> List[AttendanceRecord]:
        """Attendance records for a staff member, both dates inclusive."""
        pass


class AuditSink(ABC):
    """Destination for audit events."""

    @abstractmethod
    async def record(self, organization_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        """Append an audit event."""
        pass


class LoggingAuditSink(AuditSink):
    """Writes audit events to the application log when no audit service is configured."""

    async def record(self, organization_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info(
            f"Audit event: org={organization_id} type={event_type}",
            extra={"organization_id": organization_id, "event_type": event_type, "payload": payload},
        )
