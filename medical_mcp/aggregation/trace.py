"""
Search Trace - audit trail of the adapter calls behind one aggregation.

Records, per call: the search term, the adapter, status, number of
documents returned, timing and any error. Terms that an early stop made
unnecessary are recorded as skipped.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CallStatus(str, Enum):
    """Status of one adapter call."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class SearchCall:
    """A single adapter call made for one search term."""
    call_number: int
    term: str
    adapter: str
    status: CallStatus = CallStatus.PENDING

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None

    document_count: int = 0

    # Error information
    error: Optional[str] = None
    error_type: Optional[str] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    def start(self):
        """Mark call as started."""
        self.status = CallStatus.RUNNING
        self.started_at = _now()

    def complete(self, document_count: int = 0):
        """Mark call as successfully completed."""
        self.status = CallStatus.SUCCESS
        self.completed_at = _now()
        self.document_count = document_count
        self._calculate_duration()

    def fail(self, error: str, error_type: str = None):
        """Mark call as failed."""
        self.status = CallStatus.FAILED
        self.completed_at = _now()
        self.error = error
        self.error_type = error_type
        self._calculate_duration()

    def skip(self, reason: str = None):
        """Mark call as skipped."""
        self.status = CallStatus.SKIPPED
        self.completed_at = _now()
        if reason:
            self.metadata["skip_reason"] = reason

    def _calculate_duration(self):
        """Calculate call duration in milliseconds."""
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            self.duration_ms = delta.total_seconds() * 1000

    def to_dict(self) -> dict:
        result = {
            "call_number": self.call_number,
            "term": self.term,
            "adapter": self.adapter,
            "status": self.status.value,
            "document_count": self.document_count,
            "duration_ms": self.duration_ms,
        }
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass
class SearchTrace:
    """
    All adapter calls made while answering one operation.

    Calls are appended in the order they are issued; parallel calls are
    issued in term order.
    """
    operation: str
    started_at: datetime = field(default_factory=_now)
    calls: List[SearchCall] = field(default_factory=list)

    def start_call(self, term: str, adapter: str) -> SearchCall:
        """Add a new call to the trace and mark it started."""
        call = SearchCall(call_number=len(self.calls) + 1, term=term, adapter=adapter)
        self.calls.append(call)
        call.start()
        return call

    def skip_call(self, term: str, adapter: str, reason: str = None) -> SearchCall:
        call = SearchCall(call_number=len(self.calls) + 1, term=term, adapter=adapter)
        self.calls.append(call)
        call.skip(reason)
        return call

    def merge(self, other: "SearchTrace"):
        """Append the calls of a sub-operation, renumbering them."""
        for call in other.calls:
            call.call_number = len(self.calls) + 1
            self.calls.append(call)

    @property
    def call_count(self) -> int:
        """Number of calls actually issued (skipped terms excluded)."""
        return sum(1 for c in self.calls if c.status != CallStatus.SKIPPED)

    @property
    def success_count(self) -> int:
        return sum(1 for c in self.calls if c.status == CallStatus.SUCCESS)

    @property
    def failed_count(self) -> int:
        return sum(1 for c in self.calls if c.status == CallStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for c in self.calls if c.status == CallStatus.SKIPPED)

    @property
    def failed_adapters(self) -> List[str]:
        """Adapters with at least one failed call, in first-failure order."""
        failed = []
        for call in self.calls:
            if call.status == CallStatus.FAILED and call.adapter not in failed:
                failed.append(call.adapter)
        return failed

    def get_statistics(self) -> dict:
        """Get aggregate statistics about the trace."""
        durations = [c.duration_ms for c in self.calls if c.duration_ms is not None]
        return {
            "total_calls": self.call_count,
            "successful_calls": self.success_count,
            "failed_calls": self.failed_count,
            "skipped_calls": self.skipped_count,
            "documents": sum(c.document_count for c in self.calls),
            "avg_call_duration_ms": sum(durations) / len(durations) if durations else None,
        }

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "started_at": self.started_at.isoformat(),
            "statistics": self.get_statistics(),
            "calls": [call.to_dict() for call in self.calls],
        }

    def __repr__(self) -> str:
        return f"<SearchTrace: {self.operation} {self.call_count} calls, {self.failed_count} failed>"
