from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for access control."""

    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Module(str, Enum):
    """Top-level dashboard modules gated by role."""

    ADMIN = "admin"
    ATTENDANCE = "attendance"
    PAYROLL = "payroll"
    TASKS = "tasks"
    INVENTORY = "inventory"
    FULFILLMENT = "fulfillment"
    SUPPORT = "support"
    CHAT = "chat"
    MARKETING = "marketing"


class AttendanceStatus(str, Enum):
    """Normalized attendance status stored in the database."""

    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    CHECKED_OUT = "checked_out"


class TaskType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ONE_OFF = "one-off"

    @property
    def is_recurring(self) -> bool:
        return self is not TaskType.ONE_OFF


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    DONE_AUTO_APPROVED = "done_auto_approved"
    EXPIRED = "expired"


OPEN_TASK_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
DONE_TASK_STATUSES = frozenset({TaskStatus.APPROVED, TaskStatus.DONE_AUTO_APPROVED})


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EvidenceType(str, Enum):
    NONE = "none"
    PHOTO = "photo"
    FILE = "file"
    LINK = "link"
    CHECKLIST = "checklist"


class SubmissionType(str, Enum):
    EVIDENCE = "evidence"
    COMPLETION = "completion"
    NOTE = "note"


class ReviewStatus(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class MovementType(str, Enum):
    """Stock movement kinds (movement_types.code)."""

    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"
    TRANSFER = "TRANSFER"


class PackingStatus(str, Enum):
    PENDING = "pending"
    PACKED = "packed"
    DISPUTE = "dispute"
    MISSING_PHOTO = "missing-photo"
    INVALID = "invalid"


class PhotoStatus(str, Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    MISSING = "missing"


class HandoverStatus(str, Enum):
    SCANNED = "scanned"
    HANDED_OVER = "handed_over"
    CANCELLED = "cancelled"


class TicketStatus(str, Enum):
    NEW = "new"
    OPEN = "open"
    WAITING = "waiting"
    SOLVED = "solved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class FeedbackStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class PayrollStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    PAID = "paid"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CASH = "cash"


class ChannelRole(str, Enum):
    MEMBER = "member"
    MODERATOR = "moderator"


class CreatorStatus(str, Enum):
    ACTIVE = "Active"
    ONBOARDING = "Onboarding"
    PAUSED = "Paused"
    REJECTED = "Rejected"


class CreatorPaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    PARTIAL = "Partial"
    OVERDUE = "Overdue"
