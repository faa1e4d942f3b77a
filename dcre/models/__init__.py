"""Database models."""

from dcre.models.audit import AuditLog
from dcre.models.booking import Booking, PolicyAcceptance
from dcre.models.case import Case, CaseDecision, CaseEvidence, CaseMessage
from dcre.models.profile import Profile

__all__ = [
    "AuditLog",
    "Booking",
    "Case",
    "CaseDecision",
    "CaseEvidence",
    "CaseMessage",
    "PolicyAcceptance",
    "Profile",
]
