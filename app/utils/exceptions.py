"""
Exception handling utilities.

Defines the hierarchy error taxonomy. Exceptions carry plain IDs only, so
they stay printable after the session that produced them is rolled back.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.hierarchy.reconciliation import DriftReport


class HierarchyError(Exception):
    """Base class for partner hierarchy failures."""

    reason = "hierarchy_error"


class TargetNotFoundError(HierarchyError):
    """An operand user ID has no user row."""

    reason = "target_not_found"

    def __init__(self, user_id: str, message: str | None = None) -> None:
        self.user_id = user_id
        super().__init__(message or f"User not found: {user_id}")


class ReferralCodeNotFoundError(TargetNotFoundError):
    """No user owns the given referral code."""

    reason = "referral_code_not_found"

    def __init__(self, referral_code: str) -> None:
        self.referral_code = referral_code
        super().__init__(
            referral_code, f"No user has referral code {referral_code!r}"
        )


class CycleWouldFormError(HierarchyError):
    """Proposed parent is the user itself or one of its descendants."""

    reason = "cycle_would_form"

    def __init__(self, user_id: str, parent_id: str) -> None:
        self.user_id = user_id
        self.parent_id = parent_id
        super().__init__(
            f"Linking {user_id} under {parent_id} would make "
            f"{user_id} its own ancestor"
        )


class DanglingReferenceError(HierarchyError):
    """
    parent_partner_id is set but points at no user row.

    Read paths attach this to their result as a finding instead of raising.
    """

    reason = "dangling_reference"

    def __init__(self, user_id: str, missing_parent_id: str, level: int) -> None:
        self.user_id = user_id
        self.missing_parent_id = missing_parent_id
        self.level = level
        super().__init__(
            f"User {user_id} points at missing parent {missing_parent_id} "
            f"(level {level})"
        )


class CycleDetectedError(HierarchyError):
    """
    The parent_partner_id chain revisits a user.

    Read paths attach this to their result as a finding instead of raising.
    """

    reason = "cycle_detected"

    def __init__(self, user_id: str, revisited_id: str, level: int) -> None:
        self.user_id = user_id
        self.revisited_id = revisited_id
        self.level = level
        super().__init__(
            f"Chain from {user_id} revisits {revisited_id} at level {level}"
        )


class DriftDetected(HierarchyError):
    """Cached hierarchy rows disagree with the live chain."""

    reason = "drift_detected"

    def __init__(self, report: "DriftReport") -> None:
        self.report = report
        super().__init__(
            f"Hierarchy drift for {report.user_id}: "
            f"{len(report.problems)} problem(s)"
        )
