"""
Rental eligibility rules.

Pure functions over a user's stored state; no database access, no side
effects. Rules are evaluated in order and the first failing rule wins.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from library_app.core.config import settings
from library_app.models.user import AccountStatus, UserRole, UserStatus
from library_app.utils.dates import format_long_date, utcnow


@dataclass(frozen=True)
class EligibilityResult:
    can_rent: bool
    reason: Optional[str] = None


ELIGIBLE = EligibilityResult(can_rent=True)


def is_penalty_active(user, now: Optional[datetime] = None) -> bool:
    if user.penalty_until is None:
        return False
    return user.penalty_until > (now or utcnow())


def check_rental_eligibility(
    user,
    now: Optional[datetime] = None,
    max_active_rentals: Optional[int] = None
) -> EligibilityResult:
    """Decide whether ``user`` may receive a new rental right now."""
    now = now or utcnow()
    cap = max_active_rentals if max_active_rentals is not None else settings.MAX_ACTIVE_RENTALS

    if user.role != UserRole.STUDENT:
        return EligibilityResult(False, "Only students can rent books")

    if user.status != UserStatus.ACTIVE:
        return EligibilityResult(False, "Your account is inactive")

    if user.account_status == AccountStatus.BLOCKED:
        return EligibilityResult(False, "Your account is blocked due to violations")

    if user.account_status == AccountStatus.PENALTY and is_penalty_active(user, now):
        return EligibilityResult(
            False,
            f"Your account is under penalty until {format_long_date(user.penalty_until)}"
        )

    if (user.active_rentals or 0) >= cap:
        return EligibilityResult(
            False,
            f"Maximum {cap} active rentals allowed. Please return a book first."
        )

    return ELIGIBLE
