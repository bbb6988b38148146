"""
Outbound e-mail for the request approval workflow.

Delivery is best-effort: every public method returns a bool and never
raises, so a failed send can't undo a committed transaction.
"""

import html
import logging
from typing import Dict
import resend
from pathlib import Path

from library_app.core.config import settings


logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self):
        resend.api_key = settings.RESEND_API_KEY
        self.from_email = settings.FROM_EMAIL
        self.frontend_url = settings.FRONTEND_URL
        self.templates_dir = Path(__file__).parent.parent / "emails" / "templates"

    def _load_template(self, template_name: str) -> str:
        """Load email template from file."""
        template_path = self.templates_dir / template_name
        try:
            with open(template_path, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            logger.error(f"Template {template_name} not found")
            raise ValueError(f"Email template {template_name} not found")

    def _render_template(self, template_content: str, variables: Dict[str, str]) -> str:
        """Replace template variables with escaped values."""
        content = template_content
        for key, value in variables.items():
            placeholder = f"{{{{{key}}}}}"
            content = content.replace(placeholder, html.escape(str(value)))
        return content

    async def send_email(self, to: str, subject: str, html_content: str) -> bool:
        """Send a single message through Resend."""
        if not settings.RESEND_API_KEY:
            logger.warning(f"RESEND_API_KEY not configured, skipping email to {to}: {subject}")
            return False

        email_data = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html_content
        }

        # resend has no async client; the call is short enough to make inline
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            logger.error(f"Email send failed: {str(e)}")
            return False
        logger.info(f"Email '{subject}' sent to {to}: {response}")
        return True

    async def _send_template(self, to: str, subject: str, template_name: str, variables: Dict[str, str]) -> bool:
        try:
            template = self._load_template(template_name)
            html_content = self._render_template(template, variables)
            return await self.send_email(to, subject, html_content)
        except Exception as e:
            logger.error(f"Failed to send {template_name} to {to}: {str(e)}")
            return False

    async def send_new_request_email(self, manager_email: str, request: dict) -> bool:
        """Tell the manager a faculty member has filed an issue/return request."""
        label = "Issue" if request["type"] == "issue" else "Return"
        reason = request.get("reason")
        return await self._send_template(
            manager_email,
            f"New Book {label} Request",
            "new_request.html",
            {
                "request_type": label,
                "student_name": request.get("student_name") or "Student",
                "enrollment_number": request.get("student_enrollment_number") or "N/A",
                "faculty_name": request.get("faculty_name") or "Faculty",
                "book_title": request.get("book_title") or "",
                "book_author": request.get("book_author") or "",
                "reason": reason or "-",
                "requested_at": request.get("requested_at") or "",
                "frontend_url": self.frontend_url,
            }
        )

    async def send_request_approved_email(self, faculty_email: str, request: dict) -> bool:
        """Tell the faculty member their request went through."""
        return await self._send_template(
            faculty_email,
            "Book Request Approved",
            "request_approved.html",
            {
                "request_type": request["type"],
                "student_name": request.get("student_name") or "Student",
                "book_title": request.get("book_title") or "",
                "notes": request.get("manager_notes") or "-",
            }
        )

    async def send_request_rejected_email(self, faculty_email: str, request: dict) -> bool:
        """Tell the faculty member their request was turned down."""
        label = "Issue" if request["type"] == "issue" else "Return"
        return await self._send_template(
            faculty_email,
            "Book Request Rejected",
            "request_rejected.html",
            {
                "request_type": label,
                "student_name": request.get("student_name") or "Student",
                "book_title": request.get("book_title") or "",
                "notes": request.get("manager_notes") or "-",
            }
        )
