from __future__ import annotations

import logging
from datetime import datetime
from html import escape
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from lms_admin.services.mailer import Mailer

logger = logging.getLogger(__name__)

SITE_NAME = "AiToManabi LMS"


def format_when(dt: Optional[datetime]) -> str:
    # e.g. "March 4, 2025 at 2:30 PM"
    if dt is None:
        return "N/A"
    return f"{dt.strftime('%B')} {dt.day}, {dt.year} at {dt.strftime('%I:%M %p').lstrip('0')}"


def _page(title: str, color: str, paragraphs: list[str], highlight: Optional[str] = None) -> str:
    body = "".join(f"<p style='color:#333;line-height:1.6;'>{p}</p>" for p in paragraphs)
    box = ""
    if highlight:
        box = (
            f"<div style='border-left:4px solid {color};background:#f8f9fa;"
            f"padding:16px;margin:20px 0;'>{highlight}</div>"
        )
    return (
        "<!DOCTYPE html><html><head><meta charset='UTF-8'>"
        f"<title>{escape(title)}</title></head>"
        "<body style='font-family:Arial,sans-serif;background:#f5f5f5;'>"
        "<div style='max-width:600px;margin:20px auto;background:#fff;border-radius:10px;'>"
        f"<div style='background:{color};color:#fff;padding:24px;text-align:center;'>"
        f"<h1 style='margin:0;font-size:22px;'>{escape(title)}</h1></div>"
        f"<div style='padding:24px;'>{body}{box}</div>"
        f"<div style='padding:16px;text-align:center;color:#888;font-size:12px;'>{SITE_NAME}</div>"
        "</div></body></html>"
    )


def account_created(username: str, role: str) -> tuple[str, str, str]:
    u = escape(username)
    html = _page(
        "Welcome to AiToManabi!",
        "#2563eb",
        [
            f"Hello <strong>{u}</strong>,",
            f"An administrator created a <strong>{escape(role)}</strong> account for you.",
            "Sign in with the credentials you were given and change your password on first login.",
        ],
    )
    text = (
        f"Hello {username},\n\nAn administrator created a {role} account for you.\n"
        "Sign in with the credentials you were given and change your password on first login.\n"
    )
    return f"Welcome to {SITE_NAME} - Account Created", html, text


def account_banned(username: str, reason: str, when: datetime) -> tuple[str, str, str]:
    html = _page(
        "Account Access Restricted",
        "#dc2626",
        [
            f"Hello <strong>{escape(username)}</strong>,",
            f"Your account access was restricted on {format_when(when)} for the following reason:",
            "You will not be able to log in until the restriction is lifted. "
            "Your course progress and data remain safe.",
        ],
        highlight=f"<em>&quot;{escape(reason)}&quot;</em>",
    )
    text = (
        f"Hello {username},\n\nYour account access was restricted on {format_when(when)}.\n"
        f"Reason: {reason}\n\nIf you believe this was a mistake, contact support.\n"
    )
    return f"Account Access Restricted - {SITE_NAME}", html, text


def account_unbanned(username: str, when: datetime) -> tuple[str, str, str]:
    html = _page(
        "Account Access Restored",
        "#16a34a",
        [
            f"Hello <strong>{escape(username)}</strong>,",
            f"Your account access was restored on {format_when(when)}. You can log in again.",
        ],
    )
    text = f"Hello {username},\n\nYour account access was restored on {format_when(when)}.\n"
    return f"Account Access Restored - {SITE_NAME}", html, text


def account_deleted(username: str, reason: str, deadline: datetime) -> tuple[str, str, str]:
    html = _page(
        "Account Deletion Notice",
        "#ea580c",
        [
            f"Hello <strong>{escape(username)}</strong>,",
            "Your account has been scheduled for deletion for the following reason:",
            f"You can request restoration until <strong>{format_when(deadline)}</strong>. "
            "After this deadline, your account and all associated data will be permanently deleted.",
        ],
        highlight=f"<em>&quot;{escape(reason)}&quot;</em>",
    )
    text = (
        f"Hello {username},\n\nYour account has been scheduled for deletion.\nReason: {reason}\n"
        f"You can request restoration until {format_when(deadline)}.\n"
    )
    return f"Account Deletion Notice - {SITE_NAME}", html, text


def account_restored(username: str, when: datetime) -> tuple[str, str, str]:
    html = _page(
        "Account Restored",
        "#16a34a",
        [
            f"Hello <strong>{escape(username)}</strong>,",
            f"Your account was restored on {format_when(when)}. All your data is available again.",
        ],
    )
    text = f"Hello {username},\n\nYour account was restored on {format_when(when)}.\n"
    return f"Account Restored - {SITE_NAME}", html, text


def account_permanently_deleted(username: str, when: datetime) -> tuple[str, str, str]:
    html = _page(
        "Account Permanently Deleted",
        "#374151",
        [
            f"Hello <strong>{escape(username)}</strong>,",
            f"Your account and its data were permanently removed on {format_when(when)}.",
            "This action cannot be undone.",
        ],
    )
    text = (
        f"Hello {username},\n\nYour account and its data were permanently removed on "
        f"{format_when(when)}.\nThis action cannot be undone.\n"
    )
    return f"Account Permanently Deleted - {SITE_NAME}", html, text


class NotificationService:
    def __init__(self, mailer: Mailer):
        self.mailer = mailer

    async def _deliver(self, user: dict, message: tuple[str, str, str]) -> bool:
        email = user.get("email") or ""
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            logger.error("Invalid email address for user %s: %r", user.get("username"), email)
            return False

        subject, html, text = message
        try:
            return await self.mailer.send(email, user.get("username") or "", subject, html, text)
        except Exception as e:
            logger.error("Notification '%s' failed: %s", subject, e)
            return False

    async def send_account_created(self, user: dict) -> bool:
        return await self._deliver(user, account_created(user.get("username", ""), user.get("role", "")))

    async def send_banned(self, user: dict, reason: str, when: datetime) -> bool:
        return await self._deliver(user, account_banned(user.get("username", ""), reason, when))

    async def send_unbanned(self, user: dict, when: datetime) -> bool:
        return await self._deliver(user, account_unbanned(user.get("username", ""), when))

    async def send_deleted(self, user: dict, reason: str, deadline: datetime) -> bool:
        return await self._deliver(user, account_deleted(user.get("username", ""), reason, deadline))

    async def send_restored(self, user: dict, when: datetime) -> bool:
        return await self._deliver(user, account_restored(user.get("username", ""), when))

    async def send_permanently_deleted(self, user: dict, when: datetime) -> bool:
        return await self._deliver(user, account_permanently_deleted(user.get("username", ""), when))
