from __future__ import annotations

import logging
import re
import secrets
from datetime import timedelta, timezone
from typing import Any, Callable, Dict, List

from email_validator import EmailNotValidError, validate_email

from lms_admin.core.config import Settings, get_settings
from lms_admin.core.enums import AuditAction, UserRole, UserStatus
from lms_admin.core.errors import (
    AuthenticationFailed,
    Conflict,
    DatabaseFailure,
    LMSAdminError,
    PermissionDenied,
    UserNotFound,
    ValidationFailed,
)
from lms_admin.core.security import RequestContext, hash_password, verify_password
from lms_admin.db.mongo import transaction
from lms_admin.mapper.users_mapper import to_user_details, to_user_out, to_user_summary
from lms_admin.models.common import oid_str, utcnow
from lms_admin.repositories.session_repository import AdminActionRepository, InvalidatedSessionRepository
from lms_admin.repositories.user_repository import UserRepository
from lms_admin.schemas.user import UserCreate, UserUpdate
from lms_admin.services.audit_service import AuditLogger
from lms_admin.services.login_logger import LoginLogger
from lms_admin.services.notifications import NotificationService, format_when
from lms_admin.utils.diff import diff_fields, split_changes

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MIN_AGE, MAX_AGE = 18, 100

_REQUIRED_CREATE_FIELDS = ("username", "email", "password", "role", "first_name", "last_name", "age", "phone_number")


# -------------------------
# Helpers
# -------------------------
def _email_norm(email: str) -> str:
    return (email or "").lower().strip()


def normalize_phone(phone: str | None) -> str | None:
    """
    Philippine mobile numbers to +639XXXXXXXXX.
    Accepts 639XXXXXXXXX, 09XXXXXXXXX and 9XXXXXXXXX with any punctuation.
    """
    if not phone or not phone.strip():
        return None

    digits = re.sub(r"\D", "", phone)
    if re.fullmatch(r"639\d{9}", digits):
        return "+" + digits
    if re.fullmatch(r"09\d{9}", digits):
        return "+63" + digits[1:]
    if re.fullmatch(r"9\d{9}", digits):
        return "+63" + digits

    raise ValidationFailed("Invalid Philippine phone number format. Use 09XXXXXXXXX or 9XXXXXXXXX format.")


def _aware(dt):
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class UserService:
    """
    Admin user management. Every mutation runs in a transaction; audit
    rows, admin action logs and emails are best-effort and never undo it.
    """

    def __init__(
        self,
        users: UserRepository,
        sessions: InvalidatedSessionRepository,
        admin_actions: AdminActionRepository,
        audit: AuditLogger,
        notifications: NotificationService,
        settings: Settings | None = None,
        transaction_factory: Callable = transaction,
    ):
        self.users = users
        self.sessions = sessions
        self.admin_actions = admin_actions
        self.audit = audit
        self.notifications = notifications
        self.settings = settings or get_settings()
        self.transaction = transaction_factory

    # -------------------------
    # Internal plumbing
    # -------------------------
    def _check_reason(self, reason: str | None, label: str) -> str:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed(f"{label} reason is required")
        limit = self.settings.reason_max_length
        if len(reason) > limit:
            raise ValidationFailed(f"{label} reason must be {limit} characters or less")
        return reason

    def _is_protected(self, user: dict) -> bool:
        return user.get("role") == UserRole.admin.value and user.get("username") == self.settings.protected_admin_username

    async def _load(self, user_id: str, session=None) -> dict:
        user = await self.users.get(user_id, session=session)
        if not user:
            raise UserNotFound("User not found")
        return user

    async def _run(self, op: str, work) -> Any:
        """Runs `work(session)` in a transaction; database errors become DatabaseFailure."""
        try:
            async with self.transaction() as session:
                return await work(session)
        except LMSAdminError:
            raise
        except Exception as e:
            logger.error("%s failed, transaction aborted: %s", op, e)
            raise DatabaseFailure(f"Failed to {op} due to database error") from e

    # Best-effort side writes, called after the transaction has committed.
    async def _invalidate_sessions(self, user_id: str, reason: str, ctx: RequestContext) -> None:
        try:
            await self.sessions.invalidate(user_id, reason, ctx.user_id)
        except Exception as e:
            logger.error("Session invalidation failed for %s: %s", user_id, e)

    async def _clear_sessions(self, user_id: str) -> None:
        try:
            await self.sessions.clear(user_id)
        except Exception as e:
            logger.error("Clearing invalidated sessions failed for %s: %s", user_id, e)

    async def _admin_action(self, ctx: RequestContext, user_id: str, action: str, details: dict) -> None:
        try:
            await self.admin_actions.create(ctx.user_id, user_id, action, details)
        except Exception as e:
            logger.error("Admin action log failed (%s %s): %s", action, user_id, e)

    @staticmethod
    def _response(message: str, user: dict, email_sent: bool, **extra) -> Dict[str, Any]:
        out = {
            "success": True,
            "message": message,
            "user": to_user_summary(user),
            "email_sent": email_sent,
            "timestamp": utcnow(),
        }
        out.update(extra)
        return out

    # -------------------------
    # Queries
    # -------------------------
    async def list_users(self, q: str | None = None, role: str | None = None, status: str | None = None) -> List[dict]:
        rows = await self.users.list(q=q, role=role, status=status)
        return [to_user_out(d) for d in rows]

    async def get_user(self, user_id: str) -> dict:
        return to_user_out(await self._load(user_id))

    async def get_user_details(self, user_id: str) -> dict:
        return to_user_details(await self._load(user_id))

    # -------------------------
    # Create / update
    # -------------------------
    def _validate_create(self, body: UserCreate) -> dict:
        data = body.model_dump()
        missing = [f for f in _REQUIRED_CREATE_FIELDS if not data.get(f)]
        if missing:
            raise ValidationFailed("Missing required fields: " + ", ".join(missing), missing_fields=missing)

        try:
            validate_email(body.email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationFailed("Invalid email format")

        if len(body.password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        if body.role not in {r.value for r in UserRole}:
            raise ValidationFailed("Invalid role")

        if not MIN_AGE <= body.age <= MAX_AGE:
            raise ValidationFailed(f"Age must be between {MIN_AGE} and {MAX_AGE}")

        return data

    async def create_user(self, ctx: RequestContext, body: UserCreate) -> Dict[str, Any]:
        data = self._validate_create(body)
        email = _email_norm(body.email)
        phone = normalize_phone(body.phone_number)
        username = body.username.strip()

        if await self.users.find_conflict(username, email, phone):
            raise Conflict("Username, email, or phone number already exists")

        now = utcnow()
        doc = {
            "username": username,
            "email": email,
            "phone_number": phone,
            "password_hash": hash_password(body.password),
            "role": body.role,
            "status": UserStatus.active.value,
            "first_name": data["first_name"].strip(),
            "last_name": data["last_name"].strip(),
            "middle_name": data.get("middle_name"),
            "suffix": data.get("suffix"),
            "address_line1": data.get("address_line1"),
            "address_line2": data.get("address_line2"),
            "city": data.get("city"),
            "age": body.age,
            "email_verified": False,
            "phone_verified": False,
            "is_first_login": body.role in (UserRole.admin.value, UserRole.teacher.value),
            "created_at": now,
            "updated_at": now,
        }

        async def work(session):
            doc["_id"] = await self.users.insert(doc, session=session)

        await self._run("create user", work)
        await self._admin_action(ctx, doc["_id"], "create_user", {"role": body.role})

        await self.audit.log_entry(
            ctx,
            action_type=AuditAction.create.value,
            action_description=f"Created user account: {username}",
            resource_type="User Account",
            resource_id=f"User ID: {doc['_id']}",
            resource_name=username,
            new_value=f"role={body.role}, email={email}",
        )
        email_sent = await self.notifications.send_account_created(doc)

        return self._response("User created successfully", doc, email_sent)

    async def update_user(self, ctx: RequestContext, user_id: str, body: UserUpdate) -> Dict[str, Any]:
        updates = body.model_dump(exclude_unset=True)
        old = await self._load(user_id)

        if "role" in updates and updates["role"] not in {r.value for r in UserRole}:
            raise ValidationFailed("Invalid role")
        if "age" in updates and updates["age"] is not None and not MIN_AGE <= updates["age"] <= MAX_AGE:
            raise ValidationFailed(f"Age must be between {MIN_AGE} and {MAX_AGE}")
        if "phone_number" in updates:
            updates["phone_number"] = normalize_phone(updates["phone_number"])
            if updates["phone_number"] and await self.users.phone_taken(updates["phone_number"], exclude_id=old["_id"]):
                raise Conflict("Phone number already exists")
        if "password" in updates and len(updates["password"] or "") < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        changes = diff_fields(old, updates)
        if not changes:
            return self._response("No changes", old, False, changes={})

        set_fields = {k: v for k, v in updates.items() if k in changes and k != "password"}
        if "password" in updates:
            set_fields["password_hash"] = hash_password(updates["password"])
        set_fields["updated_at"] = utcnow()

        async def work(session):
            if not await self.users.update(user_id, set_fields, session=session):
                raise UserNotFound("User not found")

        await self._run("update user", work)

        await self.audit.log_user_update(ctx, user_id, old.get("username", ""), split_changes(changes))
        return self._response("User updated successfully", {**old, **set_fields}, False, changes=changes)

    # -------------------------
    # Ban / unban
    # -------------------------
    async def ban_user(self, ctx: RequestContext, user_id: str, reason: str | None) -> Dict[str, Any]:
        reason = self._check_reason(reason, "Ban")
        now = utcnow()

        async def work(session):
            user = await self._load(user_id, session)
            if user.get("status") == UserStatus.banned.value:
                raise ValidationFailed("User is already banned")
            if oid_str(user["_id"]) == ctx.user_id:
                raise PermissionDenied("You cannot ban yourself")

            await self.users.update(
                user_id,
                {
                    "status": UserStatus.banned.value,
                    "ban_reason": reason,
                    "banned_at": now,
                    "banned_by": ctx.user_id,
                    "updated_at": now,
                },
                session=session,
            )
            return user

        user = await self._run("ban user", work)
        await self._invalidate_sessions(user_id, "banned", ctx)
        await self._admin_action(ctx, user_id, "ban_user", {"reason": reason})

        await self.audit.log_entry(
            ctx,
            action_type=AuditAction.update.value,
            action_description=f"Banned user: {user.get('username')}",
            resource_type="User Account",
            resource_id=f"User ID: {user_id}",
            resource_name=user.get("username"),
            old_value=f"status={user.get('status', 'active')}",
            new_value="status=banned",
            context={"reason": reason},
        )
        email_sent = await self.notifications.send_banned(user, reason, now)

        return self._response("User has been banned successfully", user, email_sent, ban_reason=reason)

    async def unban_user(self, ctx: RequestContext, user_id: str) -> Dict[str, Any]:
        now = utcnow()

        async def work(session):
            user = await self._load(user_id, session)
            if user.get("status") != UserStatus.banned.value:
                raise ValidationFailed("User is not banned")

            await self.users.update(
                user_id,
                {
                    "status": UserStatus.active.value,
                    "unbanned_at": now,
                    "unbanned_by": ctx.user_id,
                    "updated_at": now,
                },
                unset_fields=["ban_reason", "banned_at", "banned_by"],
                session=session,
            )
            return user

        user = await self._run("unban user", work)
        await self._clear_sessions(user_id)
        await self._admin_action(ctx, user_id, "unban_user", {"previous_reason": user.get("ban_reason")})

        await self.audit.log_entry(
            ctx,
            action_type=AuditAction.update.value,
            action_description=f"Unbanned user: {user.get('username')}",
            resource_type="User Account",
            resource_id=f"User ID: {user_id}",
            resource_name=user.get("username"),
            old_value="status=banned",
            new_value="status=active",
        )
        email_sent = await self.notifications.send_unbanned(user, now)

        return self._response("User has been unbanned successfully", user, email_sent)

    # -------------------------
    # Soft delete / restore
    # -------------------------
    async def delete_user(self, ctx: RequestContext, user_id: str, reason: str | None) -> Dict[str, Any]:
        reason = self._check_reason(reason, "Deletion")
        now = utcnow()
        deadline = now + timedelta(days=self.settings.restoration_window_days)

        async def work(session):
            user = await self._load(user_id, session)
            if user.get("status") == UserStatus.deleted.value or user.get("deleted_at"):
                raise ValidationFailed("User is already deleted")
            if oid_str(user["_id"]) == ctx.user_id:
                raise PermissionDenied("You cannot delete your own account")
            if self._is_protected(user):
                raise PermissionDenied("Cannot delete the main admin account")

            await self.users.update(
                user_id,
                {
                    "status": UserStatus.deleted.value,
                    "deleted_at": now,
                    "deleted_by": ctx.user_id,
                    "deletion_reason": reason,
                    "restoration_deadline": deadline,
                    "updated_at": now,
                },
                session=session,
            )
            return user

        user = await self._run("delete user", work)
        await self._invalidate_sessions(user_id, "deleted", ctx)
        await self._admin_action(
            ctx, user_id, "delete_user",
            {"reason": reason, "restoration_deadline": deadline.isoformat()},
        )

        await self.audit.log_entry(
            ctx,
            action_type=AuditAction.delete.value,
            action_description=f"Deleted user account: {user.get('username')}",
            resource_type="User Account",
            resource_id=f"User ID: {user_id}",
            resource_name=user.get("username"),
            old_value=f"status={user.get('status', 'active')}",
            new_value="status=deleted",
            context={"reason": reason, "restoration_deadline": deadline.isoformat()},
        )
        email_sent = await self.notifications.send_deleted(user, reason, deadline)

        return self._response(
            "User has been deleted successfully",
            user,
            email_sent,
            deletion_reason=reason,
            restoration_deadline=deadline,
        )

    async def restore_user(self, ctx: RequestContext, user_id: str) -> Dict[str, Any]:
        now = utcnow()

        async def work(session):
            user = await self._load(user_id, session)
            if user.get("status") != UserStatus.deleted.value:
                raise ValidationFailed("User is not deleted")
            deadline = _aware(user.get("restoration_deadline"))
            if deadline and deadline < now:
                raise ValidationFailed("Restoration deadline has passed. User cannot be restored.")

            await self.users.update(
                user_id,
                {"status": UserStatus.active.value, "updated_at": now},
                unset_fields=["deleted_at", "deleted_by", "deletion_reason", "restoration_deadline"],
                session=session,
            )
            return user

        user = await self._run("restore user", work)
        await self._clear_sessions(user_id)
        await self._admin_action(ctx, user_id, "restore_user", {})

        await self.audit.log_entry(
            ctx,
            action_type=AuditAction.update.value,
            action_description=f"Restored user account: {user.get('username')}",
            resource_type="User Account",
            resource_id=f"User ID: {user_id}",
            resource_name=user.get("username"),
            old_value="status=deleted",
            new_value="status=active",
        )
        email_sent = await self.notifications.send_restored(user, now)

        return self._response("User has been restored successfully", user, email_sent)

    async def permanent_delete_user(self, ctx: RequestContext, user_id: str) -> Dict[str, Any]:
        now = utcnow()
        window = self.settings.restoration_window_days

        user = await self.users.get(user_id)
        if not user or not user.get("deleted_at"):
            raise UserNotFound("User not found or not deleted")

        deleted_at = _aware(user["deleted_at"])
        days_remaining = window - (now - deleted_at).days
        if days_remaining > 0:
            raise ValidationFailed(
                "Cannot permanently delete user yet",
                deadline=format_when(deleted_at + timedelta(days=window)),
                days_remaining=days_remaining,
                user={"username": user.get("username"), "email": user.get("email")},
            )
        if oid_str(user["_id"]) == ctx.user_id:
            raise PermissionDenied("You cannot permanently delete your own account")
        if self._is_protected(user):
            raise PermissionDenied("Cannot permanently delete the main admin account")

        await self._admin_action(
            ctx, user_id, "permanent_delete_user",
            {"username": user.get("username"), "email": user.get("email"),
             "deletion_reason": user.get("deletion_reason")},
        )
        await self._invalidate_sessions(user_id, "permanently_deleted", ctx)

        # last chance to reach the address
        email_sent = await self.notifications.send_permanently_deleted(user, now)

        async def work(session):
            if not await self.users.delete(user_id, session=session):
                raise UserNotFound("User not found or not deleted")

        await self._run("permanently delete user", work)

        await self.audit.log_entry(
            ctx,
            action_type=AuditAction.delete.value,
            action_description=f"Permanently deleted user account: {user.get('username')}",
            resource_type="User Account",
            resource_id=f"User ID: {user_id}",
            resource_name=user.get("username"),
            old_value="status=deleted",
            context={"deletion_reason": user.get("deletion_reason")},
        )

        return self._response("User has been permanently deleted", user, email_sent)

    # -------------------------
    # Auth
    # -------------------------
    async def login(self, ctx: RequestContext, credential: str, password: str, login_logger: LoginLogger) -> Dict[str, Any]:
        user = await self.users.get_by_login(credential)

        if not user:
            await login_logger.log_failed_login(ctx, credential, "User not found")
            raise AuthenticationFailed("Invalid credentials")

        user_id = oid_str(user["_id"])
        status = user.get("status", UserStatus.active.value)
        if status == UserStatus.banned.value:
            await login_logger.log_failed_login(ctx, credential, "Account banned", user_id=user_id)
            raise PermissionDenied("Your account has been banned", ban_reason=user.get("ban_reason"))
        if status == UserStatus.deleted.value:
            await login_logger.log_failed_login(ctx, credential, "Account deleted", user_id=user_id)
            raise PermissionDenied("This account has been deleted")

        if not verify_password(password, user.get("password_hash", "")):
            await login_logger.log_failed_login(ctx, credential, "Invalid password", user_id=user_id)
            raise AuthenticationFailed("Invalid credentials")

        ctx.session_id = ctx.session_id or secrets.token_urlsafe(24)
        await login_logger.log_successful_login(ctx, user)

        return {"success": True, "user": to_user_summary(user), "session_id": ctx.session_id}
