"""
User Directory

Registration, sign-in and profile edits.

Error strings are shown to the user verbatim, so they stay short and
never reveal whether it was the email or the password that was wrong.
"""

from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError

from ledger.audit import AuditLogger
from ledger.auth.sessions import SessionManager
from ledger.models.banking import OperationResult, User
from ledger.services.storage import (
    DuplicateError,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)


# Fields a profile edit may never touch
PROTECTED_FIELDS = {"id", "created_at"}


def _validation_message(error: ValidationError) -> str:
    fields = {str(loc) for e in error.errors() for loc in e.get("loc", ())}
    if "email" in fields:
        return "Please enter a valid email address"
    return "Please fill in all required fields"


class UserDirectory:
    """Manages user records and sign-in."""

    def __init__(
        self,
        storage: UserStorageInterface,
        sessions: SessionManager,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._sessions = sessions
        self._audit_logger = audit_logger

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: Optional[str],
        password: str,
        confirm_password: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Create a new user. The user still has to log in afterwards."""
        result = await self._register(
            first_name, last_name, email, phone, password, confirm_password
        )

        if self._audit_logger:
            if result.success:
                await self._audit_logger.log_user_registered(
                    user_id=result.user.id,
                    email=result.user.email,
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_registration_rejected(
                    email=email,
                    reason=result.error,
                    correlation_id=correlation_id,
                )

        return result

    async def _register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: Optional[str],
        password: str,
        confirm_password: str,
    ) -> OperationResult:
        if password != confirm_password:
            return OperationResult.fail("Passwords do not match")

        if email and await self._storage.find_user_by_email(email):
            return OperationResult.fail("Email already exists")

        try:
            user = User(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone or None,
                password=password,
            )
        except ValidationError as e:
            return OperationResult.fail(_validation_message(e))

        try:
            await self._storage.add_user(user)
        except DuplicateError:
            return OperationResult.fail("Email already exists")
        except StorageError:
            return OperationResult.fail("Registration could not be saved")

        return OperationResult.ok(user=user)

    async def login(
        self,
        email: str,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Check credentials and issue a session token."""
        user = await self._storage.find_user_by_email(email or "")
        # Stored passwords went through the model's whitespace stripping
        succeeded = user is not None and user.password == (password or "").strip()

        if self._audit_logger:
            await self._audit_logger.log_login(
                email=email,
                user_id=user.id if succeeded else None,
                succeeded=succeeded,
                correlation_id=correlation_id,
            )

        if not succeeded:
            return OperationResult.fail("Invalid email or password")

        return OperationResult.ok(user=user, token=self._sessions.issue(user))

    async def update_profile(
        self,
        user_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """
        Apply profile edits.

        Keys may be snake_case or camelCase. The id and creation date
        are kept whatever the changes say.
        """
        user = await self._storage.get_user(user_id)
        if user is None:
            return OperationResult.fail("User not found")

        aliases = {f.alias: name for name, f in User.model_fields.items() if f.alias}
        normalized = {aliases.get(k, k): v for k, v in changes.items()}
        allowed = {k: v for k, v in normalized.items() if k not in PROTECTED_FIELDS}
        try:
            updated = User.model_validate({
                **user.model_dump(),
                **allowed,
                "id": user.id,
                "created_at": user.created_at,
            })
        except ValidationError as e:
            return OperationResult.fail(_validation_message(e))

        changed = [
            name for name in User.model_fields
            if getattr(updated, name) != getattr(user, name)
        ]

        try:
            await self._storage.update_user(updated)
        except DuplicateError:
            return OperationResult.fail("Email already exists")
        except NotFoundError:
            return OperationResult.fail("User not found")
        except StorageError:
            return OperationResult.fail("Failed to update user")

        if self._audit_logger:
            await self._audit_logger.log_profile_updated(
                user_id=user.id,
                fields=changed,
                correlation_id=correlation_id,
            )

        return OperationResult.ok(user=updated)
