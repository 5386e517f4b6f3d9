"""Business logic for users: lazy creation and display names."""
import logging
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import AuthenticationError, StorageError, ValidationError

MAX_DISPLAY_NAME_LENGTH = 50


def validate_display_name(value) -> str:
    """Return the trimmed display name or raise ``ValidationError``."""
    if not isinstance(value, str):
        raise ValidationError('Display name is required', field='display_name')
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError('Display name cannot be empty', field='display_name')
    if len(trimmed) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            f'Display name must be {MAX_DISPLAY_NAME_LENGTH} characters or less',
            field='display_name')
    return trimmed


def principal_email(principal: Optional[Dict]) -> str:
    """Return the principal's e-mail or raise ``AuthenticationError``."""
    email = (principal or {}).get('email')
    if not email:
        raise AuthenticationError('Unauthorized')
    return email


class UserService:
    """Resolves users from the signed-in principal and manages display
    names, delegating persistence to the ``database`` module's helper
    functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    """

    def __init__(self, db_module) -> None:
        """
        Args:
            db_module: The imported ``database`` module (or any object that
                exposes ``get_user_by_email``, ``create_user`` and
                ``update_display_name``).
        """
        self._db = db_module
        self._log = logging.getLogger('playlog.service.user')

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_or_create(self, db, principal: Dict):
        """Return the user for *principal*, creating it on first use.

        A uniqueness violation on insert means a concurrent request created
        the same user first; the row is re-fetched instead of failing.

        Raises:
            AuthenticationError: *principal* has no e-mail.
            StorageError:        the store failed.
        """
        email = principal_email(principal)
        try:
            user = self._db.get_user_by_email(db, email)
            if user:
                return user
            try:
                return self._db.create_user(
                    db, email,
                    name=principal.get('name'),
                    avatar=principal.get('image'))
            except IntegrityError:
                self._log.info("User %s created concurrently; re-fetching", email)
                user = self._db.get_user_by_email(db, email)
                if user is None:
                    raise StorageError('Failed to create user')
                return user
        except SQLAlchemyError as e:
            self._log.error("Error resolving user %s: %s", email, e)
            raise StorageError('Failed to load user') from e

    def get_display_name(self, db, email: str) -> Optional[str]:
        """Return the stored display name, or ``None`` when unset or the
        user has no record yet."""
        try:
            user = self._db.get_user_by_email(db, email)
        except SQLAlchemyError as e:
            self._log.error("Error fetching display name for %s: %s", email, e)
            raise StorageError('Failed to fetch display name') from e
        return user.display_name if user else None

    def needs_display_name(self, db, email: str) -> bool:
        """True when the UI should prompt for a display name."""
        return self.get_display_name(db, email) is None

    def set_display_name(self, db, principal: Dict, display_name) -> str:
        """Validate and store a new display name for *principal*.

        Returns:
            The stored (trimmed) display name.

        Raises:
            ValidationError: empty after trimming or longer than 50 chars.
        """
        email = principal_email(principal)
        trimmed = validate_display_name(display_name)
        user = self.get_or_create(db, principal)
        try:
            self._db.update_display_name(db, user, trimmed)
        except SQLAlchemyError as e:
            self._log.error("Error updating display name for %s: %s", email, e)
            raise StorageError('Failed to update display name. Please try again.') from e
        self._log.info("Updated display name for %s", email)
        return trimmed
