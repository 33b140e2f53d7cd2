from typing import Any, Callable, List, Optional

import structlog

from ..models.models import User
from ..schemas.users import PinCheck, UserCreate, UserUpdate
from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationFailed, parse_input
from .repository import Repository


log = structlog.get_logger(__name__)


class UserService:
    """Staff accounts: unique PINs and a single, immutable Branch Manager."""

    def __init__(self, repo: Repository, notify: Callable[[str], None]) -> None:
        self.repo = repo
        self.notify = notify

    def _ensure_pin_free(self, pin: str, exclude_id: Optional[int] = None) -> None:
        if not self.repo.is_pin_unique(pin, exclude_id):
            raise ConflictError("PIN is already in use", field="pin")

    def _commit(self) -> None:
        try:
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        self.notify("users")

    def check_pin(self, payload: Any) -> bool:
        data = parse_input(PinCheck, payload)
        return self.repo.is_pin_unique(data.pin, data.exclude_id)

    def authenticate(self, pin: str) -> Optional[User]:
        return self.repo.get_user_by_pin(pin)

    def create_user(self, payload: Any) -> User:
        data = parse_input(UserCreate, payload)
        if data.is_admin and self.repo.get_admin() is not None:
            raise AuthorizationError("There is already a Branch Manager")
        self._ensure_pin_free(data.pin)
        user = self.repo.create_user(**data.model_dump())
        self._commit()
        log.info("user_created", user_id=user.id, initials=user.initials)
        return user

    def update_user(self, user_id: int, payload: Any) -> User:
        data = parse_input(UserUpdate, payload)
        patch = data.model_dump(exclude_unset=True)
        user = self.repo.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if "is_admin" in patch:
            if user.is_admin and not patch["is_admin"]:
                raise AuthorizationError("The Branch Manager cannot be demoted")
            if patch["is_admin"] and not user.is_admin:
                raise AuthorizationError("There is already a Branch Manager")
        if patch.get("pin") is not None:
            self._ensure_pin_free(patch["pin"], exclude_id=user_id)
        for key in ("initials", "pin", "roles"):
            if key in patch and patch[key] is None:
                raise ValidationFailed(f"{key} cannot be empty", field=key)
        self.repo.update_user(user_id, **patch)
        self._commit()
        return user

    def delete_user(self, user_id: int) -> None:
        user = self.repo.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if user.is_admin:
            raise AuthorizationError("The Branch Manager cannot be deleted")
        self.repo.delete_user(user_id)
        self._commit()
        log.info("user_deleted", user_id=user_id)

    def drivers(self) -> List[User]:
        return self.repo.list_drivers()

    def seed_branch_manager(self, pin: str, initials: str) -> Optional[User]:
        """Create the Branch Manager on first boot; no-op when one exists."""
        if self.repo.get_admin() is not None:
            return None
        if not self.repo.is_pin_unique(pin):
            log.warning("branch_manager_seed_skipped", reason="pin in use")
            return None
        user = self.repo.create_user(initials=initials, pin=pin, roles=["Counter"], is_admin=True)
        self.repo.commit()
        log.info("branch_manager_seeded", user_id=user.id)
        return user
