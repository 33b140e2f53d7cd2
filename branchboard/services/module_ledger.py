from typing import List, Optional

from ..models.models import ModuleStatus
from .repository import Repository


class ModuleStatusLedger:
    """Explicit per-day "done" flags, one row per (module, civil date)."""

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def set_status(self, module_name: str, date: str, is_done: bool, done_by: Optional[str] = None) -> ModuleStatus:
        return self.repo.upsert_module_status(
            module_name,
            date,
            is_done=is_done,
            done_at=self.repo.clock.utcnow() if is_done else None,
            done_by=done_by if is_done else None,
        )

    def get_statuses(self, date: str) -> List[ModuleStatus]:
        return self.repo.module_statuses(date)

    def is_done(self, module_name: str, date: str) -> bool:
        row = self.repo.get_module_status(module_name, date)
        return bool(row and row.is_done)
