"""
Unit of Work.

Runs a group of repository operations as one database transaction:

    with UnitOfWork(session_factory) as uow:
        order = order_repository.get_order(uow.session, order_id, for_update=True)
        ...
        uow.add_post_commit_hook("guard_ledger", record_guard_entry)

- Commits on clean exit, rolls back on any exception (the exception propagates).
- Post-commit hooks run only after a successful commit. They are side channels
  outside the transaction: a failing hook is logged and never undoes the commit
  or reaches the caller.
- The session is always closed on exit.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[], None]


class UnitOfWork:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._session: Optional[Session] = None
        self._hooks: List[Tuple[str, PostCommitHook]] = []
        self._committed: bool = False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use 'with UnitOfWork(...)'.")
        return self._session

    @property
    def committed(self) -> bool:
        return self._committed

    def add_post_commit_hook(self, name: str, hook: PostCommitHook) -> None:
        self._hooks.append((name, hook))

    def commit(self) -> None:
        if self._committed:
            return
        self.session.commit()
        self._committed = True
        logger.debug("UnitOfWork committed")
        self._run_post_commit_hooks()

    def rollback(self) -> None:
        if self._session is None:
            return
        self._session.rollback()
        self._hooks.clear()
        logger.debug("UnitOfWork rolled back")

    def _run_post_commit_hooks(self) -> None:
        hooks, self._hooks = self._hooks, []
        for name, hook in hooks:
            try:
                hook()
            except Exception as e:
                logger.warning(
                    f"Post-commit hook '{name}' failed: {e}",
                    extra={"hook": name, "error": str(e)},
                )

    def __enter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        self._committed = False
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            if exc_type is not None:
                self.rollback()
                logger.debug(f"UnitOfWork rolled back due to: {exc_type.__name__}")
            elif not self._committed:
                self.commit()
        finally:
            if self._session is not None:
                self._session.close()
                self._session = None

        return False


__all__ = ["PostCommitHook", "UnitOfWork"]
