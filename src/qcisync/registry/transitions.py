"""
Status transitions and permission gating.

States are whatever statuses the registry currently has registered. Authors
may only move between the entries of a small allow-list; editors may move
a proposal to any registered status. These checks run client-side before
anything is submitted and only mirror the contract's own access rules.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Optional

from ..errors import UnauthorizedError
from ..observability import get_logger
from .models import DRAFT, READY_FOR_SNAPSHOT, StatusVocabulary

log = get_logger(__name__)


class Role(str, Enum):
    AUTHOR = "author"
    EDITOR = "editor"
    VIEWER = "viewer"


AUTHOR_TRANSITIONS: dict[str, frozenset[str]] = {
    DRAFT: frozenset({READY_FOR_SNAPSHOT}),
    READY_FOR_SNAPSHOT: frozenset({DRAFT}),
}


def allowed_targets(role: Role, current: str, vocabulary: StatusVocabulary) -> frozenset[str]:
    if role is Role.EDITOR:
        return frozenset(name for name in vocabulary.names() if name.lower() != current.lower())
    if role is Role.AUTHOR:
        for source, targets in AUTHOR_TRANSITIONS.items():
            if source.lower() == current.lower():
                return frozenset(t for t in targets if t in vocabulary)
    return frozenset()


def check_transition(role: Role, current: str, target: str, vocabulary: StatusVocabulary) -> str:
    """
    Validate a requested transition and return the registered target name.

    Editors are never refused here; an unregistered target is passed
    through and left for the contract to reject.

    Raises:
        UnauthorizedError: ``target`` is not reachable for ``role``.
    """
    definition = vocabulary.by_name(target)
    if role is Role.EDITOR:
        return definition.name if definition else target
    if definition is None:
        raise UnauthorizedError(f"Unknown status: {target!r}")
    if definition.name not in allowed_targets(role, current, vocabulary):
        raise UnauthorizedError(f"A {role.value} cannot move a proposal from {current!r} to {definition.name!r}")
    return definition.name


class StatusTransitionService:
    def __init__(self, registry: Any, vocabulary: StatusVocabulary) -> None:
        self.registry = registry
        self.vocabulary = vocabulary

    async def request_transition(self, number: int, current: str, target: str, role: Role) -> str:
        """
        Submit a status change after the client-side permission check.

        On-chain failures are raised unchanged.
        """
        name = check_transition(role, current, target, self.vocabulary)
        tx_hash = await self.registry.request_status_change(number, name)
        log.info("status_changed", qci=number, current=current, target=name, role=role.value, tx_hash=tx_hash)
        return tx_hash


class PermissionSession:
    """
    Short-lived role cache for one connected address.

    Editor status is looked up once per ``ttl`` seconds. Switching to a
    different address drops everything cached for the previous one.
    """

    def __init__(
        self,
        registry: Any,
        address: str,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.address = address
        self.ttl = ttl
        self._clock = clock
        self._editor: Optional[bool] = None
        self._checked_at = 0.0

    def switch_address(self, address: str) -> None:
        if address.lower() != self.address.lower():
            self.address = address
            self.invalidate()

    def invalidate(self) -> None:
        self._editor = None
        self._checked_at = 0.0

    async def is_editor(self) -> bool:
        now = self._clock()
        if self._editor is not None and now - self._checked_at < self.ttl:
            return self._editor

        editor_role = await self.registry.editor_role()
        is_editor = await self.registry.has_role(editor_role, self.address)
        if not is_editor:
            admin_role = await self.registry.admin_role()
            is_editor = await self.registry.has_role(admin_role, self.address)

        self._editor = is_editor
        self._checked_at = now
        return is_editor

    async def role_for(self, proposal: Any) -> Role:
        if await self.is_editor():
            return Role.EDITOR
        if proposal.author.lower() == self.address.lower():
            return Role.AUTHOR
        return Role.VIEWER
