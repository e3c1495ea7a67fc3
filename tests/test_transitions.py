"""Status transition gating and the permission session."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from qcisync.errors import RpcError, UnauthorizedError
from qcisync.registry.models import FALLBACK_STATUSES, StatusVocabulary, status_id
from qcisync.registry.transitions import (
    PermissionSession,
    Role,
    StatusTransitionService,
    allowed_targets,
    check_transition,
)

NAMES = ["Draft", "Ready for Snapshot", "Posted to Snapshot", "Implemented", "Rejected"]
VOCABULARY = StatusVocabulary.from_pairs([status_id(n) for n in NAMES], NAMES)

EDITOR_ROLE = "0x" + "ed" * 32
ADMIN_ROLE = "0x" + "00" * 32
ME = "0x1111111111111111111111111111111111111111"
SOMEONE = "0x2222222222222222222222222222222222222222"


class FakeRegistry:
    def __init__(self, roles: dict[str, set[str]] | None = None, revert: str | None = None) -> None:
        self.roles = roles or {}
        self.revert = revert
        self.submitted: list[tuple[int, str]] = []
        self.role_checks = 0

    async def editor_role(self) -> str:
        return EDITOR_ROLE

    async def admin_role(self) -> str:
        return ADMIN_ROLE

    async def has_role(self, role: str, account: str) -> bool:
        self.role_checks += 1
        return account.lower() in self.roles.get(role, set())

    async def request_status_change(self, number: int, status_name: str) -> str:
        if self.revert:
            raise RpcError(self.revert, code=3)
        self.submitted.append((number, status_name))
        return "0x" + "ab" * 32


@dataclass
class StubProposal:
    author: str


# ============ Pure rules ============


def test_author_allow_list():
    assert allowed_targets(Role.AUTHOR, "Draft", VOCABULARY) == {"Ready for Snapshot"}
    assert allowed_targets(Role.AUTHOR, "Ready for Snapshot", VOCABULARY) == {"Draft"}
    assert allowed_targets(Role.AUTHOR, "Posted to Snapshot", VOCABULARY) == frozenset()


def test_editor_may_target_every_other_status():
    assert allowed_targets(Role.EDITOR, "Draft", VOCABULARY) == set(NAMES) - {"Draft"}


def test_viewer_gets_nothing():
    assert allowed_targets(Role.VIEWER, "Draft", VOCABULARY) == frozenset()


@pytest.mark.parametrize("current", NAMES)
@pytest.mark.parametrize("target", NAMES)
def test_authors_rejected_outside_allow_list(current, target):
    allowed = target in allowed_targets(Role.AUTHOR, current, VOCABULARY)
    if allowed:
        assert check_transition(Role.AUTHOR, current, target, VOCABULARY) == target
    else:
        with pytest.raises(UnauthorizedError):
            check_transition(Role.AUTHOR, current, target, VOCABULARY)


@pytest.mark.parametrize("current", NAMES)
@pytest.mark.parametrize("target", NAMES + ["Something New"])
def test_editors_never_rejected_client_side(current, target):
    assert check_transition(Role.EDITOR, current, target, VOCABULARY) == target


def test_target_name_is_normalised_to_registered_spelling():
    assert check_transition(Role.AUTHOR, "draft", "ready for snapshot", VOCABULARY) == "Ready for Snapshot"


def test_author_rules_respect_fallback_vocabulary():
    assert allowed_targets(Role.AUTHOR, "Draft", FALLBACK_STATUSES) == {"Ready for Snapshot"}


# ============ Service ============


def test_unauthorized_request_never_reaches_registry():
    registry = FakeRegistry()
    service = StatusTransitionService(registry, VOCABULARY)

    with pytest.raises(UnauthorizedError):
        asyncio.run(service.request_transition(210, "Draft", "Implemented", Role.AUTHOR))
    assert registry.submitted == []


def test_authorized_request_is_submitted():
    registry = FakeRegistry()
    service = StatusTransitionService(registry, VOCABULARY)

    asyncio.run(service.request_transition(210, "Draft", "Ready for Snapshot", Role.AUTHOR))
    assert registry.submitted == [(210, "Ready for Snapshot")]


def test_on_chain_failure_surfaces_verbatim():
    registry = FakeRegistry(revert="execution reverted: Pausable: paused")
    service = StatusTransitionService(registry, VOCABULARY)

    with pytest.raises(RpcError) as excinfo:
        asyncio.run(service.request_transition(210, "Draft", "Rejected", Role.EDITOR))
    assert str(excinfo.value) == "execution reverted: Pausable: paused"


# ============ Permission session ============


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_roles_resolved_from_author_and_editor_role():
    registry = FakeRegistry(roles={EDITOR_ROLE: {SOMEONE.lower()}})

    author_session = PermissionSession(registry, ME)
    assert asyncio.run(author_session.role_for(StubProposal(author=ME))) is Role.AUTHOR
    assert asyncio.run(author_session.role_for(StubProposal(author=SOMEONE))) is Role.VIEWER

    editor_session = PermissionSession(registry, SOMEONE)
    assert asyncio.run(editor_session.role_for(StubProposal(author=ME))) is Role.EDITOR


def test_admin_counts_as_editor():
    registry = FakeRegistry(roles={ADMIN_ROLE: {ME.lower()}})
    assert asyncio.run(PermissionSession(registry, ME).is_editor())


def test_role_cache_expires_after_ttl():
    registry = FakeRegistry(roles={EDITOR_ROLE: {ME.lower()}})
    clock = Clock()
    session = PermissionSession(registry, ME, ttl=300, clock=clock)

    asyncio.run(session.is_editor())
    asyncio.run(session.is_editor())
    assert registry.role_checks == 1

    clock.now += 301
    asyncio.run(session.is_editor())
    assert registry.role_checks == 2


def test_switching_address_invalidates_cache():
    registry = FakeRegistry(roles={EDITOR_ROLE: {ME.lower()}})
    session = PermissionSession(registry, ME, clock=Clock())

    assert asyncio.run(session.is_editor())
    session.switch_address(ME.lower())
    assert registry.role_checks == 1

    session.switch_address(SOMEONE)
    assert not asyncio.run(session.is_editor())
    assert session.address == SOMEONE
