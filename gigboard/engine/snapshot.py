"""
gigboard.engine.snapshot — TTL-Refreshed Configuration Snapshot
================================================================

Routing and authorization read the same handful of small tables on every
interaction: role bindings, categories with their destination and report
channels, per-channel policies, and debug channels.  :class:`ConfigSnapshot`
keeps an immutable :class:`Snapshot` of all of them plus the monotonic time
it was loaded.

Contract:

- ``refresh()`` reloads only when the snapshot is older than the TTL
  (15 s by default).  ``refresh(force=True)`` always reloads; admin
  mutations call it right after their commit so their own reply already
  sees the change.
- Readers never see a half-built snapshot: the new value is assembled in a
  session and swapped in under the lock.
- Lookups are pure reads against whatever snapshot is current.

``refresh`` touches the database, so async callers go through ``run_db``::

    await run_db(snapshot.refresh)
    targets = snapshot.targets_for_category(category_id)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigboard.constants import CONFIG_TTL_SECONDS
from gigboard.database.models import (
    Category,
    CategoryReportChannel,
    CategoryTarget,
    ChannelPolicy,
    DebugChannel,
    RoleBinding,
    RoleType,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Immutable value types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CategoryInfo:
    id: str
    name: str
    approve_mode: bool


@dataclass(frozen=True, slots=True)
class PolicyInfo:
    expiry_days: int | None = None
    cooldown_days: int | None = None


_NO_POLICY = PolicyInfo()


def _empty() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One consistent view of every configuration table."""

    roles: Mapping[RoleType, frozenset[int]] = field(default_factory=_empty)
    categories: Mapping[str, CategoryInfo] = field(default_factory=_empty)
    targets: Mapping[str, frozenset[int]] = field(default_factory=_empty)
    reports: Mapping[str, frozenset[int]] = field(default_factory=_empty)
    policies: Mapping[int, PolicyInfo] = field(default_factory=_empty)
    debug_channels: frozenset[int] = frozenset()


def load_snapshot(engine: Engine) -> Snapshot:
    """Read every configuration table in one session."""
    roles: dict[RoleType, set[int]] = {}
    targets: dict[str, set[int]] = {}
    reports: dict[str, set[int]] = {}

    with Session(engine) as session:
        for binding in session.scalars(select(RoleBinding)):
            roles.setdefault(RoleType(binding.role_type), set()).add(binding.role_id)

        categories = {
            c.id: CategoryInfo(id=c.id, name=c.name, approve_mode=bool(c.approve_mode))
            for c in session.scalars(select(Category))
        }
        for t in session.scalars(select(CategoryTarget)):
            targets.setdefault(t.category_id, set()).add(t.channel_id)
        for r in session.scalars(select(CategoryReportChannel)):
            reports.setdefault(r.category_id, set()).add(r.channel_id)

        policies = {
            p.channel_id: PolicyInfo(expiry_days=p.expiry_days, cooldown_days=p.cooldown_days)
            for p in session.scalars(select(ChannelPolicy))
        }
        debug = frozenset(session.scalars(select(DebugChannel.channel_id)))

    return Snapshot(
        roles=MappingProxyType({k: frozenset(v) for k, v in roles.items()}),
        categories=MappingProxyType(categories),
        targets=MappingProxyType({k: frozenset(v) for k, v in targets.items()}),
        reports=MappingProxyType({k: frozenset(v) for k, v in reports.items()}),
        policies=MappingProxyType(policies),
        debug_channels=debug,
    )


# ---------------------------------------------------------------------------
# Shared holder
# ---------------------------------------------------------------------------
class ConfigSnapshot:
    """Holds the current :class:`Snapshot` and when it was loaded.

    Parameters
    ----------
    engine:
        Engine the configuration tables live in.
    ttl_seconds:
        Maximum age before a non-forced ``refresh()`` reloads.
    clock:
        Monotonic time source; tests pass a fake.
    """

    def __init__(
        self,
        engine: Engine,
        ttl_seconds: float = CONFIG_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._current = Snapshot()
        self._loaded_at: float | None = None

    # -------------------------------------------------------------------
    # Refresh (synchronous — call via run_db from async code)
    # -------------------------------------------------------------------
    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at >= self._ttl

    def refresh(self, force: bool = False) -> bool:
        """Reload from the store if forced or stale.  Returns True if reloaded."""
        if not force and not self.is_stale():
            return False
        snapshot = load_snapshot(self._engine)
        with self._lock:
            self._current = snapshot
            self._loaded_at = self._clock()
        logger.debug(
            "Config snapshot loaded: %d categories, %d role types, %d policies, "
            "%d debug channels",
            len(snapshot.categories), len(snapshot.roles),
            len(snapshot.policies), len(snapshot.debug_channels),
        )
        return True

    @property
    def current(self) -> Snapshot:
        with self._lock:
            return self._current

    @property
    def loaded_at(self) -> float | None:
        return self._loaded_at

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def role_ids(self, role_type: RoleType) -> frozenset[int]:
        return self.current.roles.get(role_type, frozenset())

    def category(self, category_id: str | None) -> CategoryInfo | None:
        if category_id is None:
            return None
        return self.current.categories.get(category_id)

    def category_by_name(self, name: str) -> CategoryInfo | None:
        for info in self.current.categories.values():
            if info.name == name:
                return info
        return None

    def category_names(self) -> list[str]:
        return sorted(c.name for c in self.current.categories.values())

    def categories_for_channel(self, channel_id: int) -> list[CategoryInfo]:
        """Categories that use *channel_id* as a destination, sorted by name."""
        snap = self.current
        found = [
            snap.categories[cid]
            for cid, channels in snap.targets.items()
            if channel_id in channels and cid in snap.categories
        ]
        return sorted(found, key=lambda c: c.name.lower())

    def targets_for_category(self, category_id: str | None) -> list[int]:
        if category_id is None:
            return []
        return sorted(self.current.targets.get(category_id, frozenset()))

    def reports_for_category(self, category_id: str | None) -> list[int]:
        if category_id is None:
            return []
        return sorted(self.current.reports.get(category_id, frozenset()))

    def target_channel_ids(self) -> set[int]:
        return {cid for channels in self.current.targets.values() for cid in channels}

    def report_channel_ids(self) -> set[int]:
        return {cid for channels in self.current.reports.values() for cid in channels}

    def policy_for_channel(self, channel_id: int) -> PolicyInfo:
        return self.current.policies.get(channel_id, _NO_POLICY)

    def debug_channel_ids(self) -> list[int]:
        return sorted(self.current.debug_channels)
