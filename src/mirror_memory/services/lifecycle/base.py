"""
Memory Lifecycle Manager - Base interface and plugin.

Owns every mutation after extraction: ADD/UPDATE/DELETE/NOOP decisions, fact supersession,
behavior reinforcement, relationship strength, decay, expiry and the note-delete cascade.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_LIFECYCLE_MANAGER, DEFAULT_MIRROR_LIFECYCLE_MANAGER
from ...models import (
    Behavior, CandidateBehavior, CandidateFact, CandidateMemory, CascadeResult, Fact, ImportanceTier,
    InvalidationReason, LifecycleDecision, OperationRecord, Relationship,
)
from .._constants import EXT_DECISION_PROVIDER, EXT_LIFECYCLE_MANAGER, EXT_STORAGE_BACKEND


@dataclass
class DecaySettings:
    """Configuration for importance decay."""
    # Tier -> (multiplier, minimum days since last update)
    tier_rules: dict[ImportanceTier, tuple[float, int]] = field(default_factory=lambda: {
        ImportanceTier.HIGH: (0.95, 90),
        ImportanceTier.MEDIUM: (0.90, 30),
        ImportanceTier.LOW: (0.85, 14),
        ImportanceTier.TRIVIAL: (0.80, 7),
    })
    inactive_days: int = 7  # Skip entities accessed or updated more recently than this
    min_importance: float = 0.05  # Floor - importance never drops below this
    # Cleanup of stale trivial entities
    stale_max_importance: float = 0.1
    stale_min_age_days: int = 90
    stale_min_idle_days: int = 30


@dataclass
class DecayResult:
    """Result of a decay pass."""
    user_id: str = ''
    processed: int = 0
    decayed: int = 0
    entity_ids: list[str] = field(default_factory=list)


@dataclass
class CleanupResult:
    """Result of an expiry/staleness pass."""
    user_id: str = ''
    expired_ids: list[str] = field(default_factory=list)
    stale_ids: list[str] = field(default_factory=list)

    @property
    def archived(self) -> int:
        return len(self.expired_ids) + len(self.stale_ids)


@dataclass
class MaintenanceResult:
    """Result of a maintenance run over many users."""
    users_processed: int = 0
    decayed: int = 0
    archived: int = 0
    failed_user_ids: list[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class LifecycleManager(ABC):
    """Interface for memory lifecycle management."""

    @abstractmethod
    async def process_candidate(self, user_id: str, candidate: CandidateMemory) -> OperationRecord:
        """Decide and apply; a failing decision degrades to NOOP."""
        pass

    @abstractmethod
    async def apply_decision(
            self,
            user_id: str,
            candidate: CandidateMemory,
            decision: LifecycleDecision,
    ) -> OperationRecord:
        """Apply a decision and append it to the operation log."""
        pass

    @abstractmethod
    async def add_fact(self, user_id: str, candidate: CandidateFact) -> Fact:
        """Insert a fact, superseding a contradicting current fact of a single-valued predicate."""
        pass

    @abstractmethod
    async def invalidate_fact(
            self,
            user_id: str,
            fact_id: str,
            reason: InvalidationReason = InvalidationReason.USER_CORRECTED,
    ) -> Fact:
        """Retract a fact. Raises FactNotFoundError for unknown ids."""
        pass

    @abstractmethod
    async def infer_inverse_fact(self, user_id: str, fact: Fact) -> Optional[Fact]:
        """Record the inverse of a relational fact on its object entity, when resolvable."""
        pass

    @abstractmethod
    async def save_behavior(self, user_id: str, candidate: CandidateBehavior) -> Behavior:
        """Reinforce a known (predicate, entity) behavior or insert a new one."""
        pass

    @abstractmethod
    async def reinforce_relationship(
            self,
            user_id: str,
            source_id: str,
            target_id: str,
            relationship_type: str,
            boost: Optional[float] = None,
    ) -> Relationship:
        """Create an edge or raise its strength (capped at 1.0)."""
        pass

    @abstractmethod
    async def end_relationship(
            self,
            user_id: str,
            source_id: str,
            target_id: str,
            relationship_type: str,
            ended_at: Optional[datetime] = None,
    ) -> Optional[Relationship]:
        """Mark an active edge as ended; None when there is no such edge."""
        pass

    @abstractmethod
    async def apply_decay(
            self,
            user_id: str,
            now: Optional[datetime] = None,
            settings: Optional[DecaySettings] = None,
    ) -> DecayResult:
        """Decay importance of inactive, non-critical entities."""
        pass

    @abstractmethod
    async def cleanup_expired(
            self,
            user_id: str,
            now: Optional[datetime] = None,
            settings: Optional[DecaySettings] = None,
    ) -> CleanupResult:
        """Archive expired entities and stale trivial ones."""
        pass

    @abstractmethod
    async def run_maintenance(
            self,
            user_ids: Optional[Sequence[str]] = None,
            now: Optional[datetime] = None,
            settings: Optional[DecaySettings] = None,
    ) -> MaintenanceResult:
        """Cleanup then decay for each user (all users when none given)."""
        pass

    @abstractmethod
    async def delete_note(self, user_id: str, note_id: str, hard: bool = False) -> CascadeResult:
        """Delete a note and deactivate what was extracted from it."""
        pass

    @abstractmethod
    async def restore_note(self, user_id: str, note_id: str) -> CascadeResult:
        """Reverse a soft note deletion and its cascade."""
        pass

    @abstractmethod
    async def list_operations(self, user_id: str, limit: int = 50) -> list[OperationRecord]:
        """Recent lifecycle operations, newest first."""
        pass


# noinspection PyAbstractClass
class LifecycleManagerPluginBase(Plugin):
    """Base plugin for lifecycle managers."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_LIFECYCLE_MANAGER}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_LIFECYCLE_MANAGER

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_LIFECYCLE_MANAGER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_LIFECYCLE_MANAGER, DEFAULT_MIRROR_LIFECYCLE_MANAGER)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND, EXT_DECISION_PROVIDER)
