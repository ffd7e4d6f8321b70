"""
Optimistic mutation engine.

Every toggle runs the same two-phase protocol:

  Phase 1 │ synchronous, nothing is awaited
  ────────┼──────────────────────────────────────────────────────────────
          │  cancel in-flight refetches of the touched slots
          │  snapshot every slot holding a projection of the target
          │  write the patched copies back (flag flipped, counter ±1)

  Phase 2 │ asynchronous, the only suspension point
  ────────┼──────────────────────────────────────────────────────────────
          │  exactly one gateway call, chosen by current_flag_value

  Settle  │
  ────────┼──────────────────────────────────────────────────────────────
          │  success → keep the patch
          │  failure → restore this call's snapshot, notify once
          │  both    → invalidate touched slots (authoritative refetch)

Each invocation rolls back only the snapshot it captured itself. Two rapid
toggles on the same target therefore layer: the second snapshot already
contains the first patch, and a late failure of either call never clobbers
the other call's outcome. The trailing refetch reconciles whatever drift
remains.

Precondition: the viewer must be authenticated. An anonymous toggle is
rejected before Phase 1 and leaves the cache untouched.

Nothing is raised to the caller; every outcome is a ToggleResult.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from opentelemetry import trace

from lookbook.auth import ViewerSession
from lookbook.cache import EntityCache
from lookbook.errors import GatewayError
from lookbook.interactions.relations import (
    RELATIONS,
    Direction,
    MutationGateway,
    Relation,
    Snapshot,
)
from lookbook.notifications import Notifier
from lookbook.telemetry import (
    GATEWAY_LATENCY,
    INTERACTION_REJECTED_TOTAL,
    INTERACTION_ROLLBACKS_TOTAL,
    INTERACTION_TOGGLES_TOTAL,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class FailureReason(str, Enum):
    REMOTE = "remote"
    UNAUTHENTICATED = "unauthenticated"
    SELF_FOLLOW = "self_follow"


@dataclass(frozen=True)
class ToggleSuccess:
    target_id: str
    relation: Relation
    new_flag_value: bool
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class ToggleFailure:
    target_id: str
    relation: Relation
    direction: Direction
    reason: FailureReason
    message: str
    error: Optional[Exception] = None
    ok: bool = field(default=False, init=False)


ToggleResult = Union[ToggleSuccess, ToggleFailure]


@dataclass
class PendingMutation:
    relation: Relation
    target_id: str
    desired_state: bool
    prior_snapshot: Snapshot


class OptimisticEngine:
    def __init__(
        self,
        cache: EntityCache,
        gateway: MutationGateway,
        session: ViewerSession,
        notifier: Notifier,
    ) -> None:
        self.cache = cache
        self.gateway = gateway
        self.session = session
        self.notifier = notifier

    async def toggle(
        self,
        relation: Relation,
        target_id: str,
        current_flag_value: bool,
    ) -> ToggleResult:
        spec = RELATIONS[relation]
        direction = Direction.from_current(current_flag_value)

        with tracer.start_as_current_span("interaction.toggle") as span:
            span.set_attribute("interaction.relation", relation.value)
            span.set_attribute("interaction.target_id", target_id)
            span.set_attribute("interaction.direction", direction.value)

            rejected = self._check_preconditions(relation, target_id, current_flag_value)
            if rejected is not None:
                span.set_attribute("interaction.outcome", rejected.reason.value)
                return rejected

            INTERACTION_TOGGLES_TOTAL.labels(
                relation=relation.value, direction=direction.value
            ).inc()

            pending = self._apply_optimistic(relation, target_id, current_flag_value)
            span.set_attribute("interaction.slots", len(pending.prior_snapshot))

            call = spec.remote_call(self.gateway, current_flag_value)
            t0 = time.perf_counter()
            try:
                await call(target_id)
            except GatewayError as exc:
                GATEWAY_LATENCY.labels(relation=relation.value).observe(time.perf_counter() - t0)
                self._rollback(pending)
                message = spec.failure_message(current_flag_value)
                self.notifier.error(message)
                INTERACTION_ROLLBACKS_TOTAL.labels(
                    relation=relation.value, direction=direction.value
                ).inc()
                logger.warning(
                    "%s %s on %s failed (%s) — rolled back %d slot(s)",
                    relation.value, direction.value, target_id, exc,
                    len(pending.prior_snapshot),
                )
                span.set_attribute("interaction.outcome", "rolled_back")
                self._settle(pending)
                return ToggleFailure(
                    target_id=target_id,
                    relation=relation,
                    direction=direction,
                    reason=FailureReason.REMOTE,
                    message=message,
                    error=exc,
                )

            GATEWAY_LATENCY.labels(relation=relation.value).observe(time.perf_counter() - t0)
            span.set_attribute("interaction.outcome", "confirmed")
            logger.debug("%s %s on %s confirmed", relation.value, direction.value, target_id)
            self._settle(pending)
            return ToggleSuccess(
                target_id=target_id,
                relation=relation,
                new_flag_value=not current_flag_value,
            )

    # ───────────────────────── Protocol steps ─────────────────────────────

    def _check_preconditions(
        self,
        relation: Relation,
        target_id: str,
        current_flag_value: bool,
    ) -> Optional[ToggleFailure]:
        spec = RELATIONS[relation]
        direction = Direction.from_current(current_flag_value)

        if self.session.get_user_id() is None:
            INTERACTION_REJECTED_TOTAL.labels(
                relation=relation.value, reason=FailureReason.UNAUTHENTICATED.value
            ).inc()
            logger.info("Rejected anonymous %s on %s", relation.value, target_id)
            return ToggleFailure(
                target_id=target_id,
                relation=relation,
                direction=direction,
                reason=FailureReason.UNAUTHENTICATED,
                message="authentication required",
            )

        if relation is Relation.FOLLOW and self.session.has_access_to_resource(target_id):
            message = spec.failure_message(current_flag_value)
            self.notifier.error(message)
            INTERACTION_REJECTED_TOTAL.labels(
                relation=relation.value, reason=FailureReason.SELF_FOLLOW.value
            ).inc()
            return ToggleFailure(
                target_id=target_id,
                relation=relation,
                direction=direction,
                reason=FailureReason.SELF_FOLLOW,
                message=message,
            )

        return None

    def _apply_optimistic(
        self,
        relation: Relation,
        target_id: str,
        current_flag_value: bool,
    ) -> PendingMutation:
        """Snapshot and patch every touched slot. Must not await."""
        spec = RELATIONS[relation]
        desired = not current_flag_value

        snapshot = spec.collect_slots(self.cache, target_id)
        for key in snapshot:
            self.cache.cancel_refetch(key)
        for key, value in snapshot.items():
            self.cache.set(key, spec.apply_patch(value, target_id, desired))

        return PendingMutation(
            relation=relation,
            target_id=target_id,
            desired_state=desired,
            prior_snapshot=snapshot,
        )

    def _rollback(self, pending: PendingMutation) -> None:
        """Restore this call's snapshot; list slots only get the target's entry back."""
        spec = RELATIONS[pending.relation]
        for key, prior in pending.prior_snapshot.items():
            restored = spec.restore_slot(self.cache.get(key), prior, pending.target_id)
            if restored is not None:
                self.cache.set(key, restored)

    def _settle(self, pending: PendingMutation) -> None:
        for key in pending.prior_snapshot:
            self.cache.invalidate(key)
