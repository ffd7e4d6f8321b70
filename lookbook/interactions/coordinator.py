"""
Entry points for UI event handlers: one toggle per relation.

Callers pass the flag value they last rendered (it may be stale); the
result reports the new flag on success or a classified failure after the
optimistic patch has already been rolled back.
"""
from lookbook.interactions.engine import OptimisticEngine, ToggleResult
from lookbook.interactions.relations import Relation


class Interactions:
    def __init__(self, engine: OptimisticEngine) -> None:
        self.engine = engine

    async def toggle_like(self, post_id: str, is_liked: bool) -> ToggleResult:
        return await self.engine.toggle(Relation.LIKE, post_id, is_liked)

    async def toggle_save(self, post_id: str, is_saved: bool) -> ToggleResult:
        return await self.engine.toggle(Relation.SAVE, post_id, is_saved)

    async def toggle_follow(self, user_id: str, is_following: bool) -> ToggleResult:
        return await self.engine.toggle(Relation.FOLLOW, user_id, is_following)
