"""
Relation definitions: the three binary toggles between the viewer and a target.

  Relation │ add / remove call            │ slots                         │ counter        │ flag
  ─────────┼──────────────────────────────┼───────────────────────────────┼────────────────┼─────────────
  LIKE     │ like_post / unlike_post      │ post + every list holding it  │ like_count     │ is_liked
  SAVE     │ save_post / unsave_post      │ post + every list holding it  │ save_count     │ is_saved
  FOLLOW   │ follow_user / unfollow_user  │ user profile                  │ follower_count │ is_following

The engine is generic; everything relation-specific lives in a RelationSpec.
"""
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Optional, Protocol

from lookbook.cache import EntityCache
from lookbook.interactions.patches import (
    replace_post_in_page,
    toggle_post_flag,
    toggle_profile_follow,
)
from lookbook.schemas import (
    CachedValue,
    CacheKey,
    PostKey,
    PostListKey,
    PostPage,
    PostView,
    UserProfileKey,
    UserProfileView,
)


class Relation(str, Enum):
    LIKE = "like"
    SAVE = "save"
    FOLLOW = "follow"


class Direction(str, Enum):
    ADD = "add"
    REMOVE = "remove"

    @classmethod
    def from_current(cls, current_flag_value: bool) -> "Direction":
        return cls.REMOVE if current_flag_value else cls.ADD


class MutationGateway(Protocol):
    async def like_post(self, post_id: str) -> None: ...
    async def unlike_post(self, post_id: str) -> None: ...
    async def save_post(self, post_id: str) -> None: ...
    async def unsave_post(self, post_id: str) -> None: ...
    async def follow_user(self, user_id: str) -> None: ...
    async def unfollow_user(self, user_id: str) -> None: ...


Snapshot = dict[CacheKey, CachedValue]


@dataclass(frozen=True)
class RelationSpec:
    relation: Relation
    add_call: str
    remove_call: str
    add_failure: str
    remove_failure: str
    collect_slots: Callable[[EntityCache, str], Snapshot]
    apply_patch: Callable[[CachedValue, str, bool], CachedValue]
    # (current, prior, target_id) → value to write back, or None to leave the slot alone
    restore_slot: Callable[[Optional[CachedValue], CachedValue, str], Optional[CachedValue]]

    def remote_call(
        self, gateway: MutationGateway, current_flag_value: bool
    ) -> Callable[[str], Awaitable[None]]:
        name = self.remove_call if current_flag_value else self.add_call
        return getattr(gateway, name)

    def failure_message(self, current_flag_value: bool) -> str:
        return self.remove_failure if current_flag_value else self.add_failure


# ───────────────────────────── Post relations ─────────────────────────────

def _collect_post_slots(cache: EntityCache, post_id: str) -> Snapshot:
    slots: Snapshot = {}
    key = PostKey(post_id=post_id)
    post = cache.get(key)
    if post is not None:
        slots[key] = post

    def visit(list_key: PostListKey, page: PostPage) -> None:
        if any(p.id == post_id for p in page.posts):
            slots[list_key] = page

    cache.for_each_list_slot(visit)
    return slots


def _patch_post_slot(
    flag_field: str,
    counter_field: str,
    value: CachedValue,
    post_id: str,
    new_value: bool,
) -> CachedValue:
    patch = partial(
        toggle_post_flag,
        flag_field=flag_field,
        counter_field=counter_field,
        new_value=new_value,
    )
    if isinstance(value, PostView):
        return patch(value)
    if isinstance(value, PostPage):
        return replace_post_in_page(value, post_id, patch) or value
    raise TypeError(f"Unexpected post slot value: {type(value).__name__}")


def _restore_post_slot(
    current: Optional[CachedValue],
    prior: CachedValue,
    post_id: str,
) -> Optional[CachedValue]:
    """Undo this toggle only: a list keeps every other post's current state."""
    if isinstance(prior, PostView):
        return prior
    if not isinstance(current, PostPage):
        return None  # list dropped since the patch
    prior_post = next((p for p in prior.posts if p.id == post_id), None)
    if prior_post is None:
        return None
    return replace_post_in_page(current, post_id, lambda _: prior_post)


# ───────────────────────────── User relations ─────────────────────────────

def _collect_profile_slots(cache: EntityCache, user_id: str) -> Snapshot:
    key = UserProfileKey(user_id=user_id)
    profile = cache.get(key)
    return {key: profile} if profile is not None else {}


def _patch_profile_slot(value: CachedValue, user_id: str, new_value: bool) -> CachedValue:
    if not isinstance(value, UserProfileView):
        raise TypeError(f"Unexpected profile slot value: {type(value).__name__}")
    return toggle_profile_follow(value, new_value)


def _restore_profile_slot(
    current: Optional[CachedValue],
    prior: CachedValue,
    user_id: str,
) -> Optional[CachedValue]:
    return prior


LIKE = RelationSpec(
    relation=Relation.LIKE,
    add_call="like_post",
    remove_call="unlike_post",
    add_failure="failed to like",
    remove_failure="failed to unlike",
    collect_slots=_collect_post_slots,
    apply_patch=partial(_patch_post_slot, "is_liked", "like_count"),
    restore_slot=_restore_post_slot,
)

SAVE = RelationSpec(
    relation=Relation.SAVE,
    add_call="save_post",
    remove_call="unsave_post",
    add_failure="failed to save",
    remove_failure="failed to unsave",
    collect_slots=_collect_post_slots,
    apply_patch=partial(_patch_post_slot, "is_saved", "save_count"),
    restore_slot=_restore_post_slot,
)

FOLLOW = RelationSpec(
    relation=Relation.FOLLOW,
    add_call="follow_user",
    remove_call="unfollow_user",
    add_failure="failed to follow",
    remove_failure="failed to unfollow",
    collect_slots=_collect_profile_slots,
    apply_patch=_patch_profile_slot,
    restore_slot=_restore_profile_slot,
)

RELATIONS: dict[Relation, RelationSpec] = {spec.relation: spec for spec in (LIKE, SAVE, FOLLOW)}
