"""
Pydantic projections of the remote API payloads, as held in the entity cache.

Every model is frozen: a cached value is never mutated in place, patches
build a new value with model_copy(), and a snapshot is just the reference
to the value that was cached before the patch.

Field names are snake_case; the remote camelCase / `_count.*` shape is
accepted through validation aliases so `PostView.model_validate(resp.json())`
works directly on API responses.
"""
from typing import Optional, Union

from pydantic import AliasPath, BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ──────────────────────────── Users ───────────────────────────────────────

class UserProfileView(_Frozen):
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None
    # Relative to the viewing user
    is_following: bool = Field(False, validation_alias="isFollowing")
    is_current_user: bool = Field(False, validation_alias="isCurrentUser")
    follower_count: int = Field(0, ge=0, validation_alias=AliasPath("_count", "followers"))
    following_count: int = Field(0, ge=0, validation_alias=AliasPath("_count", "following"))
    post_count: int = Field(0, ge=0, validation_alias=AliasPath("_count", "posts"))


# ──────────────────────────── Posts ───────────────────────────────────────

class PostView(_Frozen):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, validation_alias="imageUrl")
    user_id: Optional[str] = Field(None, validation_alias="userId")
    is_liked: bool = Field(False, validation_alias="isLiked")
    is_saved: bool = Field(False, validation_alias="isSaved")
    like_count: int = Field(0, ge=0, validation_alias=AliasPath("_count", "likes"))
    # None when the endpoint does not report saves; never patched in that case
    save_count: Optional[int] = Field(None, ge=0, validation_alias=AliasPath("_count", "saves"))
    comment_count: int = Field(0, ge=0, validation_alias=AliasPath("_count", "comments"))


class Pagination(_Frozen):
    total: int = 0
    page: int = 1
    limit: int = 10
    has_next_page: bool = Field(False, validation_alias="hasNextPage")
    pages: int = 0


class PostPage(_Frozen):
    posts: tuple[PostView, ...] = ()
    pagination: Pagination = Pagination()


class PostListQuery(_Frozen):
    """Normalized filter descriptor identifying one cached post list."""
    user_id: Optional[str] = None
    sort: Optional[str] = None          # 'latest' | 'popular' | None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)

    def as_params(self) -> dict[str, str]:
        params = {"page": str(self.page), "limit": str(self.limit)}
        if self.user_id:
            params["userId"] = self.user_id
        if self.sort:
            params["sort"] = self.sort
        return params


# ──────────────────────────── Cache keys ──────────────────────────────────

class PostKey(_Frozen):
    post_id: str


class PostListKey(_Frozen):
    query: PostListQuery


class UserProfileKey(_Frozen):
    user_id: str


CacheKey = Union[PostKey, PostListKey, UserProfileKey]
CachedValue = Union[PostView, PostPage, UserProfileView]
