"""
Pure patch helpers: every function returns a new frozen value and leaves
its input untouched, so the pre-patch value doubles as the rollback snapshot.
"""
from typing import Callable, Optional

from lookbook.schemas import PostPage, PostView, UserProfileView


def adjust_counter(value: Optional[int], desired_state: bool) -> Optional[int]:
    """+1 when moving to True, -1 floored at 0 when moving to False."""
    if value is None:
        return None
    if desired_state:
        return value + 1
    return max(0, value - 1)


def toggle_post_flag(
    post: PostView,
    flag_field: str,
    counter_field: str,
    new_value: bool,
) -> PostView:
    return post.model_copy(
        update={
            flag_field: new_value,
            counter_field: adjust_counter(getattr(post, counter_field), new_value),
        }
    )


def toggle_profile_follow(profile: UserProfileView, new_value: bool) -> UserProfileView:
    return profile.model_copy(
        update={
            "is_following": new_value,
            "follower_count": adjust_counter(profile.follower_count, new_value),
        }
    )


def replace_post_in_page(
    page: PostPage,
    post_id: str,
    patch: Callable[[PostView], PostView],
) -> Optional[PostPage]:
    """Return a copy of page with post_id patched, or None if the page lacks it."""
    found = False
    posts = []
    for post in page.posts:
        if post.id == post_id:
            found = True
            post = patch(post)
        posts.append(post)
    if not found:
        return None
    return page.model_copy(update={"posts": tuple(posts)})
