"""
In-process stand-in for the remote lookbook API, served to the client
through httpx.ASGITransport. The viewer is taken from a bearer token whose
value is the user id.
"""
from typing import Optional

from fastapi import APIRouter, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse


class FakeBackend:
    def __init__(self) -> None:
        self.posts: dict[str, dict] = {}
        self.users: dict[str, dict] = {}
        self.likes: set[tuple[str, str]] = set()
        self.saves: set[tuple[str, str]] = set()
        self.follows: set[tuple[str, str]] = set()

    def add_user(self, user_id: str, username: Optional[str] = None) -> None:
        self.users[user_id] = {"id": user_id, "username": username or user_id, "name": None, "image": None}

    def add_post(self, post_id: str, user_id: str, title: str = "look") -> None:
        self.posts[post_id] = {
            "id": post_id,
            "title": title,
            "description": None,
            "imageUrl": f"https://cdn.example/{post_id}.jpg",
            "userId": user_id,
        }

    def post_json(self, post_id: str, viewer: Optional[str]) -> dict:
        likes = [u for u, p in self.likes if p == post_id]
        saves = [u for u, p in self.saves if p == post_id]
        return {
            **self.posts[post_id],
            "_count": {"likes": len(likes), "saves": len(saves), "comments": 0},
            "isLiked": viewer in likes,
            "isSaved": viewer in saves,
        }

    def user_json(self, user_id: str, viewer: Optional[str]) -> dict:
        followers = [a for a, b in self.follows if b == user_id]
        following = [b for a, b in self.follows if a == user_id]
        posts = [p for p in self.posts.values() if p["userId"] == user_id]
        return {
            **self.users[user_id],
            "_count": {"followers": len(followers), "following": len(following), "posts": len(posts)},
            "isFollowing": viewer in followers,
            "isCurrentUser": viewer == user_id,
        }


def _viewer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):]
    return None


def _require(authorization: Optional[str]) -> str:
    viewer = _viewer(authorization)
    if viewer is None:
        raise HTTPException(status_code=401, detail="authentication required")
    return viewer


def build_app(backend: FakeBackend) -> FastAPI:
    app = FastAPI()
    router = APIRouter(prefix="/api")

    @app.exception_handler(HTTPException)
    async def _error_body(request, exc: HTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    def _relation(store: set, label: str):
        async def add(post_id: str, authorization: Optional[str] = Header(None)):
            viewer = _require(authorization)
            if post_id not in backend.posts:
                raise HTTPException(status_code=404, detail="post not found")
            if (viewer, post_id) in store:
                raise HTTPException(status_code=400, detail=f"already {label}")
            store.add((viewer, post_id))
            return {"success": True}

        async def remove(post_id: str, authorization: Optional[str] = Header(None)):
            viewer = _require(authorization)
            store.discard((viewer, post_id))
            return {"success": True}

        return add, remove

    like, unlike = _relation(backend.likes, "liked")
    save, unsave = _relation(backend.saves, "saved")
    router.add_api_route("/posts/{post_id}/like", like, methods=["POST"])
    router.add_api_route("/posts/{post_id}/like", unlike, methods=["DELETE"])
    router.add_api_route("/posts/{post_id}/save", save, methods=["POST"])
    router.add_api_route("/posts/{post_id}/save", unsave, methods=["DELETE"])

    @router.post("/users/{user_id}/follow")
    async def follow(user_id: str, authorization: Optional[str] = Header(None)):
        viewer = _require(authorization)
        if user_id not in backend.users:
            raise HTTPException(status_code=404, detail="user not found")
        if user_id == viewer:
            raise HTTPException(status_code=400, detail="cannot follow yourself")
        if (viewer, user_id) in backend.follows:
            raise HTTPException(status_code=400, detail="already following")
        backend.follows.add((viewer, user_id))
        return {"success": True}

    @router.delete("/users/{user_id}/follow")
    async def unfollow(user_id: str, authorization: Optional[str] = Header(None)):
        viewer = _require(authorization)
        backend.follows.discard((viewer, user_id))
        return {"success": True}

    @router.get("/posts/{post_id}")
    async def get_post(post_id: str, authorization: Optional[str] = Header(None)):
        if post_id not in backend.posts:
            raise HTTPException(status_code=404, detail="post not found")
        return backend.post_json(post_id, _viewer(authorization))

    @router.get("/posts")
    async def list_posts(
        page: int = 1,
        limit: int = 10,
        userId: Optional[str] = None,
        authorization: Optional[str] = Header(None),
    ):
        viewer = _viewer(authorization)
        ids = [pid for pid, p in backend.posts.items() if userId is None or p["userId"] == userId]
        start = (page - 1) * limit
        chunk = ids[start:start + limit]
        return {
            "posts": [backend.post_json(pid, viewer) for pid in chunk],
            "pagination": {
                "total": len(ids),
                "page": page,
                "limit": limit,
                "hasNextPage": page * limit < len(ids),
                "pages": -(-len(ids) // limit),
            },
        }

    @router.get("/users/{user_id}")
    async def get_user(user_id: str, authorization: Optional[str] = Header(None)):
        if user_id not in backend.users:
            raise HTTPException(status_code=404, detail="user not found")
        return backend.user_json(user_id, _viewer(authorization))

    app.include_router(router)
    return app
