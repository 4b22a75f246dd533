"""
Built-in post abilities.

A small content catalog the assistant can act on: look up a post, search posts, create a draft and
publish it.  Posts live in a thread-safe in-memory :class:`PostStore`; write abilities are gated on
the capabilities of the user the catalog is built for.
"""

import itertools
import logging
import threading
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Literal,
    Mapping,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from ai_assistant.core.errors import ToolExecutionError
from ai_assistant.tools import (
    ToolDescriptor,
    require_capability,
)

logger = logging.getLogger(__name__)

EDIT_POSTS = "edit_posts"
PUBLISH_POSTS = "publish_posts"


class Post(BaseModel):
    """A single post."""

    id: int
    title: str
    content: str = ""
    excerpt: str = ""
    status: Literal["draft", "publish"] = "draft"
    featured_image_id: Optional[int] = None

    @property
    def edit_link(self) -> str:
        return f"/posts/{self.id}/edit"


class PostStore:
    """In-memory post storage."""

    def __init__(self, posts: Optional[Iterable[Post]] = None) -> None:
        self._lock = threading.Lock()
        self._posts: Dict[int, Post] = {}
        for post in posts or []:
            self._posts[post.id] = post
        self._ids = itertools.count(max(self._posts, default=0) + 1)

    def get(self, post_id: int) -> Optional[Post]:
        with self._lock:
            return self._posts.get(post_id)

    def create(self, **fields: Any) -> Post:
        with self._lock:
            post = Post(id=next(self._ids), **fields)
            self._posts[post.id] = post
            return post

    def update(self, post_id: int, **fields: Any) -> Post:
        with self._lock:
            if post_id not in self._posts:
                raise KeyError(post_id)
            post = self._posts[post_id].model_copy(update=fields)
            self._posts[post_id] = post
            return post

    def search(self, term: str, limit: int = 10) -> List[Post]:
        needle = term.lower()
        with self._lock:
            hits = [
                post
                for post in self._posts.values()
                if needle in post.title.lower() or needle in post.content.lower()
            ]
        return hits[:limit]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _post_id(args: Mapping[str, Any]) -> int:
    try:
        return int(args["id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ToolExecutionError("A numeric post 'id' is required.") from exc


def _summary(post: Post) -> Dict[str, Any]:
    return {"id": post.id, "title": post.title, "status": post.status, "edit_link": post.edit_link}


_POST_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "integer", "description": "The ID of the post."},
        "title": {"type": "string", "description": "The title of the post."},
        "status": {"type": "string", "description": "The status of the post."},
        "edit_link": {"type": "string", "description": "The URL to edit the post."},
    },
}


class SearchArgs(BaseModel):
    """Validated arguments for ``search-posts``."""

    search: str = Field(..., min_length=1)
    limit: int = Field(10, ge=1, le=100)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
def build_post_tools(
    store: PostStore, capabilities: Iterable[str] = (EDIT_POSTS, PUBLISH_POSTS)
) -> List[ToolDescriptor]:
    """Return the post abilities bound to *store* for a user holding *capabilities*."""
    capabilities = frozenset(capabilities)

    def get_post(args: Mapping[str, Any]) -> Dict[str, Any]:
        post = store.get(_post_id(args))
        if post is None:
            raise ToolExecutionError(f"Post {args['id']} not found.")
        return post.model_dump() | {"edit_link": post.edit_link}

    def search_posts(args: Mapping[str, Any]) -> List[Dict[str, Any]]:
        try:
            params = SearchArgs.model_validate(dict(args))
        except ValueError as exc:
            raise ToolExecutionError(f"Invalid search arguments: {exc}") from exc
        return [_summary(post) for post in store.search(params.search, params.limit)]

    def create_post_draft(args: Mapping[str, Any]) -> Dict[str, Any]:
        title = str(args.get("title") or "").strip()
        if not title:
            raise ToolExecutionError("Title is required.")
        fields: Dict[str, Any] = {"title": title, "content": str(args.get("content") or "")}
        if args.get("excerpt"):
            fields["excerpt"] = str(args["excerpt"])
        if str(args.get("featured_image_id", "")).isdigit():
            fields["featured_image_id"] = int(args["featured_image_id"])
        post = store.create(**fields)
        logger.info("Created draft post %d (%r)", post.id, post.title)
        return _summary(post)

    def publish_post(args: Mapping[str, Any]) -> Dict[str, Any]:
        post_id = _post_id(args)
        try:
            post = store.update(post_id, status="publish")
        except KeyError as exc:
            raise ToolExecutionError(f"Post {post_id} not found.") from exc
        logger.info("Published post %d", post.id)
        return _summary(post)

    id_schema = {
        "type": "object",
        "properties": {"id": {"type": "integer", "description": "The ID of the post."}},
        "required": ["id"],
    }

    return [
        ToolDescriptor(
            name="get-post",
            description="Returns the title, content, excerpt and status of a post by ID.",
            execute=get_post,
            input_schema=id_schema,
            output_schema=_POST_OUTPUT_SCHEMA,
        ),
        ToolDescriptor(
            name="search-posts",
            description="Searches posts by a term in their title or content.",
            execute=search_posts,
            input_schema={
                "type": "object",
                "properties": {
                    "search": {"type": "string", "description": "The search term."},
                    "limit": {"type": "integer", "description": "Maximum number of results."},
                },
                "required": ["search"],
            },
            output_schema={"type": "array", "items": _POST_OUTPUT_SCHEMA},
        ),
        ToolDescriptor(
            name="create-post-draft",
            description=(
                "Creates a new post draft with title, content, excerpt and featured image ID."
            ),
            execute=create_post_draft,
            input_schema={
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "The title of the post."},
                    "content": {
                        "type": "string",
                        "description": "The content of the post, in HTML format.",
                    },
                    "excerpt": {"type": "string", "description": "The excerpt of the post."},
                    "featured_image_id": {
                        "type": "integer",
                        "description": "The ID of the featured image to use for the post.",
                    },
                },
                "required": ["title"],
            },
            output_schema=_POST_OUTPUT_SCHEMA,
            permission_check=require_capability(capabilities, EDIT_POSTS, "create posts"),
        ),
        ToolDescriptor(
            name="publish-post",
            description="Publishes an existing post draft.",
            execute=publish_post,
            input_schema=id_schema,
            output_schema=_POST_OUTPUT_SCHEMA,
            permission_check=require_capability(capabilities, PUBLISH_POSTS, "publish posts"),
        ),
    ]

