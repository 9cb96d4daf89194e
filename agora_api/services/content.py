"""Lookups and writes shared by the content routers."""

import logging
from typing import Any

from agora_api.db.records import Comment, Post, Subreddit, Table
from agora_api.db.store import DataStore
from agora_api.errors import NotFound, UpstreamError

logger = logging.getLogger(__name__)


def get_subreddit(store: DataStore, subreddit_id: str) -> Subreddit:
    """Fetch a subreddit by id.

    Raises:
        NotFound (SUB_NOT_FOUND): No such subreddit
    """
    subreddit = store.select_one(Table.SUBREDDITS, {"id": subreddit_id})
    if subreddit is None:
        raise NotFound("Subreddit not found", code="SUB_NOT_FOUND")
    return subreddit


def get_post(store: DataStore, post_id: str) -> Post:
    """Fetch a post by id.

    Raises:
        NotFound (POST_NOT_FOUND): No such post
    """
    post = store.select_one(Table.POSTS, {"id": post_id})
    if post is None:
        raise NotFound("Post not found", code="POST_NOT_FOUND")
    return post


def get_comment(store: DataStore, comment_id: str) -> Comment:
    comment = store.select_one(Table.COMMENTS, {"id": comment_id})
    if comment is None:
        raise NotFound("Comment not found", code="COMMENT_NOT_FOUND")
    return comment


def create_post(store: DataStore, subreddit_id: str, author_id: str, fields: dict[str, Any]) -> Post:
    """Insert a post authored by ``author_id`` into an existing subreddit.

    Raises:
        NotFound (SUB_NOT_FOUND): No such subreddit
        UpstreamError (CREATE_POST_ERROR): Store rejected the insert
    """
    get_subreddit(store, subreddit_id)
    try:
        post = store.insert(
            Table.POSTS,
            {**fields, "subreddit_id": subreddit_id, "author_id": author_id},
        )
    except UpstreamError as e:
        raise e.with_code("CREATE_POST_ERROR")

    logger.info(
        "post.created",
        extra={"post_id": post.id, "subreddit_id": subreddit_id, "user_id": author_id},
    )
    return post
