"""Lookups over the users and posts collections.

Each call lists the collection again from the backend; nothing is cached, so
results always reflect the last write.
"""
import logging
from typing import List, Optional

from .backend import Backend
from .data_models import Post, User

logger = logging.getLogger("tuigram.repository")


class Repository:
    def __init__(self, backend: Backend):
        self.backend = backend

    def users(self) -> List[User]:
        users = []
        for record in self.backend.list_documents("users"):
            try:
                users.append(User.from_record(record))
            except (ValueError, TypeError) as e:
                logger.warning("repository: skipping malformed user record: %s", e)
        return users

    def posts(self) -> List[Post]:
        posts = []
        for record in self.backend.list_documents("posts"):
            try:
                posts.append(Post.from_record(record))
            except (ValueError, TypeError) as e:
                logger.warning("repository: skipping malformed post record: %s", e)
        return posts

    def user_by_id(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        return next((u for u in self.users() if u.id == user_id), None)

    def user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        return next((u for u in self.users() if u.email and u.email.lower() == email), None)

    def user_by_name(self, name: str) -> Optional[User]:
        name = name.lower()
        return next((u for u in self.users() if u.name.lower() == name), None)

    def post_by_id(self, post_id: Optional[str]) -> Optional[Post]:
        if not post_id:
            return None
        return next((p for p in self.posts() if p.id == post_id), None)

    def posts_by_user(self, user_id: str) -> List[Post]:
        return [p for p in self.posts() if p.user_id == user_id]
