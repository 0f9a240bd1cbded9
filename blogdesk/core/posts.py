"""Post records, reduced to what scheduled publishing needs."""

import uuid
from datetime import datetime

from .models import Post, PostStatus, utc_now
from .storage import Storage


class PostStore:
    """Creation, lookup and scheduled publishing of posts."""

    SECTION = "posts"

    def __init__(self, storage: Storage):
        self.storage = storage

    def create(
        self,
        title: str,
        slug: str,
        status: PostStatus = PostStatus.DRAFT,
        published_at: datetime | None = None,
    ) -> Post:
        post = Post(
            id=uuid.uuid4().hex,
            title=title,
            slug=slug,
            status=status,
            published_at=published_at,
        )
        self.storage.set(f"{self.SECTION}.{post.id}", post.model_dump(mode="json"))
        return post

    def get(self, post_id: str) -> Post | None:
        record = self.storage.get(f"{self.SECTION}.{post_id}")
        return Post(**record) if record else None

    def publish_scheduled(self, now: datetime | None = None) -> list[Post]:
        """Publish every scheduled post whose publish time has come.

        Returns:
            The posts that were published.
        """
        now = now or utc_now()
        published = []
        with self.storage.transaction() as data:
            for post_id, record in data.setdefault(self.SECTION, {}).items():
                post = Post(**record)
                if post.status != PostStatus.SCHEDULED or post.published_at is None:
                    continue
                if post.published_at > now:
                    continue
                post.status = PostStatus.PUBLISHED
                post.updated_at = now
                data[self.SECTION][post_id] = post.model_dump(mode="json")
                published.append(post)
        return published
