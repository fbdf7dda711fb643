"""
Render layer: projects (ViewState, Repository) into plain view-models.

Nothing here touches widgets or mutates state, so every pane can be built
and checked without a terminal. The Textual app turns these records into
widgets.
"""
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .data_models import Post, User
from .repository import Repository
from .state import FollowKind, ViewState

PLACEHOLDER_AVATAR = "https://placehold.co/150x150/2d3748/ffffff?text=U"
COMMENT_EXCERPT_LENGTH = 20


@dataclass(frozen=True)
class UserBadge:
    id: str
    name: str
    avatar: str
    is_verified: bool


@dataclass(frozen=True)
class NavItem:
    target: str  # pane name, or "upload" for the new post action
    label: str
    active: bool
    is_action: bool = False


@dataclass(frozen=True)
class PostCard:
    id: str
    author: UserBadge
    image_url: str
    caption: str
    timestamp: int
    like_count: int
    comment_count: int
    liked: bool


@dataclass(frozen=True)
class FeedView:
    posts: Tuple[PostCard, ...]
    empty_message: Optional[str] = None


@dataclass(frozen=True)
class GridItem:
    post_id: str
    image_url: str


@dataclass(frozen=True)
class ProfileView:
    user: UserBadge
    bio: str
    post_count: int
    follower_total: int
    following_total: int
    is_self: bool
    is_following: bool
    grid: Tuple[GridItem, ...]


@dataclass(frozen=True)
class EditProfileView:
    user_id: str
    name: str
    bio: str
    avatar: str


@dataclass(frozen=True)
class CommentEntry:
    author: UserBadge
    text: str
    timestamp: int


@dataclass(frozen=True)
class CommentThreadView:
    post_id: str
    comments: Tuple[CommentEntry, ...]


@dataclass(frozen=True)
class SearchResult:
    user: UserBadge
    follower_total: int


@dataclass(frozen=True)
class SearchView:
    query: str
    results: Tuple[SearchResult, ...]
    message: Optional[str] = None


@dataclass(frozen=True)
class FollowEntry:
    user: UserBadge
    show_button: bool
    is_following: bool


@dataclass(frozen=True)
class FollowListView:
    kind: FollowKind
    user_id: str
    title: str
    entries: Tuple[FollowEntry, ...]
    empty_message: Optional[str] = None


@dataclass(frozen=True)
class NotificationItem:
    kind: str  # "like" or "comment"
    actor: UserBadge
    post_id: str
    post_image_url: str
    text: str


@dataclass(frozen=True)
class NotificationsView:
    items: Tuple[NotificationItem, ...]
    empty_message: Optional[str] = None


def badge(user: User) -> UserBadge:
    return UserBadge(
        id=user.id,
        name=user.name,
        avatar=user.profile_pic or PLACEHOLDER_AVATAR,
        is_verified=user.is_verified,
    )


def format_count(n: int) -> str:
    return f"{n:,}"


def time_ago(timestamp_ms: int, now_ms: Optional[int] = None) -> str:
    """Format an epoch-milliseconds timestamp as 'time ago'."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    seconds = max(0, (now_ms - timestamp_ms) // 1000)
    if seconds >= 86400:
        return f"{seconds // 86400}d ago"
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"


NAV_ITEMS = (
    ("feed", "Home"),
    ("search", "Search"),
    ("upload", "Create"),
    ("notifications", "Notifications"),
    ("profile", "Profile"),
)


def navigation(state: ViewState) -> List[NavItem]:
    return [
        NavItem(
            target=target,
            label=label,
            active=state.pane.value == target,
            is_action=target == "upload",
        )
        for target, label in NAV_ITEMS
    ]


def _post_card(post: Post, author: User, viewer_id: Optional[str]) -> PostCard:
    return PostCard(
        id=post.id,
        author=badge(author),
        image_url=post.image_url,
        caption=post.caption,
        timestamp=post.timestamp,
        like_count=len(post.likes),
        comment_count=len(post.comments),
        liked=viewer_id is not None and viewer_id in post.likes,
    )


def feed(state: ViewState, repo: Repository) -> FeedView:
    """All posts, newest first. Posts whose author is gone are skipped."""
    posts = sorted(repo.posts(), key=lambda p: p.timestamp, reverse=True)
    if not posts:
        return FeedView(
            posts=(),
            empty_message="No posts yet. Follow other people or share your first post!",
        )
    authors = {u.id: u for u in repo.users()}
    cards = [
        _post_card(post, authors[post.user_id], state.session_user_id)
        for post in posts
        if post.user_id in authors
    ]
    return FeedView(posts=tuple(cards))


def profile(
    state: ViewState, repo: Repository, user_id: Optional[str] = None
) -> Optional[ProfileView]:
    user_id = user_id or state.viewing_profile_id or state.session_user_id
    user = repo.user_by_id(user_id)
    if user is None:
        return None

    own_posts = sorted(repo.posts_by_user(user.id), key=lambda p: p.timestamp, reverse=True)
    viewer = state.session_user
    is_self = viewer is not None and viewer.id == user.id
    return ProfileView(
        user=badge(user),
        bio=user.bio or "No bio yet.",
        post_count=len(own_posts),
        follower_total=user.follower_total,
        following_total=user.following_total,
        is_self=is_self,
        is_following=not is_self and viewer is not None and user.id in viewer.following,
        grid=tuple(GridItem(post_id=p.id, image_url=p.image_url) for p in own_posts),
    )


def edit_profile(state: ViewState) -> Optional[EditProfileView]:
    user = state.session_user
    if user is None:
        return None
    return EditProfileView(
        user_id=user.id,
        name=user.name,
        bio=user.bio,
        avatar=user.profile_pic or PLACEHOLDER_AVATAR,
    )


def comments(state: ViewState, repo: Repository, post_id: Optional[str]) -> Optional[CommentThreadView]:
    post = repo.post_by_id(post_id)
    if post is None:
        return None
    users = {u.id: u for u in repo.users()}
    entries = [
        CommentEntry(author=badge(users[c.user_id]), text=c.text, timestamp=c.timestamp)
        for c in sorted(post.comments, key=lambda c: c.timestamp)
        if c.user_id in users
    ]
    return CommentThreadView(post_id=post.id, comments=tuple(entries))


def search(state: ViewState, repo: Repository, query: str) -> SearchView:
    query = (query or "").strip()
    if not query:
        return SearchView(query="", results=(), message="Type a name to search.")

    needle = query.lower()
    results = [
        SearchResult(user=badge(u), follower_total=u.follower_total)
        for u in repo.users()
        if needle in u.name.lower() and u.id != state.session_user_id
    ]
    if not results:
        return SearchView(query=query, results=(), message=f'No results for "{query}"')
    return SearchView(query=query, results=tuple(results))


def follow_list(
    state: ViewState, repo: Repository, kind: FollowKind, user_id: str
) -> Optional[FollowListView]:
    """Real followers/following only; base counts never produce entries."""
    kind = FollowKind(kind)
    user = repo.user_by_id(user_id)
    if user is None:
        return None

    members = user.followers if kind is FollowKind.FOLLOWERS else user.following
    title = "Followers" if kind is FollowKind.FOLLOWERS else "Following"
    users = {u.id: u for u in repo.users()}
    viewer = state.session_user
    entries = []
    for member_id in members:
        member = users.get(member_id)
        if member is None:
            continue
        is_self = viewer is not None and member_id == viewer.id
        entries.append(
            FollowEntry(
                user=badge(member),
                show_button=not is_self,
                is_following=viewer is not None and member_id in viewer.following,
            )
        )

    empty_message = None
    if not members and not (kind is FollowKind.FOLLOWERS and user.base_followers > 0):
        empty_message = "No users to show."
    return FollowListView(
        kind=kind,
        user_id=user.id,
        title=title,
        entries=tuple(entries),
        empty_message=empty_message,
    )


def _excerpt(text: str) -> str:
    return text[:COMMENT_EXCERPT_LENGTH] + "..."


def notifications(state: ViewState, repo: Repository) -> NotificationsView:
    """Built on the fly from likes and comments on the viewer's own posts."""
    viewer_id = state.session_user_id
    items = []
    if viewer_id is not None:
        users = {u.id: u for u in repo.users()}
        for post in repo.posts_by_user(viewer_id):
            for liker_id in post.likes:
                if liker_id == viewer_id or liker_id not in users:
                    continue
                items.append(
                    NotificationItem(
                        kind="like",
                        actor=badge(users[liker_id]),
                        post_id=post.id,
                        post_image_url=post.image_url,
                        text="liked your post.",
                    )
                )
            for comment in post.comments:
                if comment.user_id == viewer_id or comment.user_id not in users:
                    continue
                items.append(
                    NotificationItem(
                        kind="comment",
                        actor=badge(users[comment.user_id]),
                        post_id=post.id,
                        post_image_url=post.image_url,
                        text=f'commented: "{_excerpt(comment.text)}"',
                    )
                )
    if not items:
        return NotificationsView(items=(), empty_message="No new notifications.")
    return NotificationsView(items=tuple(items))

