"""
Mutation layer: validates input, writes through the backend and moves the
view-state. Every operation either completes or raises a ``TuigramError``
leaving stored data and view-state as they were.
"""
import logging
import time
from typing import Callable, Optional

from .backend import Backend, generate_id
from .config import Settings
from .data_models import Comment, Post, User
from .errors import (
    AuthError,
    DataInconsistency,
    NotFoundError,
    ValidationError,
)
from .locks import EntityLocks
from .media import read_upload
from .repository import Repository
from .state import FollowKind, FollowListQuery, Modal, Pane, View, ViewState

logger = logging.getLogger("tuigram.controller")

FIXTURE_USER_ID = "special_user_lana"
FIXTURE_NAME = "Lana"
FIXTURE_EMAIL = "lana@special.user"
FIXTURE_ALIASES = ("lana", FIXTURE_EMAIL)

ACCOUNT_GONE = "Your account could not be found. You have been logged out."


def fixture_record() -> dict:
    return User(
        id=FIXTURE_USER_ID,
        name=FIXTURE_NAME,
        email=FIXTURE_EMAIL,
        password="123456",
        profile_pic="https://images.unsplash.com/photo-1544005313-94ddf0286de2?q=80&w=1974&auto=format&fit=crop",
        bio="Official account.",
        is_verified=True,
        base_followers=10373020,
        base_following=150,
    ).to_record()


def _now_ms() -> int:
    return int(time.time() * 1000)


class Controller:
    def __init__(
        self,
        backend: Backend,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], int]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.backend = backend
        self.settings = settings or Settings()
        self.repo = Repository(backend)
        self.state = ViewState()
        self.locks = EntityLocks()
        self._clock = clock or _now_ms
        self._new_id = id_factory or generate_id

    # --- session ---
    def _require_session(self) -> User:
        if self.state.session_user is None:
            raise ValidationError("Please log in first.")
        return self.state.session_user

    def _reload_session_user(self) -> User:
        user = self.repo.user_by_id(self.state.session_user_id)
        if user is None:
            self.logout()
            raise DataInconsistency(ACCOUNT_GONE)
        self.state.session_user = user
        return user

    def bootstrap(self) -> None:
        self.seed_fixture_user()
        self.sync()

    def seed_fixture_user(self) -> None:
        with self.locks.hold(("user", FIXTURE_USER_ID)):
            if self.backend.fetch_document("users", FIXTURE_USER_ID) is None:
                self.backend.update_document("users", FIXTURE_USER_ID, fixture_record())
                logger.info("seeded fixture account %r", FIXTURE_NAME)

    def sync(self) -> None:
        """Re-read the session pointer and choose the view to show."""
        session_id = self.backend.get_session_user_id()
        if not session_id:
            self.state.session_user = None
            if self.state.view is View.APP:
                self.state.view = View.LOGIN
            return

        user = self.repo.user_by_id(session_id)
        if user is None:
            logger.warning("session points at missing user %s, logging out", session_id)
            self.logout()
            raise DataInconsistency(ACCOUNT_GONE)
        self.state.session_user = user
        self.state.view = View.APP

    def show_login(self) -> None:
        if self.state.view is not View.APP:
            self.state.view = View.LOGIN

    def show_register(self) -> None:
        if self.state.view is not View.APP:
            self.state.view = View.REGISTER

    # --- auth ---
    def register(self, name: str, email: str, password: str, confirm_password: str) -> User:
        """Create an account. Registration never logs the new user in."""
        name = (name or "").strip()
        email = (email or "").strip()
        if not name or not email or not password:
            raise ValidationError("All fields are required.")
        if not self.settings.allows_email(email):
            raise ValidationError("Please use a valid Gmail address.")
        if password != confirm_password:
            raise ValidationError("Password and confirmation do not match.")

        with self.locks.hold(("collection", "users")):
            if self.repo.user_by_email(email) or self.repo.user_by_name(name):
                raise ValidationError("This email or username is already registered.")
            user_id = self.backend.register_account(email, password)
            user = User(id=user_id, name=name, email=email, password=password)
            self.backend.update_document("users", user_id, user.to_record())

        logger.info("registered user %s (%s)", user.id, user.name)
        self.state.view = View.LOGIN
        return user

    def login(self, identifier: str, password: str) -> User:
        identifier = (identifier or "").strip()
        if identifier.lower() in FIXTURE_ALIASES:
            fixture = self.repo.user_by_id(FIXTURE_USER_ID)
            if fixture is None:
                raise AuthError("Wrong username/email or password.")
            identifier = fixture.email

        user_id = self.backend.authenticate(identifier, password or "")
        user = self.repo.user_by_id(user_id)
        if user is None:
            raise NotFoundError("Account not found.")

        self.backend.set_session_user_id(user.id)
        self.state.session_user = user
        self.state.view = View.APP
        self.state.pane = Pane.FEED
        self.state.viewing_profile_id = None
        self.state.clear_modal()
        logger.info("user %s logged in", user.id)
        return user

    def logout(self) -> None:
        user_id = self.state.session_user_id
        self.backend.set_session_user_id(None)
        self.state.session_user = None
        self.state.view = View.LOGIN
        self.state.pane = Pane.FEED
        self.state.viewing_profile_id = None
        self.state.clear_modal()
        if user_id:
            logger.info("user %s logged out", user_id)

    # --- posts ---
    def create_post(self, file_path: str, caption: str = "") -> Post:
        try:
            post = self.publish_post(file_path, caption)
        except DataInconsistency:
            self.logout()
            raise
        self.post_shared()
        return post

    def publish_post(self, file_path: str, caption: str = "") -> Post:
        """Upload the media and store the post without touching the view-state.

        Worker threads call this and leave ``post_shared`` (or ``logout`` on
        ``DataInconsistency``) to the UI thread.
        """
        user = self._require_session()
        data, content_type = read_upload(file_path)

        post_id = self._new_id()
        with self.locks.hold(("user", user.id), ("post", post_id)):
            if self.repo.user_by_id(user.id) is None:
                raise DataInconsistency(ACCOUNT_GONE)
            image_url = self.backend.upload_blob(f"posts/{user.id}/{post_id}", data, content_type)
            post = Post(
                id=post_id,
                user_id=user.id,
                image_url=image_url,
                caption=(caption or "").strip(),
                timestamp=self._clock(),
            )
            self.backend.update_document("posts", post_id, post.to_record())

        logger.info("user %s created post %s", user.id, post.id)
        return post

    def post_shared(self) -> None:
        self.state.clear_modal()
        self.state.pane = Pane.FEED

    def toggle_like(self, post_id: str) -> bool:
        """Like or unlike a post. Returns True when the post is now liked."""
        self._require_session()
        with self.locks.hold(("post", post_id)):
            user = self._reload_session_user()
            post = self.repo.post_by_id(post_id)
            if post is None:
                raise NotFoundError("Post not found.")
            if user.id in post.likes:
                post.likes.remove(user.id)
                liked = False
            else:
                post.likes.append(user.id)
                liked = True
            self.backend.update_document("posts", post.id, {"likes": post.likes})
        return liked

    def add_comment(self, text: str) -> Comment:
        self._require_session()
        post_id = self.state.commenting_post_id
        if not post_id:
            raise ValidationError("No post selected for commenting.")
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment cannot be empty.")

        with self.locks.hold(("post", post_id)):
            user = self._reload_session_user()
            post = self.repo.post_by_id(post_id)
            if post is None:
                raise NotFoundError("Post not found.")
            comment = Comment(user_id=user.id, text=text, timestamp=self._clock())
            post.comments.append(comment)
            self.backend.update_document(
                "posts", post.id, {"comments": [c.to_record() for c in post.comments]}
            )
        return comment

    # --- relations ---
    def toggle_follow(self, target_id: str) -> bool:
        """Follow or unfollow ``target_id``. Returns True when now following.

        Both sides of the relation are written in one batch.
        """
        actor = self._require_session()
        if target_id == actor.id:
            raise ValidationError("You cannot follow yourself.")

        with self.locks.hold(("user", actor.id), ("user", target_id)):
            current = self.repo.user_by_id(actor.id)
            target = self.repo.user_by_id(target_id)
            if current is None:
                self.logout()
                raise DataInconsistency(ACCOUNT_GONE)
            if target is None:
                raise NotFoundError("User not found.")

            if target.id in current.following:
                current.following.remove(target.id)
                if current.id in target.followers:
                    target.followers.remove(current.id)
                following = False
            else:
                current.following.append(target.id)
                if current.id not in target.followers:
                    target.followers.append(current.id)
                following = True

            self.backend.batch_update(
                "users",
                {
                    current.id: {"following": current.following},
                    target.id: {"followers": target.followers},
                },
            )
        self.state.session_user = current
        return following

    # --- profile ---
    def save_profile(self, name: str, bio: str = "", picture_path: Optional[str] = None) -> User:
        user = self._require_session()
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name cannot be empty.")

        with self.locks.hold(("user", user.id)):
            if self.repo.user_by_id(user.id) is None:
                self.logout()
                raise DataInconsistency(ACCOUNT_GONE)
            other = self.repo.user_by_name(name)
            if other is not None and other.id != user.id:
                raise ValidationError("This username is already taken.")

            patch = {"name": name, "bio": (bio or "").strip()}
            if picture_path and picture_path.strip():
                data, content_type = read_upload(picture_path)
                patch["profilePic"] = self.backend.upload_blob(
                    f"avatars/{user.id}", data, content_type
                )
            self.backend.update_document("users", user.id, patch)
            updated = self._reload_session_user()

        self.state.pane = Pane.PROFILE
        self.state.viewing_profile_id = updated.id
        return updated

    # --- navigation ---
    def switch_pane(self, pane: Pane, user_id: Optional[str] = None) -> None:
        self._require_session()
        pane = Pane(pane)
        if pane is Pane.PROFILE:
            self.state.viewing_profile_id = user_id
        self.state.pane = pane

    def open_modal(
        self,
        modal: Modal,
        post_id: Optional[str] = None,
        kind: Optional[FollowKind] = None,
        user_id: Optional[str] = None,
    ) -> None:
        self._require_session()
        modal = Modal(modal)
        if modal is Modal.COMMENT:
            if self.repo.post_by_id(post_id) is None:
                raise NotFoundError("Post not found.")
            self.state.clear_modal()
            self.state.commenting_post_id = post_id
        elif modal is Modal.FOLLOW_LIST:
            if kind is None or self.repo.user_by_id(user_id) is None:
                raise NotFoundError("User not found.")
            self.state.clear_modal()
            self.state.follow_list = FollowListQuery(kind=FollowKind(kind), user_id=user_id)
        else:
            self.state.clear_modal()
        self.state.active_modal = modal

    def close_modal(self) -> None:
        self.state.clear_modal()

    def show_follow_list(self, kind: FollowKind, user_id: str) -> None:
        self.open_modal(Modal.FOLLOW_LIST, kind=kind, user_id=user_id)
