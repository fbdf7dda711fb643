"""What the UI is currently showing.

The controller owns the only ``ViewState``; render functions read it and
never change it. Apart from ``session_user`` it only holds ids.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .data_models import User


class View(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    APP = "app"


class Pane(str, Enum):
    FEED = "feed"
    SEARCH = "search"
    PROFILE = "profile"
    EDIT_PROFILE = "edit-profile"
    NOTIFICATIONS = "notifications"


class Modal(str, Enum):
    UPLOAD = "upload"
    COMMENT = "comment"
    FOLLOW_LIST = "follow-list"


class FollowKind(str, Enum):
    FOLLOWERS = "followers"
    FOLLOWING = "following"


@dataclass(frozen=True)
class FollowListQuery:
    kind: FollowKind
    user_id: str


@dataclass
class ViewState:
    # Snapshot of the logged-in user, refreshed after every mutation touching it.
    session_user: Optional[User] = None
    view: View = View.LOGIN
    pane: Pane = Pane.FEED
    viewing_profile_id: Optional[str] = None
    active_modal: Optional[Modal] = None
    commenting_post_id: Optional[str] = None
    follow_list: Optional[FollowListQuery] = None

    @property
    def session_user_id(self) -> Optional[str]:
        return self.session_user.id if self.session_user else None

    def clear_modal(self) -> None:
        self.active_modal = None
        self.commenting_post_id = None
        self.follow_list = None
