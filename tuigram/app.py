"""
Textual front end for tuigram.

The app keeps one ``#screen-container`` and rebuilds its children from the
view-models in ``views`` whenever the controller's state changes. Buttons
carry the action they trigger and the id of the entity they act on; every
press goes through ``dispatch_intent`` so errors surface the same way.
"""
import logging
from typing import List, Optional

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Grid, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widget import Widget
from textual.widgets import Button, Input, Static

from . import views
from .controller import Controller
from .errors import DataInconsistency, TuigramError
from .media import ascii_art
from .state import FollowKind, Modal, Pane, View

logger = logging.getLogger("tuigram.app")

FOOTER_TEXT = "[1] Feed [2] Search [3] Notifications [p] Profile [n] New Post [ctrl+l] Log out [q] Quit"
AUTH_FOOTER_TEXT = "[tab] Next field [enter] Submit [q] Quit"


def user_label(user: views.UserBadge) -> str:
    return f"@{user.name} ✔" if user.is_verified else f"@{user.name}"


class ActionButton(Button):
    """Button that knows which action it triggers and on what."""

    def __init__(self, label: str, intent: str, entity_id: Optional[str] = None, **kwargs):
        super().__init__(label, **kwargs)
        self.intent = intent
        self.entity_id = entity_id


class MediaPreview(Static):
    """ASCII rendering of an image or video, loaded off the UI thread."""

    def __init__(self, image_url: str, width: int = 40, **kwargs):
        super().__init__("loading preview...", markup=False, **kwargs)
        self.image_url = image_url
        self.preview_width = width

    def on_mount(self) -> None:
        self.load_preview()

    @work(thread=True, exit_on_error=False)
    def load_preview(self) -> None:
        art = ascii_art(self.image_url, self.preview_width)
        self.app.call_from_thread(self.update, art or "[no preview]")


def avatar_widget(user: views.UserBadge, width: int = 12) -> Widget:
    # Remote avatars are not fetched just to draw a tiny thumbnail.
    if user.avatar.startswith("data:"):
        return MediaPreview(user.avatar, width=width, classes="avatar")
    return Static(f"({user.name[:1].upper()})", classes="avatar avatar-initial", markup=False)


# ───────── Auth forms ─────────


class LoginForm(Vertical):
    def compose(self) -> ComposeResult:
        yield Static("tuigram", classes="auth-title", markup=False)
        yield Input(placeholder="Email or username", id="login-identifier")
        yield Input(placeholder="Password", password=True, id="login-password")
        yield ActionButton("Log in", "login", variant="primary", id="login-button")
        yield ActionButton(
            "Don't have an account? Sign up", "show-register", classes="link", id="show-register"
        )


class RegisterForm(Vertical):
    def compose(self) -> ComposeResult:
        yield Static("Create an account", classes="auth-title", markup=False)
        yield Input(placeholder="Username", id="register-name")
        yield Input(placeholder="Email (@gmail.com)", id="register-email")
        yield Input(placeholder="Password", password=True, id="register-password")
        yield Input(placeholder="Confirm password", password=True, id="register-confirm")
        yield ActionButton("Sign up", "register", variant="primary", id="register-button")
        yield ActionButton(
            "Already have an account? Log in", "show-login", classes="link", id="show-login"
        )


# ───────── App chrome ─────────


class Sidebar(Vertical):
    def __init__(self, items: List[views.NavItem], **kwargs):
        super().__init__(**kwargs)
        self.items = items

    def compose(self) -> ComposeResult:
        for item in self.items:
            classes = "nav-item active" if item.active else "nav-item"
            yield ActionButton(item.label, "nav", item.target, classes=classes, id=f"nav-{item.target}")
        yield ActionButton("Log out", "logout", classes="nav-item logout", id="nav-logout")


# ───────── Panes ─────────


class PostCardWidget(Vertical):
    def __init__(self, card: views.PostCard, **kwargs):
        super().__init__(**kwargs)
        self.card = card

    def compose(self) -> ComposeResult:
        card = self.card
        with Horizontal(classes="post-header"):
            yield avatar_widget(card.author, width=6)
            yield ActionButton(user_label(card.author), "profile", card.author.id, classes="link")
            yield Static(views.time_ago(card.timestamp), classes="post-time", markup=False)
        yield MediaPreview(card.image_url, classes="post-media")
        with Horizontal(classes="post-actions"):
            yield ActionButton(
                "♥" if card.liked else "♡",
                "like",
                card.id,
                classes="like-btn liked" if card.liked else "like-btn",
            )
            yield ActionButton("💬", "comment", card.id, classes="comment-btn")
        yield Static(f"{views.format_count(card.like_count)} likes", classes="post-likes", markup=False)
        if card.caption:
            yield Static(Text.assemble((card.author.name, "bold"), " ", card.caption), classes="post-caption")
        if card.comment_count:
            yield ActionButton(
                f"View all {card.comment_count} comments", "comment", card.id, classes="link"
            )


class FeedPane(VerticalScroll):
    def __init__(self, feed: views.FeedView, **kwargs):
        super().__init__(**kwargs)
        self.feed = feed

    def compose(self) -> ComposeResult:
        yield Static("feed | newest first", classes="panel-header", markup=False)
        if self.feed.empty_message:
            yield Static(self.feed.empty_message, classes="empty-message", markup=False)
        for card in self.feed.posts:
            yield PostCardWidget(card, classes="post-card")


def user_row(user: views.UserBadge, detail: str = "", *extra: Widget) -> Horizontal:
    children: List[Widget] = [
        avatar_widget(user, width=6),
        ActionButton(user_label(user), "profile", user.id, classes="link"),
    ]
    if detail:
        children.append(Static(detail, classes="row-detail", markup=False))
    children.extend(extra)
    return Horizontal(*children, classes="user-row")


class SearchPane(Vertical):
    def compose(self) -> ComposeResult:
        yield Static("search | people", classes="panel-header", markup=False)
        yield Input(placeholder="Search people by name...", id="search-input")
        yield VerticalScroll(id="search-results")

    async def on_mount(self) -> None:
        await self.show_results("")
        self.query_one("#search-input", Input).focus()

    async def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "search-input":
            return
        event.stop()
        await self.show_results(event.value)

    async def show_results(self, query: str) -> None:
        controller = self.app.controller
        result = views.search(controller.state, controller.repo, query)
        container = self.query_one("#search-results", VerticalScroll)
        await container.remove_children()
        widgets: List[Widget] = []
        if result.message:
            widgets.append(Static(result.message, classes="empty-message", markup=False))
        for item in result.results:
            widgets.append(user_row(item.user, f"{views.format_count(item.follower_total)} followers"))
        if widgets:
            await container.mount_all(widgets)


class ProfilePane(VerticalScroll):
    def __init__(self, profile: views.ProfileView, **kwargs):
        super().__init__(**kwargs)
        self.profile = profile

    def compose(self) -> ComposeResult:
        p = self.profile
        yield Static(f"profile | {p.user.name}", classes="panel-header", markup=False)
        with Horizontal(classes="profile-header"):
            yield avatar_widget(p.user, width=16)
            with Vertical(classes="profile-info"):
                yield Static(user_label(p.user), classes="profile-name", markup=False)
                with Horizontal(classes="profile-stats"):
                    yield Static(f"{views.format_count(p.post_count)} posts", classes="profile-stat", markup=False)
                    yield ActionButton(
                        f"{views.format_count(p.follower_total)} followers",
                        "followers",
                        p.user.id,
                        classes="profile-stat link",
                    )
                    yield ActionButton(
                        f"{views.format_count(p.following_total)} following",
                        "following",
                        p.user.id,
                        classes="profile-stat link",
                    )
                yield Static(p.bio, classes="profile-bio", markup=False)
                if p.is_self:
                    yield ActionButton("Edit profile", "edit-profile", p.user.id, id="edit-profile-button")
                else:
                    yield ActionButton(
                        "Following" if p.is_following else "Follow",
                        "follow",
                        p.user.id,
                        variant="default" if p.is_following else "primary",
                        id="profile-follow-button",
                    )
        yield Static("→ Posts", classes="section-header", markup=False)
        if not p.grid:
            yield Static("No posts yet.", classes="empty-message", markup=False)
        else:
            yield Grid(
                *(MediaPreview(item.image_url, width=16, classes="grid-item") for item in p.grid),
                classes="profile-grid",
            )


class EditProfilePane(VerticalScroll):
    def __init__(self, form: views.EditProfileView, **kwargs):
        super().__init__(**kwargs)
        self.form = form

    def compose(self) -> ComposeResult:
        yield Static("edit profile", classes="panel-header", markup=False)
        yield Static("Name", classes="field-label", markup=False)
        yield Input(value=self.form.name, id="edit-name")
        yield Static("Bio", classes="field-label", markup=False)
        yield Input(value=self.form.bio, placeholder="Tell people about yourself", id="edit-bio")
        yield Static("Profile picture", classes="field-label", markup=False)
        yield Input(placeholder="Path to an image (leave empty to keep)", id="edit-picture")
        with Horizontal(classes="form-buttons"):
            yield ActionButton("Save", "save-profile", variant="primary", id="save-profile")
            yield ActionButton("Cancel", "nav", "profile", id="cancel-edit")


class NotificationsPane(VerticalScroll):
    def __init__(self, notifications: views.NotificationsView, **kwargs):
        super().__init__(**kwargs)
        self.notifications = notifications

    def compose(self) -> ComposeResult:
        yield Static("notifications", classes="panel-header", markup=False)
        if self.notifications.empty_message:
            yield Static(self.notifications.empty_message, classes="empty-message", markup=False)
        for item in self.notifications.items:
            yield user_row(item.actor, item.text)


# ───────── Modals ─────────


class UploadDialog(ModalScreen):
    """Modal dialog for sharing a new post."""

    def __init__(self, controller: Controller):
        super().__init__()
        self.controller = controller

    def compose(self) -> ComposeResult:
        with Container(id="dialog-container"):
            yield Static("✨ Create new post", id="dialog-title", markup=False)
            yield Input(placeholder="Path to an image or video", id="upload-path")
            yield Input(placeholder="Write a caption...", id="upload-caption")
            yield Static("", id="status-message", markup=False)
            with Horizontal(classes="dialog-buttons"):
                yield Button("📤 Share", variant="primary", id="share-button")
                yield Button("Cancel", id="cancel-button")

    def on_mount(self) -> None:
        self.query_one("#upload-path", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "cancel-button":
            self.dismiss(None)
        elif event.button.id == "share-button":
            self.share()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.share()

    def share(self) -> None:
        path = self.query_one("#upload-path", Input).value
        caption = self.query_one("#upload-caption", Input).value
        self.query_one("#share-button", Button).disabled = True
        self.show_status("Uploading...")
        self.publish(path, caption)

    def show_status(self, message: str) -> None:
        self.query_one("#status-message", Static).update(message)

    def _failed(self, error: TuigramError) -> None:
        if isinstance(error, DataInconsistency):
            self.controller.logout()
            self.app.notify(error.message, severity="error")
            self.dismiss(None)
            return
        self.show_status(f"⚠ {error.message}")
        self.query_one("#share-button", Button).disabled = False

    @work(thread=True, exclusive=True, exit_on_error=False)
    def publish(self, path: str, caption: str) -> None:
        try:
            post = self.controller.publish_post(path, caption)
        except TuigramError as e:
            self.app.call_from_thread(self._failed, e)
            return
        self.app.call_from_thread(self.dismiss, post.id)


class CommentDialog(ModalScreen):
    """Comment thread for one post, with a box to add to it."""

    def __init__(self, controller: Controller):
        super().__init__()
        self.controller = controller

    def compose(self) -> ComposeResult:
        with Container(id="dialog-container"):
            yield Static("Comments", id="dialog-title", markup=False)
            yield VerticalScroll(id="comment-list")
            yield Input(placeholder="Add a comment...", id="comment-input")
            yield Static("", id="status-message", markup=False)
            with Horizontal(classes="dialog-buttons"):
                yield Button("Post", variant="primary", id="post-comment")
                yield Button("Close", id="cancel-button")

    async def on_mount(self) -> None:
        await self.render_thread()
        self.query_one("#comment-input", Input).focus()

    async def render_thread(self) -> None:
        state = self.controller.state
        thread = views.comments(state, self.controller.repo, state.commenting_post_id)
        container = self.query_one("#comment-list", VerticalScroll)
        await container.remove_children()
        if thread is None:
            await container.mount(Static("Post not found.", classes="empty-message", markup=False))
        elif not thread.comments:
            await container.mount(Static("No comments yet.", classes="empty-message", markup=False))
        else:
            await container.mount_all(
                user_row(c.author, f"{c.text}  · {views.time_ago(c.timestamp)}") for c in thread.comments
            )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        button = event.button
        if button.id == "cancel-button":
            self.dismiss(None)
        elif button.id == "post-comment":
            await self.submit()
        elif getattr(button, "intent", None) == "profile":
            self.dismiss(("profile", button.entity_id))

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        await self.submit()

    async def submit(self) -> None:
        box = self.query_one("#comment-input", Input)
        status = self.query_one("#status-message", Static)
        try:
            self.controller.add_comment(box.value)
        except DataInconsistency as e:
            self.app.notify(e.message, severity="error")
            self.dismiss(None)
            return
        except TuigramError as e:
            status.update(f"⚠ {e.message}")
            return
        box.value = ""
        status.update("")
        await self.render_thread()


class FollowListDialog(ModalScreen):
    """Followers or following of one user."""

    def __init__(self, controller: Controller):
        super().__init__()
        self.controller = controller

    def compose(self) -> ComposeResult:
        with Container(id="dialog-container"):
            yield Static("", id="dialog-title", markup=False)
            yield VerticalScroll(id="follow-list")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Close", id="cancel-button")

    async def on_mount(self) -> None:
        await self.render_list()

    async def render_list(self) -> None:
        query = self.controller.state.follow_list
        listing = None
        if query is not None:
            listing = views.follow_list(
                self.controller.state, self.controller.repo, query.kind, query.user_id
            )
        container = self.query_one("#follow-list", VerticalScroll)
        await container.remove_children()
        if listing is None:
            self.query_one("#dialog-title", Static).update("Users")
            await container.mount(Static("User not found.", classes="empty-message", markup=False))
            return

        self.query_one("#dialog-title", Static).update(listing.title)
        rows: List[Widget] = []
        if listing.empty_message:
            rows.append(Static(listing.empty_message, classes="empty-message", markup=False))
        for entry in listing.entries:
            extra = []
            if entry.show_button:
                extra.append(
                    ActionButton(
                        "Following" if entry.is_following else "Follow",
                        "follow",
                        entry.user.id,
                        classes="follow-btn",
                    )
                )
            rows.append(user_row(entry.user, "", *extra))
        if rows:
            await container.mount_all(rows)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        button = event.button
        intent = getattr(button, "intent", None)
        if button.id == "cancel-button":
            self.dismiss(None)
        elif intent == "profile":
            self.dismiss(("profile", button.entity_id))
        elif intent == "follow":
            try:
                self.controller.toggle_follow(button.entity_id)
            except TuigramError as e:
                self.app.notify(e.message, severity="error")
                if isinstance(e, DataInconsistency):
                    self.dismiss(None)
                return
            await self.render_list()


# ───────── App ─────────


class TuigramApp(App):
    CSS_PATH = "app.tcss"
    TITLE = "tuigram"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("q", "quit", "Quit", show=False),
        Binding("1", "show_feed", "Feed", show=False),
        Binding("2", "show_search", "Search", show=False),
        Binding("3", "show_notifications", "Notifications", show=False),
        Binding("p", "show_profile", "Profile", show=False),
        Binding("n", "new_post", "New Post", show=False),
        Binding("ctrl+l", "logout", "Log out", show=False),
    ]

    def __init__(self, controller: Controller, **kwargs):
        super().__init__(**kwargs)
        self.controller = controller

    def compose(self) -> ComposeResult:
        yield Static("tuigram", id="app-header", markup=False)
        yield Container(id="screen-container")
        yield Static(AUTH_FOOTER_TEXT, id="app-footer", markup=False)

    async def on_mount(self) -> None:
        # Modals are pushed on top of the default screen; keep handles so
        # refreshes always reach the main container.
        self.screen_container = self.query_one("#screen-container", Container)
        self.header_bar = self.query_one("#app-header", Static)
        self.footer_bar = self.query_one("#app-footer", Static)
        try:
            self.controller.bootstrap()
        except TuigramError as e:
            self.notify(e.message, severity="error")
        await self.refresh_view()

    # --- rendering ---
    def build_content(self) -> List[Widget]:
        state = self.controller.state
        if state.view is View.LOGIN:
            return [LoginForm(id="login-form", classes="auth-form")]
        if state.view is View.REGISTER:
            return [RegisterForm(id="register-form", classes="auth-form")]
        return [
            Horizontal(
                Sidebar(views.navigation(state), id="sidebar"),
                self.build_pane(),
                id="app-view",
            )
        ]

    def build_pane(self) -> Widget:
        state = self.controller.state
        repo = self.controller.repo
        if state.pane is Pane.SEARCH:
            return SearchPane(id="pane", classes="pane")
        if state.pane is Pane.NOTIFICATIONS:
            return NotificationsPane(views.notifications(state, repo), id="pane", classes="pane")
        if state.pane is Pane.EDIT_PROFILE:
            form = views.edit_profile(state)
            if form is not None:
                return EditProfilePane(form, id="pane", classes="pane")
        if state.pane is Pane.PROFILE:
            profile = views.profile(state, repo)
            if profile is None:
                return Static("User not found.", id="pane", classes="pane empty-message", markup=False)
            return ProfilePane(profile, id="pane", classes="pane")
        return FeedPane(views.feed(state, repo), id="pane", classes="pane")

    async def refresh_view(self) -> None:
        """Rebuild the main container from the current view-state."""
        await self.screen_container.remove_children()
        await self.screen_container.mount_all(self.build_content())
        self.update_chrome()
        self.focus_first_input()

    def update_chrome(self) -> None:
        state = self.controller.state
        header, footer = self.header_bar, self.footer_bar
        if state.view is View.APP and state.session_user is not None:
            header.update(f"tuigram [{state.pane.value}] @{state.session_user.name}")
            footer.update(FOOTER_TEXT)
        else:
            header.update(f"tuigram [{state.view.value}]")
            footer.update(AUTH_FOOTER_TEXT)

    def focus_first_input(self) -> None:
        if self.controller.state.view is View.APP:
            return
        inputs = self.screen_container.query(Input)
        if inputs:
            inputs.first().focus()

    def input_value(self, selector: str) -> str:
        return self.screen_container.query_one(selector, Input).value

    # --- events ---
    async def on_button_pressed(self, event: Button.Pressed) -> None:
        intent = getattr(event.button, "intent", None)
        if intent is None:
            return
        event.stop()
        await self.dispatch_intent(intent, event.button.entity_id)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        input_id = event.input.id or ""
        if input_id.startswith("login-"):
            event.stop()
            await self.dispatch_intent("login")
        elif input_id.startswith("register-"):
            event.stop()
            await self.dispatch_intent("register")
        elif input_id.startswith("edit-"):
            event.stop()
            await self.dispatch_intent("save-profile")

    async def dispatch_intent(self, intent: str, entity_id: Optional[str] = None) -> None:
        handler = getattr(self, f"intent_{intent.replace('-', '_')}", None)
        if handler is None:
            logger.debug("no handler for intent %r", intent)
            return
        try:
            handler(entity_id)
        except DataInconsistency as e:
            self.notify(e.message, severity="error")
        except TuigramError as e:
            self.notify(e.message, severity="error")
            return
        await self.refresh_view()

    # --- intents ---
    def intent_login(self, _=None) -> None:
        user = self.controller.login(
            self.input_value("#login-identifier"), self.input_value("#login-password")
        )
        self.notify(f"Welcome, {user.name}!")

    def intent_register(self, _=None) -> None:
        self.controller.register(
            self.input_value("#register-name"),
            self.input_value("#register-email"),
            self.input_value("#register-password"),
            self.input_value("#register-confirm"),
        )
        self.notify("Registration successful! Please log in.")

    def intent_show_register(self, _=None) -> None:
        self.controller.show_register()

    def intent_show_login(self, _=None) -> None:
        self.controller.show_login()

    def intent_logout(self, _=None) -> None:
        self.controller.logout()

    def intent_nav(self, target: str) -> None:
        if target == Modal.UPLOAD.value:
            self.controller.open_modal(Modal.UPLOAD)
            self.push_screen(UploadDialog(self.controller), self.modal_closed)
        elif target == Pane.PROFILE.value:
            self.controller.switch_pane(Pane.PROFILE, self.controller.state.session_user_id)
        else:
            self.controller.switch_pane(Pane(target))

    def intent_profile(self, user_id: str) -> None:
        self.controller.switch_pane(Pane.PROFILE, user_id)

    def intent_edit_profile(self, _=None) -> None:
        self.controller.switch_pane(Pane.EDIT_PROFILE)

    def intent_save_profile(self, _=None) -> None:
        self.controller.save_profile(
            self.input_value("#edit-name"),
            self.input_value("#edit-bio"),
            self.input_value("#edit-picture"),
        )
        self.notify("Profile updated.")

    def intent_like(self, post_id: str) -> None:
        self.controller.toggle_like(post_id)

    def intent_comment(self, post_id: str) -> None:
        self.controller.open_modal(Modal.COMMENT, post_id=post_id)
        self.push_screen(CommentDialog(self.controller), self.modal_closed)

    def intent_follow(self, user_id: str) -> None:
        self.controller.toggle_follow(user_id)

    def intent_followers(self, user_id: str) -> None:
        self.controller.show_follow_list(FollowKind.FOLLOWERS, user_id)
        self.push_screen(FollowListDialog(self.controller), self.modal_closed)

    def intent_following(self, user_id: str) -> None:
        self.controller.show_follow_list(FollowKind.FOLLOWING, user_id)
        self.push_screen(FollowListDialog(self.controller), self.modal_closed)

    def modal_closed(self, result=None) -> None:
        """Dialogs dismiss with a new post id, a ('profile', user id) link, or None."""
        self.controller.close_modal()
        if isinstance(result, str):
            self.controller.post_shared()
            self.notify("📤 Post shared!")
        elif isinstance(result, tuple) and result[0] == "profile":
            try:
                self.controller.switch_pane(Pane.PROFILE, result[1])
            except TuigramError as e:
                self.notify(e.message, severity="error")
        self.call_later(self.refresh_view)

    # --- key bindings ---
    def _logged_in(self) -> bool:
        return self.controller.state.view is View.APP and len(self.screen_stack) == 1

    async def action_show_feed(self) -> None:
        if self._logged_in():
            await self.dispatch_intent("nav", Pane.FEED.value)

    async def action_show_search(self) -> None:
        if self._logged_in():
            await self.dispatch_intent("nav", Pane.SEARCH.value)

    async def action_show_notifications(self) -> None:
        if self._logged_in():
            await self.dispatch_intent("nav", Pane.NOTIFICATIONS.value)

    async def action_show_profile(self) -> None:
        if self._logged_in():
            await self.dispatch_intent("nav", Pane.PROFILE.value)

    async def action_new_post(self) -> None:
        if self._logged_in():
            await self.dispatch_intent("nav", Modal.UPLOAD.value)

    async def action_logout(self) -> None:
        if self._logged_in():
            await self.dispatch_intent("logout")
