import pytest

from tuigram import views
from tuigram.backend import LocalBackend
from tuigram.data_models import User
from tuigram.repository import Repository
from tuigram.state import FollowKind, Pane, ViewState
from tuigram.store import MemoryStore

from conftest import register_and_login


def user(uid, name, **extra):
    record = {"id": uid, "name": name, "email": f"{name}@gmail.com", "password": "pw"}
    record.update(extra)
    return record


def post(pid, uid, ts, **extra):
    record = {"id": pid, "userId": uid, "imageUrl": f"img-{pid}", "caption": pid, "timestamp": ts}
    record.update(extra)
    return record


@pytest.fixture
def repo():
    store = MemoryStore(
        {
            "users": [
                user("ana", "Ana", following=["ben"]),
                user("ben", "Ben", followers=["ana"]),
                user("cy", "Cy", isVerified=True, baseFollowers=500),
            ],
            "posts": [
                post("p1", "ana", 1000, likes=["ben"]),
                post("p2", "ben", 3000, comments=[{"userId": "ana", "text": "hi", "timestamp": 3500}]),
                post("p3", "ghost", 5000),
                post("p4", "ana", 2000),
            ],
        }
    )
    return Repository(LocalBackend(store))


def state_for(repo, uid, **kwargs):
    return ViewState(session_user=repo.user_by_id(uid), **kwargs)


def test_navigation_marks_active_pane():
    items = views.navigation(ViewState(pane=Pane.SEARCH))
    assert [i.target for i in items] == ["feed", "search", "upload", "notifications", "profile"]
    assert [i.target for i in items if i.active] == ["search"]
    assert [i.target for i in items if i.is_action] == ["upload"]


def test_feed_is_newest_first_and_skips_orphans(repo):
    feed = views.feed(state_for(repo, "ben"), repo)
    assert [c.id for c in feed.posts] == ["p2", "p4", "p1"]
    assert feed.empty_message is None
    p1 = feed.posts[-1]
    assert p1.liked is True and p1.like_count == 1
    assert feed.posts[0].comment_count == 1


def test_feed_renders_around_malformed_records():
    store = MemoryStore(
        {
            "users": ["garbage", user("ana", "Ana")],
            "posts": [post("p1", "ana", 1000, comments=[None]), post("p2", "ana", 2000), "junk"],
        }
    )
    repo = Repository(LocalBackend(store))
    feed = views.feed(state_for(repo, "ana"), repo)
    assert [c.id for c in feed.posts] == ["p2"]


def test_feed_empty_message_only_without_posts():
    repo = Repository(LocalBackend(MemoryStore()))
    feed = views.feed(ViewState(), repo)
    assert feed.posts == ()
    assert feed.empty_message.startswith("No posts yet.")


def test_profile_for_self_and_others(repo):
    own = views.profile(state_for(repo, "ana"), repo, "ana")
    assert own.is_self and not own.is_following
    assert own.post_count == 2
    assert [g.post_id for g in own.grid] == ["p4", "p1"]
    assert own.bio == "No bio yet."

    other = views.profile(state_for(repo, "ana"), repo, "ben")
    assert not other.is_self and other.is_following
    assert other.follower_total == 1


def test_profile_uses_viewing_id_then_session(repo):
    state = state_for(repo, "ana", pane=Pane.PROFILE, viewing_profile_id="cy")
    assert views.profile(state, repo).user.id == "cy"
    state.viewing_profile_id = None
    assert views.profile(state, repo).user.id == "ana"
    assert views.profile(state, repo, "nobody") is None


def test_verified_badge_and_base_counts(repo):
    cy = views.profile(state_for(repo, "ana"), repo, "cy")
    assert cy.user.is_verified
    assert cy.follower_total == 500
    assert cy.user.avatar == views.PLACEHOLDER_AVATAR


def test_edit_profile_prefills_session_user(repo):
    form = views.edit_profile(state_for(repo, "ben"))
    assert (form.user_id, form.name, form.bio) == ("ben", "Ben", "")
    assert views.edit_profile(ViewState()) is None


def test_comments_oldest_first_and_skip_unknown_authors():
    store = MemoryStore(
        {
            "users": [user("ana", "Ana")],
            "posts": [
                post(
                    "p1",
                    "ana",
                    1,
                    comments=[
                        {"userId": "ana", "text": "second", "timestamp": 20},
                        {"userId": "gone", "text": "lost", "timestamp": 15},
                        {"userId": "ana", "text": "first", "timestamp": 10},
                    ],
                )
            ],
        }
    )
    repo = Repository(LocalBackend(store))
    thread = views.comments(ViewState(), repo, "p1")
    assert [c.text for c in thread.comments] == ["first", "second"]
    assert views.comments(ViewState(), repo, "nope") is None


@pytest.mark.parametrize(
    "query, expected, message",
    [
        ("", [], "Type a name to search."),
        ("   ", [], "Type a name to search."),
        ("b", ["ben"], None),
        ("  C ", ["cy"], None),
        ("an", [], 'No results for "an"'),
        ("zzz", [], 'No results for "zzz"'),
    ],
)
def test_search(repo, query, expected, message):
    result = views.search(state_for(repo, "ana"), repo, query)
    assert [r.user.id for r in result.results] == expected
    assert result.message == message


def test_follow_list_entries(repo):
    listing = views.follow_list(state_for(repo, "ana"), repo, FollowKind.FOLLOWERS, "ben")
    assert listing.title == "Followers"
    assert [(e.user.id, e.show_button) for e in listing.entries] == [("ana", False)]

    listing = views.follow_list(state_for(repo, "ben"), repo, FollowKind.FOLLOWING, "ana")
    assert listing.title == "Following"
    assert [(e.user.id, e.show_button, e.is_following) for e in listing.entries] == [
        ("ben", False, False)
    ]


def test_follow_list_empty_messages(repo):
    state = state_for(repo, "ana")
    assert views.follow_list(state, repo, FollowKind.FOLLOWING, "cy").empty_message == "No users to show."
    # Base followers stand in for people we cannot list.
    assert views.follow_list(state, repo, FollowKind.FOLLOWERS, "cy").empty_message is None
    assert views.follow_list(state, repo, FollowKind.FOLLOWERS, "nobody") is None


def test_notifications(repo):
    ana_view = views.notifications(state_for(repo, "ana"), repo)
    assert [(n.kind, n.actor.id, n.post_id) for n in ana_view.items] == [("like", "ben", "p1")]

    ben_view = views.notifications(state_for(repo, "ben"), repo)
    assert [n.text for n in ben_view.items] == ['commented: "hi..."']

    cy_view = views.notifications(state_for(repo, "cy"), repo)
    assert cy_view.items == () and cy_view.empty_message == "No new notifications."


def test_notification_excerpt_is_twenty_characters():
    store = MemoryStore(
        {
            "users": [user("ana", "Ana"), user("ben", "Ben")],
            "posts": [
                post(
                    "p1",
                    "ana",
                    1,
                    likes=["ana"],
                    comments=[
                        {"userId": "ben", "text": "abcdefghijklmnopqrstuvwxyz", "timestamp": 2},
                        {"userId": "ana", "text": "my own", "timestamp": 3},
                    ],
                )
            ],
        }
    )
    repo = Repository(LocalBackend(store))
    items = views.notifications(ViewState(session_user=User.from_record(user("ana", "Ana"))), repo).items
    assert [n.text for n in items] == ['commented: "abcdefghijklmnopqrst..."']


@pytest.mark.parametrize(
    "delta_ms, expected",
    [(0, "just now"), (59_000, "just now"), (60_000, "1m ago"), (3_600_000, "1h ago"), (86_400_000 * 3, "3d ago")],
)
def test_time_ago(delta_ms, expected):
    assert views.time_ago(1_000_000_000 - delta_ms, now_ms=1_000_000_000) == expected


def test_format_count():
    assert views.format_count(10373020) == "10,373,020"


def test_two_user_scenario(controller, png_file):
    """Ana posts, Ben follows, likes and comments; Ana sees it all."""
    controller.register("ben", "ben@gmail.com", "pw", "pw")
    ana = register_and_login(controller, "ana")
    shared = controller.create_post(str(png_file), "first post")
    controller.logout()

    ben = controller.login("ben@gmail.com", "pw")
    controller.toggle_follow(ana.id)
    controller.toggle_like(shared.id)
    controller.open_modal("comment", post_id=shared.id)
    controller.add_comment("Lovely photo, where was this taken?")
    controller.close_modal()

    feed = views.feed(controller.state, controller.repo)
    assert feed.posts[0].liked and feed.posts[0].comment_count == 1
    controller.logout()

    controller.login("ana@gmail.com", "secret")
    profile = views.profile(controller.state, controller.repo, ana.id)
    assert profile.follower_total == 1 and profile.post_count == 1
    items = views.notifications(controller.state, controller.repo).items
    assert [(n.kind, n.actor.id) for n in items] == [("like", ben.id), ("comment", ben.id)]
    assert items[1].text == 'commented: "Lovely photo, where ..."'
