import pytest

from tuigram.data_models import Comment, Post, User


def test_user_from_record_fills_defaults():
    user = User.from_record({"id": "u1", "name": "ana", "email": "ana@gmail.com"})
    assert user.bio == ""
    assert user.profile_pic is None
    assert user.followers == []
    assert user.is_verified is False
    assert user.follower_total == 0


def test_user_relations_are_deduplicated_and_exclude_self():
    user = User.from_record(
        {"id": "u1", "name": "ana", "followers": ["u2", "u2", "u1", "u3"], "following": ["u1"]}
    )
    assert user.followers == ["u2", "u3"]
    assert user.following == []


def test_user_totals_include_base_counts():
    user = User(
        id="u1", name="ana", email="", password="",
        followers=["u2"], following=["u3", "u4"], base_followers=100, base_following=5,
    )
    assert user.follower_total == 101
    assert user.following_total == 7


def test_user_record_uses_camel_case_keys():
    record = User(id="u1", name="ana", email="e", password="p", profile_pic="x").to_record()
    assert record["profilePic"] == "x"
    assert record["isVerified"] is False
    assert "baseFollowers" in record and "baseFollowing" in record


def test_post_from_record():
    post = Post.from_record(
        {
            "id": "p1",
            "userId": "u1",
            "imageUrl": "data:image/png;base64,AA==",
            "caption": "hi",
            "timestamp": 1000,
            "likes": ["u2", "u2"],
            "comments": [{"userId": "u2", "text": "nice", "timestamp": 2000}],
        }
    )
    assert post.likes == ["u2"]
    assert post.comments == [Comment(user_id="u2", text="nice", timestamp=2000)]
    assert post.to_record()["comments"] == [{"userId": "u2", "text": "nice", "timestamp": 2000}]


@pytest.mark.parametrize("record", [{}, {"id": ""}, {"id": None}])
def test_records_without_id_are_rejected(record):
    with pytest.raises(ValueError):
        User.from_record(record)
    with pytest.raises(ValueError):
        Post.from_record(record)
