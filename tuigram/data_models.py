"""
Data models for tuigram.
These records mirror what is persisted under the ``users`` and ``posts`` keys.
Stored records use camelCase keys; missing optional fields get defaults so
older snapshots keep loading.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional


def _unique(ids: Optional[Iterable[Any]], exclude: Optional[str] = None) -> List[str]:
    """Deduplicate ids keeping first occurrence."""
    seen = []
    for raw in ids or []:
        if raw is None:
            continue
        value = str(raw)
        if value == exclude or value in seen:
            continue
        seen.append(value)
    return seen


def _require_mapping(record: Any, kind: str) -> None:
    if not isinstance(record, Mapping):
        raise ValueError(f"{kind} record is not an object: {record!r:.80}")


def _require_id(record: Dict[str, Any], kind: str) -> str:
    _require_mapping(record, kind)
    value = record.get("id")
    if value in (None, ""):
        raise ValueError(f"{kind} record without id: {record!r}")
    return str(value)


@dataclass
class User:
    """Represents an account."""
    id: str
    name: str
    email: str
    password: str
    profile_pic: Optional[str] = None
    bio: str = ""
    followers: List[str] = field(default_factory=list)
    following: List[str] = field(default_factory=list)
    is_verified: bool = False
    base_followers: int = 0
    base_following: int = 0

    @property
    def follower_total(self) -> int:
        return self.base_followers + len(self.followers)

    @property
    def following_total(self) -> int:
        return self.base_following + len(self.following)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        user_id = _require_id(record, "user")
        return cls(
            id=user_id,
            name=str(record.get("name") or ""),
            email=str(record.get("email") or ""),
            password=str(record.get("password") or ""),
            profile_pic=record.get("profilePic") or None,
            bio=str(record.get("bio") or ""),
            followers=_unique(record.get("followers"), exclude=user_id),
            following=_unique(record.get("following"), exclude=user_id),
            is_verified=bool(record.get("isVerified") or False),
            base_followers=int(record.get("baseFollowers") or 0),
            base_following=int(record.get("baseFollowing") or 0),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "password": self.password,
            "profilePic": self.profile_pic,
            "bio": self.bio,
            "followers": list(self.followers),
            "following": list(self.following),
            "isVerified": self.is_verified,
            "baseFollowers": self.base_followers,
            "baseFollowing": self.base_following,
        }


@dataclass
class Comment:
    """A comment on a post. Comments are append-only."""
    user_id: str
    text: str
    timestamp: int  # epoch milliseconds

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Comment":
        _require_mapping(record, "comment")
        return cls(
            user_id=str(record.get("userId") or ""),
            text=str(record.get("text") or ""),
            timestamp=int(record.get("timestamp") or 0),
        )

    def to_record(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "text": self.text, "timestamp": self.timestamp}


@dataclass
class Post:
    """Represents a photo or video post."""
    id: str
    user_id: str
    image_url: str
    caption: str
    timestamp: int  # epoch milliseconds, the only sort key
    likes: List[str] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Post":
        return cls(
            id=_require_id(record, "post"),
            user_id=str(record.get("userId") or ""),
            image_url=str(record.get("imageUrl") or ""),
            caption=str(record.get("caption") or ""),
            timestamp=int(record.get("timestamp") or 0),
            likes=_unique(record.get("likes")),
            comments=[Comment.from_record(c) for c in record.get("comments") or []],
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "imageUrl": self.image_url,
            "caption": self.caption,
            "timestamp": self.timestamp,
            "likes": list(self.likes),
            "comments": [c.to_record() for c in self.comments],
        }
