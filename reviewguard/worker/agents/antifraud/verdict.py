from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass
class PlatformLinkInput:
    platform: str
    username: str
    url: str


@dataclass
class CreatorSubmission:
    creator_name: str
    platform_links: list[PlatformLinkInput]
    user_id: str
    creator_id: Optional[str] = None  # set when the creator row already exists

    @classmethod
    def from_dict(cls, data: dict) -> "CreatorSubmission":
        links = [
            link if isinstance(link, PlatformLinkInput) else PlatformLinkInput(
                platform=(link or {}).get("platform") or "",
                username=(link or {}).get("username") or "",
                url=(link or {}).get("url") or "",
            )
            for link in (data.get("platform_links") or [])
        ]
        return cls(
            creator_name=data.get("creator_name") or "",
            platform_links=links,
            user_id=data.get("user_id") or "",
            creator_id=data.get("creator_id"),
        )


@dataclass
class ReviewSubmission:
    id: str
    user_id: str
    creator_id: str
    title: str
    content: str
    rating: int
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)
    platform: Optional[str] = None
    status: str = "pending"
    created_at: Optional[datetime] = None


@dataclass
class UserRiskProfile:
    user_id: str
    risk_score: int = 0
    is_banned: bool = False
    pending_balance: Decimal = Decimal("0")
    available_balance: Decimal = Decimal("0")

    @classmethod
    def missing(cls, user_id: str) -> "UserRiskProfile":
        return cls(user_id=user_id)


@dataclass
class SimilarityMatch:
    candidate_id: str
    candidate_name: str
    candidate_slug: str
    similarity_score: float


@dataclass
class FraudVerdict:
    risk_score: int = 0
    flags: list[str] = field(default_factory=list)
    passed: bool = True
    auto_approve: bool = False
    should_block: bool = False
    needs_manual_review: bool = False

    # creator checks
    similar_creators: list[SimilarityMatch] = field(default_factory=list)
    duplicate_links: list[str] = field(default_factory=list)

    # review checks
    auto_reject: bool = False
    status: Optional[str] = None

    def add(self, points: int, flag: str) -> None:
        """Add points and record the flag once; the score keeps every award."""
        self.risk_score += points
        if flag not in self.flags:
            self.flags.append(flag)

    def to_dict(self) -> dict:
        return asdict(self)


def manual_review_fallback(reason: str) -> FraudVerdict:
    """What a caller gets when an evaluation could not finish: hold, never approve."""
    verdict = FraudVerdict(passed=False, needs_manual_review=True)
    verdict.flags.append(reason)
    return verdict
