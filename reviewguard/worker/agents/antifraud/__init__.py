"""
Anti-fraud checks for creator and review submissions.
"""
from reviewguard.worker.agents.antifraud.creator_check import evaluate_creator_submission
from reviewguard.worker.agents.antifraud.review_check import evaluate_review_submission
from reviewguard.worker.agents.antifraud.store import AntifraudStore, SqlAntifraudStore
from reviewguard.worker.agents.antifraud.verdict import (
    CreatorSubmission, FraudVerdict, PlatformLinkInput, ReviewSubmission, SimilarityMatch, UserRiskProfile,
    manual_review_fallback,
)

__all__ = [
    "AntifraudStore",
    "CreatorSubmission",
    "FraudVerdict",
    "PlatformLinkInput",
    "ReviewSubmission",
    "SimilarityMatch",
    "SqlAntifraudStore",
    "UserRiskProfile",
    "evaluate_creator_submission",
    "evaluate_review_submission",
    "manual_review_fallback",
]
