"""Deployment manifests and canary/stable promotion."""

from canaryforge.manifests.promoter import (
    ManifestPromoter,
    PromotionPolicy,
    PromotionResult,
    UnconditionalPromotion,
)
from canaryforge.manifests.store import ManifestStore

__all__ = [
    "ManifestPromoter",
    "ManifestStore",
    "PromotionPolicy",
    "PromotionResult",
    "UnconditionalPromotion",
]
