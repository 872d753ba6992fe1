# Vault - Tier Classifier
#
# Maps a record's content to a privacy tier:
#   sensitive keyword in title or notes → secret
#   private category                    → private
#   anything else                       → public
#
# Pure function of title/notes/category. Callers re-classify on every edit.

from typing import Iterable, Optional

from ..core.config import DEFAULT_PRIVATE_CATEGORIES, DEFAULT_SENSITIVE_KEYWORDS
from .models import PrivacyTier


class TierClassifier:
    """Keyword and category based tier policy."""

    def __init__(
        self,
        sensitive_keywords: Optional[Iterable[str]] = None,
        private_categories: Optional[Iterable[str]] = None,
    ):
        keywords = DEFAULT_SENSITIVE_KEYWORDS if sensitive_keywords is None else sensitive_keywords
        categories = DEFAULT_PRIVATE_CATEGORIES if private_categories is None else private_categories
        self.sensitive_keywords = tuple(k.lower() for k in keywords if k)
        self.private_categories = frozenset(categories)

    @classmethod
    def from_config(cls, config) -> "TierClassifier":
        return cls(config.sensitive_keywords, config.private_categories)

    def classify(self, record) -> PrivacyTier:
        """Return the tier for any object with title/notes/category attributes."""
        title = (getattr(record, "title", None) or "").lower()
        notes = (getattr(record, "notes", None) or "").lower()

        if any(k in title or k in notes for k in self.sensitive_keywords):
            return PrivacyTier.SECRET

        if getattr(record, "category", None) in self.private_categories:
            return PrivacyTier.PRIVATE

        return PrivacyTier.PUBLIC


_default_classifier = TierClassifier()


def classify(record) -> PrivacyTier:
    """Classify with the default keyword and category sets."""
    return _default_classifier.classify(record)
