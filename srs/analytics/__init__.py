"""
Analytics package exports.
"""

from srs.analytics.service import build_review_report
from srs.analytics.types import ReviewReport

__all__ = [
    "build_review_report",
    "ReviewReport",
]
