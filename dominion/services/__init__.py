from .metadata_service import MetadataService, retry_with_backoff, normalize_image_url
from .scanner_service import AccountScanner
from .transaction_builder import TransactionBuilder
from dominion.services.submission_service import SubmissionPipeline
from dominion.services.leaderboard_service import LeaderboardService
from .cleanup_service import CleanupService
from .profile_service import ProfileService

__all__ = [
    "MetadataService",
    "AccountScanner",
    "TransactionBuilder",
    "SubmissionPipeline",
    "LeaderboardService",
    "CleanupService",
    "ProfileService",
    "retry_with_backoff",
    "normalize_image_url",
]
