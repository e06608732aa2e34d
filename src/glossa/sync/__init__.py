"""Client side sync - remote client, closure fetch, local cache, download."""

from .remote import GlossApiClient
from .closure import ClosureFetcher, ClosureResult
from .local_store import (
    LocalChallengeOfExpression,
    LocalChallengeOfUnderstandingText,
    LocalGloss,
    LocalSituation,
    LocalStore,
)
from .download import BulkDownloadReport, DownloadReport, SituationDownloader

__all__ = [
    "GlossApiClient",
    "ClosureFetcher",
    "ClosureResult",
    "LocalStore",
    "LocalGloss",
    "LocalSituation",
    "LocalChallengeOfExpression",
    "LocalChallengeOfUnderstandingText",
    "SituationDownloader",
    "DownloadReport",
    "BulkDownloadReport",
]
