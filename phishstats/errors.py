"""Error taxonomy shared by the source clients, pipeline, and store."""


class PhishStatsError(Exception):
    """Base class for all phishstats errors."""


class SourceUnavailable(PhishStatsError):
    """Network or HTTP failure talking to phish.net or phish.in."""

    def __init__(self, source, message, status=None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status = status


class RateLimited(SourceUnavailable):
    """Upstream kept answering 429 after all retries."""

    def __init__(self, source, message, retry_after=None):
        super().__init__(source, message, status=429)
        self.retry_after = retry_after


class DataInconsistency(PhishStatsError):
    """Sources disagree on a show (date/venue mismatch, unusable counts)."""


class NotFound(PhishStatsError):
    """No matching show, song, or performance."""


class StoreCorruption(PhishStatsError):
    """A persisted record exists but can no longer be parsed."""
