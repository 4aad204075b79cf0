class RefreshError(Exception):
    """Base class for failures that abort a refresh."""

    stage = None


class SourceUnavailable(RefreshError):
    """One of the external feeds could not be fetched or parsed."""

    stage = "fetching"

    SOURCE_LABELS = {
        "countries": "Countries API",
        "exchange_rates": "Exchange rates API",
    }

    def __init__(self, source_id, reason=""):
        self.source_id = source_id
        self.reason = reason
        super().__init__(f"{source_id}: {reason}" if reason else source_id)

    @property
    def details(self):
        label = self.SOURCE_LABELS.get(self.source_id, self.source_id)
        return f"Could not fetch data from {label}"


class StoreUnavailable(RefreshError):
    """The database went away while records were being written."""

    stage = "writing"


class RenderFailure(Exception):
    """The summary image could not be produced."""
