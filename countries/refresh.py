import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from . import summary, utils
from .enrichment import enrich_all
from .exceptions import RefreshError, RenderFailure
from .store import write_records

logger = logging.getLogger(__name__)


class RefreshStage(str, Enum):
    FETCHING = "fetching"
    ENRICHING = "enriching"
    WRITING = "writing"
    RENDERING = "rendering"
    DONE = "done"


@dataclass
class RenderOutcome:
    ok: bool
    path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RefreshResult:
    countries_processed: int
    refreshed_at: datetime
    render: RenderOutcome
    failed: list = field(default_factory=list)
    duration_seconds: float = 0.0
    stage: RefreshStage = RefreshStage.DONE


class RefreshOrchestrator:
    """
    Runs one refresh: fetch both feeds, enrich, upsert, then render the
    summary image. Fetch and write failures raise RefreshError subclasses;
    a render failure only shows up in RefreshResult.render.
    """

    def __init__(self, store, fetcher=None, multiplier=None, renderer=None, clock=None):
        # looked up at call time so tests can patch the module functions
        self.store = store
        self.fetcher = fetcher or (lambda: utils.fetch_sources())
        self.multiplier = multiplier or (lambda: utils.make_multiplier())
        self.renderer = renderer or (lambda s: summary.generate_summary_image(s))
        self.clock = clock or (lambda: utils.get_now())
        self.stage = None

    def _enter(self, stage):
        self.stage = stage
        logger.debug("Refresh stage: %s", stage.value)

    def run(self):
        start_time = time.monotonic()
        refreshed_at = self.clock()

        try:
            self._enter(RefreshStage.FETCHING)
            countries, rates = self.fetcher()

            self._enter(RefreshStage.ENRICHING)
            records = enrich_all(countries, rates, self.multiplier)

            self._enter(RefreshStage.WRITING)
            report = write_records(self.store, records)
        except RefreshError as e:
            logger.error("Refresh failed at %s stage: %s", e.stage or self.stage.value, e)
            raise

        self._enter(RefreshStage.RENDERING)
        render = self._render()

        self._enter(RefreshStage.DONE)
        result = RefreshResult(
            countries_processed=report.written,
            refreshed_at=refreshed_at,
            render=render,
            failed=report.failed,
            duration_seconds=round(time.monotonic() - start_time, 2),
        )
        logger.info(
            "Refresh complete: %d countries processed in %.2fs (image %s)",
            result.countries_processed, result.duration_seconds,
            "ok" if render.ok else "failed",
        )
        return result

    def _render(self):
        try:
            path = self.renderer(self.store)
        except RenderFailure as e:
            logger.error("Summary image generation failed, refresh still succeeded: %s", e)
            return RenderOutcome(ok=False, error=str(e))
        except Exception as e:
            logger.exception("Summary renderer crashed, refresh still succeeded")
            return RenderOutcome(ok=False, error=f"{type(e).__name__}: {e}")
        return RenderOutcome(ok=True, path=path)
