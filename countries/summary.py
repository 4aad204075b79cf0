import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from PIL import Image, ImageDraw, ImageFont

from . import utils
from .exceptions import RenderFailure

logger = logging.getLogger(__name__)

IMAGE_SIZE = (600, 400)
TOP_N = 5
BACKGROUND = "#1D2B53"
FOREGROUND = "#FFFFFF"
MUTED = "#C2C3C7"
FONT_NAME = "DejaVuSans.ttf"


@dataclass
class SummaryEntry:
    name: str
    estimated_gdp: Optional[float]


@dataclass
class SummarySnapshot:
    total: int
    generated_at: datetime
    top: List[SummaryEntry] = field(default_factory=list)

    @property
    def timestamp_label(self):
        return self.generated_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    def ranked_lines(self):
        lines = []
        for rank, entry in enumerate(self.top, start=1):
            gdp = "N/A" if entry.estimated_gdp is None else f"{entry.estimated_gdp:.0f}"
            lines.append(f"{rank}. {entry.name} - ${gdp}")
        return lines


def collect_summary(store, clock=utils.get_now, limit=TOP_N):
    """Read total count and the top rows by estimated GDP (nulls last)."""
    top = store.find_top("estimated_gdp", desc=True, limit=limit)
    return SummarySnapshot(
        total=store.count(),
        generated_at=clock(),
        top=[SummaryEntry(c.name, c.estimated_gdp) for c in top],
    )


def _font(size):
    try:
        return ImageFont.truetype(FONT_NAME, size)
    except OSError:
        return ImageFont.load_default()


def draw_summary(snapshot):
    width = IMAGE_SIZE[0]
    img = Image.new("RGB", IMAGE_SIZE, color=BACKGROUND)
    draw = ImageDraw.Draw(img)

    title_font = _font(30)
    body_font = _font(20)
    list_font = _font(18)

    title = "Country GDP Summary"
    title_x = (width - draw.textlength(title, font=title_font)) / 2
    draw.text((title_x, 30), title, fill=FOREGROUND, font=title_font)
    draw.text((30, 90), f"Total Countries: {snapshot.total}", fill=FOREGROUND, font=body_font)
    draw.text((30, 120), f"Last Refresh: {snapshot.timestamp_label}", fill=FOREGROUND, font=body_font)
    draw.text((30, 180), f"Top {TOP_N} Countries by Estimated GDP:", fill=FOREGROUND, font=body_font)

    y = 220
    lines = snapshot.ranked_lines()
    if not lines:
        draw.text((50, y), "No countries cached yet.", fill=MUTED, font=list_font)
    for line in lines:
        draw.text((50, y), line, fill=FOREGROUND, font=list_font)
        y += 30

    return img


def save_atomic(img, path):
    """Write to a temp file beside `path`, then swap it in with os.replace."""
    directory = os.path.dirname(path)
    fd, tmp_path = tempfile.mkstemp(prefix=".summary-", suffix=".png", dir=directory)
    try:
        with os.fdopen(fd, "wb") as fh:
            img.save(fh, "PNG")
        # mkstemp creates 0600; the image is served to other readers
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return path


def generate_summary_image(store, clock=utils.get_now):
    """
    Render the cached-store summary to utils.get_summary_image_path().
    Any failure is raised as RenderFailure.
    """
    try:
        snapshot = collect_summary(store, clock)
        path = save_atomic(draw_summary(snapshot), utils.get_summary_image_path())
    except Exception as e:
        raise RenderFailure(f"{type(e).__name__}: {e}") from e

    logger.info("Summary image saved to %s (%d countries)", path, snapshot.total)
    return path
