"""
Content format catalog.

Admin-curated list of content types a gym is asked to produce. Read-only
from the gym side.
"""
from typing import List
import logging

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import ContentFormat

logger = logging.getLogger(__name__)

PHOTO_DIMENSIONS = "1080x1080"
VERTICAL_DIMENSIONS = "1080x1920"

DEFAULT_FORMATS = [
    {
        "format_key": "static-photo",
        "title": "Static Photo",
        "description": "Single high-quality photo posts for the feed",
        "format_type": "photo",
        "dimensions": PHOTO_DIMENSIONS,
        "setup_planning": {
            "steps": [
                "Find good natural lighting near a window",
                "Clear the background of any distractions",
                "Set up the phone at eye level on a tripod",
            ],
        },
        "production_tips": {
            "tips": [
                "Take multiple shots from different angles",
                "Use the rule of thirds for better composition",
                "Keep brand colors consistent",
            ],
        },
        "examples": {"ideas": ["Exercise demonstration with form cues", "Coach spotlight portrait"]},
    },
    {
        "format_key": "carousel-images",
        "title": "Carousel Images",
        "description": "Multi-image posts that tell a step by step story",
        "format_type": "carousel",
        "dimensions": PHOTO_DIMENSIONS,
        "setup_planning": {"steps": ["Plan the sequence before shooting", "Keep framing identical across frames"]},
        "production_tips": {"tips": ["Open with the strongest image", "End on a call to action"]},
        "examples": {"ideas": ["Skill progression in four steps", "Before and after comparison"]},
    },
    {
        "format_key": "video-reel",
        "title": "Video Reel",
        "description": "Short vertical videos for maximum engagement",
        "format_type": "video",
        "dimensions": VERTICAL_DIMENSIONS,
        "duration": "15-60s",
        "setup_planning": {
            "steps": [
                "Plan a 15-30 second story arc",
                "Set up good lighting and audio recording",
                "Practice movements and transitions",
            ],
        },
        "production_tips": {
            "tips": [
                "Start with a strong hook in the first 3 seconds",
                "Use quick cuts to keep the energy up",
                "End with a clear call to action",
            ],
        },
        "examples": {"ideas": ["Quick workout routine with progression", "Behind the scenes gym preparation"]},
    },
    {
        "format_key": "story",
        "title": "Story",
        "description": "Quick vertical clips for stories",
        "format_type": "story",
        "dimensions": VERTICAL_DIMENSIONS,
        "duration": "1-15s",
        "setup_planning": {"steps": ["Shoot vertically", "Leave room at the top and bottom for stickers"]},
        "production_tips": {"tips": ["One idea per clip", "Add a poll or question sticker"]},
        "examples": {"ideas": ["Class countdown", "Member shout-out"]},
    },
    {
        "format_key": "animated-image",
        "title": "Animated Image",
        "description": "Looping animated graphics and GIFs",
        "format_type": "animated",
        "dimensions": PHOTO_DIMENSIONS,
        "setup_planning": {"steps": ["Keep the loop short and seamless"]},
        "production_tips": {"tips": ["Avoid small text", "Use brand colors"]},
        "examples": {"ideas": ["Animated schedule", "Looping skill highlight"]},
    },
]


def list_formats(db: Session, active_only: bool = True) -> List[ContentFormat]:
    q = db.query(ContentFormat)
    if active_only:
        q = q.filter(ContentFormat.is_active.is_(True))
    return q.order_by(ContentFormat.title, ContentFormat.format_key).all()


def get_format(db: Session, format_key: str, active_only: bool = True) -> ContentFormat:
    q = db.query(ContentFormat).filter(ContentFormat.format_key == format_key)
    if active_only:
        q = q.filter(ContentFormat.is_active.is_(True))
    fmt = q.first()
    if fmt is None:
        raise NotFoundError("Content format", format_key)
    return fmt


def seed_default_formats(db: Session, total_required: int = 12) -> List[ContentFormat]:
    """
    Install the default catalog. Idempotent: existing format keys are left
    untouched, including any admin edits.
    """
    existing = {key for (key,) in db.query(ContentFormat.format_key).all()}
    created = []
    for entry in DEFAULT_FORMATS:
        if entry["format_key"] in existing:
            continue
        fmt = ContentFormat(total_required=total_required, **entry)
        db.add(fmt)
        created.append(fmt)
    if created:
        db.commit()
        logger.info(f"Seeded {len(created)} content formats: {[f.format_key for f in created]}")
    return list_formats(db)
