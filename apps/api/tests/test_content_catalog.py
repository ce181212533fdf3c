"""
Tests for the content format catalog.
"""
import pytest

from core.exceptions import NotFoundError
from models import ContentFormat
from services.content_catalog import DEFAULT_FORMATS, get_format, list_formats, seed_default_formats


class TestContentCatalog:
    def test_seed_installs_defaults(self, db_session):
        formats = seed_default_formats(db_session)
        assert {f.format_key for f in formats} == {entry["format_key"] for entry in DEFAULT_FORMATS}
        assert all(f.total_required == 12 for f in formats)

    def test_seed_is_idempotent_and_keeps_edits(self, db_session):
        seed_default_formats(db_session)
        reel = get_format(db_session, "video-reel")
        reel.total_required = 20
        db_session.commit()

        seed_default_formats(db_session)
        assert db_session.query(ContentFormat).count() == len(DEFAULT_FORMATS)
        assert get_format(db_session, "video-reel").total_required == 20

    def test_inactive_formats_hidden(self, db_session):
        seed_default_formats(db_session)
        story = get_format(db_session, "story")
        story.is_active = False
        db_session.commit()

        assert "story" not in {f.format_key for f in list_formats(db_session)}
        assert "story" in {f.format_key for f in list_formats(db_session, active_only=False)}
        with pytest.raises(NotFoundError):
            get_format(db_session, "story")
        assert get_format(db_session, "story", active_only=False).format_key == "story"

    def test_listing_ordered_by_title(self, db_session):
        titles = [f.title for f in seed_default_formats(db_session)]
        assert titles == sorted(titles)
