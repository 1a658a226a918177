"""Tests for manifest loading and validation."""

import json
from pathlib import Path

import pytest

from cliptrim.manifest import (
    BulkTarget,
    Manifest,
    TwoPhaseTarget,
    load_manifest,
    parse_target,
)
from cliptrim.models import SiteMode
from cliptrim.retry import RetryPolicy


class TestManifest:
    def test_defaults(self):
        m = Manifest()
        assert m.version == "1"
        assert m.site_mode is SiteMode.NORMAL
        assert m.target is None
        assert m.retry == RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=5.0)
        assert m.reset_delay < 1


class TestParseTarget:
    def test_bulk(self):
        t = parse_target({"endpoint": "https://example.com/upload", "headers": {"X-Key": 1}})
        assert t == BulkTarget(endpoint="https://example.com/upload", headers={"X-Key": "1"})

    def test_two_phase(self):
        t = parse_target({"media_endpoint": "m", "record_endpoint": "r", "parent_id": "7"})
        assert isinstance(t, TwoPhaseTarget)
        assert t.parent_id == 7
        assert t.media_meta_key == "_stlms_lesson_media"

    def test_custom_meta_keys(self):
        t = parse_target({
            "media_endpoint": "m", "record_endpoint": "r",
            "settings_meta_key": "_course_item_settings",
        })
        assert t.settings_meta_key == "_course_item_settings"
        assert t.parent_id is None

    def test_ambiguous(self):
        with pytest.raises(ValueError, match="must contain"):
            parse_target({"media_endpoint": "m"})


class TestLoadManifest:
    def test_load_sample(self, sample_manifest_path: Path):
        m = load_manifest(sample_manifest_path)
        assert m.site_mode is SiteMode.LESSON
        assert isinstance(m.target, TwoPhaseTarget)
        assert m.target.parent_id == 42
        assert m.target.headers == {"X-WP-Nonce": "abc123"}
        assert m.reset_delay == 0.8

    def test_load_invalid_json(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("not json")
        with pytest.raises(json.JSONDecodeError):
            load_manifest(bad)

    def test_not_an_object(self, tmp_path: Path):
        bad = tmp_path / "list.json"
        bad.write_text("[]")
        with pytest.raises(ValueError, match="JSON object"):
            load_manifest(bad)

    def test_reset_delay_must_stay_short(self, tmp_path: Path):
        slow = tmp_path / "slow.json"
        slow.write_text('{"reset_delay": 2}')
        with pytest.raises(ValueError, match="under one second"):
            load_manifest(slow)

    def test_unknown_site_mode(self, tmp_path: Path):
        bad = tmp_path / "mode.json"
        bad.write_text('{"site_mode": "kiosk"}')
        with pytest.raises(ValueError):
            load_manifest(bad)
