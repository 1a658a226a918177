"""JSON manifest schema: the contract between CLI/API and the pipeline."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from cliptrim.models import SiteMode
from cliptrim.retry import RetryPolicy


@dataclass(frozen=True)
class BulkTarget:
    """A single endpoint that receives every artifact in one multipart POST."""

    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TwoPhaseTarget:
    """Media-creation endpoint plus record-creation endpoint, called per artifact."""

    media_endpoint: str
    record_endpoint: str
    parent_id: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    media_meta_key: str = "_stlms_lesson_media"
    settings_meta_key: str = "_stlms_lesson_settings"
    parent_meta_key: str = "_stlms_lesson_course"


UploadTarget = BulkTarget | TwoPhaseTarget


@dataclass
class Manifest:
    """Top-level pipeline configuration."""

    version: str = "1"
    site_mode: SiteMode = SiteMode.NORMAL
    target: UploadTarget | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    reset_delay: float = 0.8
    request_timeout: float = 600.0


def parse_target(data: dict) -> UploadTarget:
    """Build an upload target from its JSON form; the keys decide the strategy."""
    headers = {str(k): str(v) for k, v in (data.get("headers") or {}).items()}
    if "endpoint" in data:
        return BulkTarget(endpoint=data["endpoint"], headers=headers)
    if "media_endpoint" in data and "record_endpoint" in data:
        parent = data.get("parent_id")
        extra = {
            k: data[k]
            for k in ("media_meta_key", "settings_meta_key", "parent_meta_key")
            if k in data
        }
        return TwoPhaseTarget(
            media_endpoint=data["media_endpoint"],
            record_endpoint=data["record_endpoint"],
            parent_id=int(parent) if parent not in (None, "") else None,
            headers=headers,
            **extra,
        )
    raise ValueError(
        "Upload target must contain 'endpoint' or both 'media_endpoint' and 'record_endpoint'"
    )


def manifest_from_dict(data: dict) -> Manifest:
    retry = RetryPolicy(**data["retry"]) if "retry" in data else RetryPolicy()
    reset_delay = float(data.get("reset_delay", 0.8))
    if not 0 <= reset_delay < 1:
        raise ValueError("reset_delay must be under one second")

    return Manifest(
        version=data.get("version", "1"),
        site_mode=SiteMode(data.get("site_mode", "normal")),
        target=parse_target(data["target"]) if data.get("target") else None,
        retry=retry,
        reset_delay=reset_delay,
        request_timeout=float(data.get("request_timeout", 600.0)),
    )


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ValueError("Manifest must be a JSON object")
    return manifest_from_dict(data)
