# backend/src/formcoach/storage.py
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import boto3

from . import config
from .pipeline import VideoAnalysis
from .processor import points_to_frame

_s3 = boto3.client("s3", region_name=config.AWS_REGION)


def _require_bucket() -> str:
    if not config.S3_BUCKET:
        raise RuntimeError("FORMCOACH_S3_BUCKET env var is not set.")
    return config.S3_BUCKET


def s3_enabled() -> bool:
    return bool(config.S3_BUCKET)


def utc_run_id() -> Tuple[str, str]:
    """(run_id, iso_timestamp); run_id sorts by time and is filesystem-safe."""
    now = datetime.now(timezone.utc)
    iso = now.isoformat(timespec="seconds")
    return now.strftime("%Y%m%dT%H%M%SZ") + "_" + uuid.uuid4().hex[:8], iso


def s3_key(run_id: str, filename: str, kind: str) -> str:
    # layout: prefix/user_id/run_id/kind/filename
    return f"{config.S3_PREFIX}/{config.S3_USER_ID}/{run_id}/{kind}/{filename}"


def _extra(content_type: Optional[str], metadata: Optional[Dict[str, str]]) -> Dict:
    extra: Dict = {}
    if content_type:
        extra["ContentType"] = content_type
    if metadata:
        # S3 metadata keys must be strings, lowercase recommended
        extra["Metadata"] = {str(k).lower(): str(v) for k, v in metadata.items()}
    return extra


def upload_file(local_path: Path, key: str, content_type: Optional[str] = None,
                metadata: Optional[Dict[str, str]] = None) -> str:
    bucket = _require_bucket()
    _s3.upload_file(str(local_path), bucket, key, ExtraArgs=_extra(content_type, metadata) or None)
    return f"s3://{bucket}/{key}"


def upload_bytes(data: bytes, key: str, content_type: Optional[str] = None,
                 metadata: Optional[Dict[str, str]] = None) -> str:
    bucket = _require_bucket()
    _s3.put_object(Bucket=bucket, Key=key, Body=data, **_extra(content_type, metadata))
    return f"s3://{bucket}/{key}"


def save_analysis(analysis: VideoAnalysis, feedback: Optional[str] = None,
                  run_id: Optional[str] = None) -> Dict[str, object]:
    """
    Persist one analysis run: annotated frames, per-frame angles, summary and a
    manifest.json tying them together. Returns the manifest.
    """
    _require_bucket()
    if run_id:
        created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    else:
        run_id, created_at = utc_run_id()
    meta = {"run_id": run_id, "created_at": created_at}

    frame_keys: List[str] = []
    for frame, jpeg in zip(analysis.frames, analysis.jpeg_frames()):
        key = s3_key(run_id, f"frame_{frame.frame_number:02d}.jpg", "frames")
        upload_bytes(jpeg, key, content_type="image/jpeg", metadata=meta)
        frame_keys.append(key)

    angles_key = None
    if analysis.points:
        angles_key = s3_key(run_id, "angles.csv", "processed")
        csv = points_to_frame(analysis.points).to_csv(index=False).encode("utf-8")
        upload_bytes(csv, angles_key, content_type="text/csv", metadata=meta)

    summary_key = None
    if analysis.summary:
        summary_key = s3_key(run_id, "summary.txt", "processed")
        upload_bytes(analysis.summary.encode("utf-8"), summary_key, content_type="text/plain", metadata=meta)

    stats = analysis.statistics
    manifest: Dict[str, object] = {
        "run_id": run_id,
        "created_at_utc": created_at,
        "user_id": config.S3_USER_ID,
        "discipline": analysis.discipline,
        "frame_count": len(analysis.frames),
        "pose_available": analysis.pose_available,
        "quality_score": analysis.quality_score,
        "statistics": {
            "avg_knee_angle": stats.avg_knee_angle,
            "avg_hip_angle": stats.avg_hip_angle,
            "avg_elbow_angle": stats.avg_elbow_angle,
            "confidence": stats.confidence,
        },
        "feedback": feedback,
        "outputs": {
            "frames": frame_keys,
            "angles_csv": angles_key,
            "summary": summary_key,
        },
    }
    upload_bytes(
        json.dumps(manifest, indent=2).encode("utf-8"),
        f"{config.S3_PREFIX}/{config.S3_USER_ID}/{run_id}/manifest.json",
        content_type="application/json",
        metadata=meta,
    )
    return manifest
