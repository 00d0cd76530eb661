"""
Artifact capture and storage.

Captures diagnostic screenshots and videos for test attempts, keeps a
per-run registry of stored files, and enforces the retention policy.
"""

import hashlib
import json
import re
import shutil
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.config import Config
from ..core.logging_config import get_logger, log_performance
from ..core.types import ArtifactKind
from .models import ArtifactRecord, ArtifactRef


REGISTRY_FILE = "registry.json"


def safe_test_dirname(test_id: str) -> str:
    """Filesystem-safe directory name for a test id, unique per id."""
    slug = re.sub(r"[^A-Za-z0-9._-]+", "_", test_id).strip("_")[:80] or "test"
    digest = hashlib.md5(test_id.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"


class ArtifactCapturer:
    """
    Captures and catalogs artifacts for a single run.

    Artifacts live under artifacts/{run_id}/{test}/attempt-{n}/. Capturing
    the same (test_id, attempt_number) twice overwrites the earlier files
    and registry entries instead of adding new ones.
    """

    def __init__(self, config: Config, run_id: str):
        self.config = config
        self.run_id = run_id
        self.logger = get_logger(__name__, run_id=run_id)

        self.artifacts_root = Path(config.artifacts_dir)
        self.run_dir = self.artifacts_root / run_id

        self._registry: Dict[str, ArtifactRecord] = {}
        self._registry_file = self.run_dir / REGISTRY_FILE
        self._lock = threading.Lock()

    def attempt_dir(self, test_id: str, attempt_number: int) -> Path:
        """Prepare and return the artifact directory for one attempt."""
        path = self.run_dir / safe_test_dirname(test_id) / f"attempt-{attempt_number}"
        path.mkdir(parents=True, exist_ok=True)
        return path

    async def capture(self, test_id: str, attempt_number: int, context: Any) -> List[ArtifactRef]:
        """
        Capture diagnostics for one attempt.

        Args:
            test_id: Test identity
            attempt_number: Attempt the artifacts belong to
            context: The attempt's TestContext; only its browser is used

        Returns:
            References to the stored artifacts. An empty list is the no-op
            marker returned when there is no interactive context or the
            underlying capability failed.
        """
        browser = getattr(context, "browser", None)
        if browser is None:
            self.logger.debug(
                f"No interactive context for {test_id}, skipping capture",
                extra={"metadata": {"test_id": test_id, "attempt": attempt_number}},
            )
            return []

        start_time = time.time()
        refs: List[ArtifactRef] = []

        try:
            screenshot_path = self.attempt_dir(test_id, attempt_number) / "screenshot.png"
            await browser.screenshot(screenshot_path)
            refs.append(
                self.register(
                    ArtifactRef(
                        test_id=test_id,
                        attempt_number=attempt_number,
                        kind=ArtifactKind.SCREENSHOT,
                        location=str(screenshot_path),
                    )
                )
            )

            if self.config.capture_video:
                video_path = await browser.video_path()
                if video_path:
                    refs.append(
                        self.register(
                            ArtifactRef(
                                test_id=test_id,
                                attempt_number=attempt_number,
                                kind=ArtifactKind.VIDEO,
                                location=str(video_path),
                            )
                        )
                    )
        except Exception as e:
            self.logger.warning(
                f"Artifact capture failed for {test_id} attempt {attempt_number}: {e}",
                extra={
                    "metadata": {
                        "test_id": test_id,
                        "attempt": attempt_number,
                        "error_type": type(e).__name__,
                    }
                },
            )
            return refs

        log_performance(
            self.logger,
            "artifact_capture",
            time.time() - start_time,
            test_id=test_id,
            attempt=attempt_number,
            artifacts_count=len(refs),
        )
        return refs

    async def capture_named(
        self, test_id: str, attempt_number: int, context: Any, name: str
    ) -> Optional[ArtifactRef]:
        """Store a screenshot a test body asked for by name."""
        browser = getattr(context, "browser", None)
        if browser is None:
            self.logger.debug(f"Named screenshot '{name}' ignored for non-interactive test {test_id}")
            return None

        file_name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("_") or "screenshot"
        path = self.attempt_dir(test_id, attempt_number) / f"{file_name}.png"
        try:
            await browser.screenshot(path)
        except Exception as e:
            self.logger.warning(f"Named screenshot '{name}' failed for {test_id}: {e}")
            return None

        return self.register(
            ArtifactRef(
                test_id=test_id,
                attempt_number=attempt_number,
                kind=ArtifactKind.SCREENSHOT,
                location=str(path),
                name=name,
            )
        )

    def register(self, ref: ArtifactRef) -> ArtifactRef:
        """Record an artifact in the run registry, replacing any entry with the same key."""
        path = Path(ref.location)
        record = ArtifactRecord(ref=ref)
        if path.exists():
            record.file_size = path.stat().st_size
            record.checksum = self._calculate_checksum(path)

        key = self._registry_key(ref)
        with self._lock:
            self._registry[key] = record
            self._save_registry()

        self.logger.debug(
            f"Registered artifact: {key}",
            extra={
                "metadata": {
                    "kind": ref.kind.value,
                    "test_id": ref.test_id,
                    "attempt": ref.attempt_number,
                    "file_size": record.file_size,
                }
            },
        )
        return ref

    def refresh(self, refs: List[ArtifactRef]) -> List[ArtifactRef]:
        """
        Re-register video artifacts after the browser context has closed.

        Videos are only written to disk when their context closes, so the
        size and checksum recorded at capture time are incomplete.
        """
        for ref in refs:
            if ref.kind == ArtifactKind.VIDEO:
                self.register(ref)
        return refs

    def discard_videos(self, test_id: str, attempt_number: int) -> int:
        """Delete recorded videos of an attempt whose artifacts are not kept."""
        path = self.run_dir / safe_test_dirname(test_id) / f"attempt-{attempt_number}"
        if not path.is_dir():
            return 0

        removed = 0
        for video in path.glob("*.webm"):
            video.unlink()
            removed += 1

        for directory in (path, path.parent):
            try:
                directory.rmdir()
            except OSError:
                break

        if removed:
            self.logger.debug(
                f"Discarded {removed} videos for {test_id} attempt {attempt_number}",
                extra={"metadata": {"test_id": test_id, "attempt": attempt_number}},
            )
        return removed

    def get_artifacts(self, test_id: Optional[str] = None) -> List[ArtifactRef]:
        """All registered artifacts, optionally limited to one test."""
        with self._lock:
            records = list(self._registry.values())
        return [r.ref for r in records if test_id is None or r.ref.test_id == test_id]

    @staticmethod
    def _registry_key(ref: ArtifactRef) -> str:
        return f"{ref.test_id}|{ref.attempt_number}|{ref.kind.value}|{ref.name or ''}"

    def _save_registry(self) -> None:
        try:
            self.run_dir.mkdir(parents=True, exist_ok=True)
            data = {key: record.model_dump(mode="json") for key, record in self._registry.items()}
            with open(self._registry_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Failed to save artifact registry: {e}")

    def _calculate_checksum(self, file_path: Path) -> Optional[str]:
        """Calculate SHA-256 checksum of a file."""
        sha256_hash = hashlib.sha256()
        try:
            with open(file_path, "rb") as f:
                for chunk in iter(lambda: f.read(4096), b""):
                    sha256_hash.update(chunk)
            return sha256_hash.hexdigest()
        except OSError as e:
            self.logger.warning(f"Failed to calculate checksum for {file_path}: {e}")
            return None

    def cleanup_expired_runs(
        self,
        retention_days: Optional[int] = None,
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        """
        Delete run directories older than the retention period.

        Args:
            retention_days: Override the configured retention period
            dry_run: Only report what would be deleted

        Returns:
            Cleanup summary with statistics
        """
        start_time = time.time()
        if retention_days is None:
            retention_days = self.config.artifact_retention_days
        cutoff = datetime.now() - timedelta(days=retention_days)

        deleted: List[str] = []
        freed_space = 0
        errors: List[str] = []

        if self.artifacts_root.exists():
            for run_dir in sorted(self.artifacts_root.iterdir()):
                if not run_dir.is_dir() or run_dir == self.run_dir:
                    continue
                modified = datetime.fromtimestamp(run_dir.stat().st_mtime)
                if modified >= cutoff:
                    continue

                size = sum(p.stat().st_size for p in run_dir.rglob("*") if p.is_file())
                if dry_run:
                    self.logger.info(f"Would delete: {run_dir} ({size} bytes)")
                else:
                    try:
                        shutil.rmtree(run_dir)
                    except OSError as e:
                        error_msg = f"Failed to delete {run_dir}: {e}"
                        errors.append(error_msg)
                        self.logger.error(error_msg)
                        continue
                deleted.append(run_dir.name)
                freed_space += size

        summary = {
            "deleted_runs": deleted,
            "deleted_count": len(deleted),
            "freed_space": freed_space,
            "duration": time.time() - start_time,
            "dry_run": dry_run,
            "errors": errors,
        }

        self.logger.info(
            f"Artifact cleanup completed: {len(deleted)} runs, {freed_space} bytes freed",
            extra={"metadata": {**summary, "retention_days": retention_days}},
        )
        return summary
