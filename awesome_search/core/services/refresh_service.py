"""Refresh service - rebuilds and publishes generations when the dataset changes."""

import hashlib
import hmac
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from ..errors import BuildFailure, IndexUnavailable, SignatureInvalid, StoreError, StoreUnavailable
from ..protocols.snapshot_source import SnapshotSourceProtocol
from .index_builder import IndexBuilder
from .snapshot_manager import SnapshotManager

logger = logging.getLogger(__name__)


def sign_payload(body: bytes, secret: str) -> str:
    """Signature header value for an ingestion notification body."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    """Check an ingestion notification signature.

    Args:
        body: Raw request body.
        signature: Value of the signature header.
        secret: Shared secret; None disables verification.

    Raises:
        SignatureInvalid: Signature missing or wrong while a secret is set.
    """
    if not secret:
        return
    if not signature:
        raise SignatureInvalid("Missing signature")
    if not hmac.compare_digest(sign_payload(body, secret), signature):
        raise SignatureInvalid("Invalid signature")


class RefreshService:
    """Loads, builds and publishes index generations out of the request path."""

    def __init__(
        self,
        source: SnapshotSourceProtocol,
        builder: IndexBuilder,
        snapshots: SnapshotManager,
        metadata_path: str = "~/.awesome/db-metadata.json",
        poll_seconds: float = 300.0,
    ):
        """Initialize refresh service.

        Args:
            source: Backing store produced by ingestion.
            builder: Index builder.
            snapshots: Manager new generations are published to.
            metadata_path: Where ingestion metadata is recorded.
            poll_seconds: Interval between change checks.
        """
        self._source = source
        self._builder = builder
        self._snapshots = snapshots
        self._metadata_path = Path(metadata_path).expanduser()
        self._poll_seconds = poll_seconds

        self._build_lock = threading.Lock()
        self._last_fingerprint: Optional[tuple[int, int]] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def refresh(self, force: bool = False) -> bool:
        """Rebuild if the source changed.

        Args:
            force: Rebuild even if the source looks unchanged.

        Returns:
            True if a new generation was published.
        """
        if not self._build_lock.acquire(blocking=False):
            logger.info("Refresh already running, skipping")
            return False

        try:
            fingerprint = self._source.fingerprint()
            if fingerprint is None:
                logger.error("Snapshot source is missing, keeping current generation")
                return False
            if not force and fingerprint == self._last_fingerprint and self._snapshots.is_ready:
                logger.debug("Snapshot unchanged, skipping rebuild")
                return False

            snapshot = self._source.load()
            generation = self._builder.build(snapshot)
            self._snapshots.publish(generation)
            self._last_fingerprint = fingerprint
            return True

        except (BuildFailure, StoreError, StoreUnavailable) as e:
            logger.error(f"Build failed, previous generation keeps serving: {e}")
            return False
        finally:
            self._build_lock.release()

    def _loop(self) -> None:
        logger.info(f"Refresher started (poll every {self._poll_seconds:.0f}s)")
        while not self._stop.is_set():
            try:
                self.refresh()
            except Exception as e:
                logger.error(f"Unexpected error in refresher loop: {e}", exc_info=True)
            self._stop.wait(self._poll_seconds)
        logger.info("Refresher stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="index-refresher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def load_metadata(self) -> dict:
        if not self._metadata_path.exists():
            return {}
        try:
            with open(self._metadata_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable metadata {self._metadata_path}: {e}")
            return {}

    def record_notification(self, payload: dict) -> None:
        """Persist ingestion metadata; the caller schedules the refresh."""
        logger.info(
            f"Ingestion notification: version={payload.get('version')} "
            f"timestamp={payload.get('timestamp')} lists={payload.get('lists_count')} "
            f"repos={payload.get('repos_count')}"
        )

        self._metadata_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._metadata_path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self._metadata_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def version_info(self) -> dict:
        """Version stamp for clients that cache results.

        Raises:
            IndexUnavailable: Nothing published yet.
        """
        generation = self._snapshots.current()
        if generation is None:
            raise IndexUnavailable("No index generation has been published yet")

        try:
            file_info = self._source.file_info()
        except StoreUnavailable:
            file_info = {"size": None, "modified": None}

        # served version and file info win over ingestion metadata keys
        return {
            **self.load_metadata(),
            "version": generation.content_hash[:16],
            "size": file_info["size"],
            "modified": file_info["modified"],
            "generation": generation.number,
            "snapshotId": generation.snapshot_id,
            "builtAt": generation.built_at.isoformat(),
        }
