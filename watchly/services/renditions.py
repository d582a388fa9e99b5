from __future__ import annotations

"""
🎞️ Watchly — Derived video renditions
=====================================

After a movie record is persisted, lower-resolution MP4 renditions (720p/480p
by default) of its video are produced in the background:

    download primary → transcode each height below the source → upload
    `<stem>_<h>p.mp4` next to it → remove the work dir

Jobs are fire-and-forget asyncio tasks; failures are logged and never reach
the request that scheduled them. `drain()` waits for pending jobs on shutdown.

`cancel(asset_id)` marks a running job as withdrawn (the video is being
deleted): the job stops before its next rendition and deletes any rendition it
finishes uploading after the mark, so nothing it writes outlives the video.
"""

import asyncio
import logging
import posixpath
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from watchly.core.config import settings
from watchly.utils import media_probe
from watchly.utils.aws import S3Client

logger = logging.getLogger(__name__)


def rendition_key(asset_id: str, height: int) -> str:
    """`watchly/videos/abc.mov` → `watchly/videos/abc_720p.mp4`."""
    directory, name = posixpath.split(asset_id)
    stem = posixpath.splitext(name)[0]
    return posixpath.join(directory, f"{stem}_{int(height)}p.mp4")


class RenditionScheduler:
    def __init__(self, s3_factory: Callable[[], S3Client], *, heights: Optional[Iterable[int]] = None):
        self._s3_factory = s3_factory
        self.heights: List[int] = sorted(set(heights if heights is not None else settings.rendition_heights), reverse=True)
        self._tasks: Set[asyncio.Task] = set()
        self._active: Dict[str, asyncio.Task] = {}
        self._cancelled: Set[str] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(
        self,
        asset_id: str,
        heights: Optional[Iterable[int]] = None,
        *,
        source_height: Optional[int] = None,
    ) -> Optional[asyncio.Task]:
        """Start a background job for `asset_id`; returns the task (None when nothing to do)."""
        targets = sorted(set(heights if heights is not None else self.heights), reverse=True)
        if not targets:
            return None
        task = asyncio.get_running_loop().create_task(
            self._run(asset_id, targets, source_height),
            name=f"renditions:{asset_id}",
        )
        self._tasks.add(task)
        self._active[asset_id] = task
        task.add_done_callback(lambda t, a=asset_id: self._finished(a, t))
        return task

    def cancel(self, asset_id: str) -> bool:
        """Withdraw the running job for `asset_id`; False when none is running."""
        if asset_id not in self._active:
            return False
        self._cancelled.add(asset_id)
        logger.info("Rendition job for %s withdrawn", asset_id)
        return True

    def _finished(self, asset_id: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if self._active.get(asset_id) is task:
            del self._active[asset_id]
            self._cancelled.discard(asset_id)

    async def _run(self, asset_id: str, heights: List[int], source_height: Optional[int]) -> List[str]:
        workdir = Path(tempfile.mkdtemp(prefix="watchly-rendition-"))
        produced: List[str] = []
        try:
            s3 = self._s3_factory()
            source = workdir / posixpath.basename(asset_id)
            await asyncio.to_thread(s3.download_file, asset_id, str(source))

            if source_height is None:
                source_height = (await asyncio.to_thread(media_probe.probe, str(source))).height

            for height in heights:
                if asset_id in self._cancelled:
                    break
                if source_height and height >= source_height:
                    logger.debug("Skipping %dp rendition for %s (source is %dp)", height, asset_id, source_height)
                    continue
                target = workdir / f"{source.stem}_{height}p.mp4"
                await asyncio.to_thread(media_probe.transcode_to_height, str(source), str(target), height)
                key = rendition_key(asset_id, height)
                await asyncio.to_thread(s3.upload_file, str(target), key, content_type="video/mp4")
                target.unlink(missing_ok=True)
                if asset_id in self._cancelled:
                    # the video was deleted while this rendition was in flight
                    await asyncio.to_thread(s3.delete, key)
                    break
                produced.append(key)

            if asset_id in self._cancelled:
                logger.info("Rendition job for %s stopped; video was deleted", asset_id)
            else:
                logger.info("Renditions ready for %s: %s", asset_id, produced or "none needed")
        except asyncio.CancelledError:
            logger.warning("Rendition job for %s cancelled", asset_id)
            raise
        except Exception:
            logger.exception("Rendition job for %s failed", asset_id)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
        return produced

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for pending jobs; cancel whatever is still running after `timeout`."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


__all__ = ["RenditionScheduler", "rendition_key"]
