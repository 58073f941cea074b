"""
Scan orchestration.

A scan is two independent jobs over the same photo: ask the vision model
for a reading, and store the original in object storage. Both must
succeed for the scan to succeed.

The two jobs run as sibling tasks. When one fails, the other is cancelled
and awaited before the first error is re-raised, so a failed scan never
leaves a task running in the background. Nothing is rolled back: a photo
stored before the reading failed stays in the bucket.
"""

import asyncio
import logging
from typing import Any, Awaitable, Protocol

from .images import decode_base64_image, detect_image_type, extension_for
from .models import BiometricAnalysis, ScanResult, UploadOutcome
from .reader import FaceReader

logger = logging.getLogger(__name__)


class ObjectWriter(Protocol):
    """
    Interface for the storage side of a scan.

    Implementations own their region handling; the orchestrator only
    sees the outcome and asks for the public URL.
    """

    async def write(
        self,
        payload: bytes,
        content_type: str = "image/jpeg",
        extension: str = ".jpg",
    ) -> UploadOutcome:
        """Store the payload under a fresh key."""
        ...

    def public_url(self, outcome: UploadOutcome) -> str:
        """Build the public URL for a stored object."""
        ...


async def run_together(*jobs: Awaitable[Any]) -> list[Any]:
    """
    Run jobs concurrently and return their results in order.

    The first failure cancels the remaining jobs, waits for them to
    unwind and is then re-raised as-is.
    """
    tasks = [asyncio.ensure_future(job) for job in jobs]

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    failed = [
        task for task in tasks
        if task in done and not task.cancelled() and task.exception() is not None
    ]
    if failed:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        raise failed[0].exception()

    return [task.result() for task in tasks]


class ScanService:
    """
    The request orchestrator.

    One instance lives for the whole process. It holds the writer, and
    through it the cached storage region, so every request after the
    first skips region discovery.
    """

    def __init__(self, reader: FaceReader, writer: ObjectWriter) -> None:
        self._reader = reader
        self._writer = writer

    async def handle(self, image: str) -> ScanResult:
        """
        Read and store one base64 photo.

        Raises ImageValidationError before touching either collaborator
        if the photo can't be decoded. Errors from the reading or the
        upload propagate unchanged.
        """
        payload = decode_base64_image(image)
        media_type = detect_image_type(payload)

        logger.info(
            "Starting scan",
            extra={"size_bytes": len(payload), "media_type": media_type}
        )

        analysis, outcome = await run_together(
            self._reader.read(payload, media_type=media_type),
            self._writer.write(
                payload,
                content_type=media_type,
                extension=extension_for(media_type),
            ),
        )

        return self._build_result(analysis, outcome)

    def _build_result(
        self,
        analysis: BiometricAnalysis,
        outcome: UploadOutcome,
    ) -> ScanResult:
        url = self._writer.public_url(outcome)

        logger.info(
            "Scan complete",
            extra={"object_key": outcome.object_key, "region": outcome.region}
        )

        return ScanResult(
            analysis=analysis,
            record_id=outcome.object_key,
            url=url,
        )
