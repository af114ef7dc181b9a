"""
Stream gzip-compressed log files into the shared line queue.

Per-file lifecycle:
    Opened -> Streaming -> Completed (renamed to .<name>)
                        -> Aborted   (left as is, picked up by the next run)

A file that cannot be opened, or whose gzip header is invalid, is fatal
for the whole run and never reaches Streaming.
"""

import asyncio
import enum
import gzip
import logging
import zlib
from pathlib import Path
from typing import List, Optional, Tuple, Union

from core.exceptions import FatalIOError, StreamReadError

logger = logging.getLogger(__name__)

# Bytes of decompressed input pulled per thread hop, in whole lines
READ_HINT = 64 * 1024


class FileState(str, enum.Enum):
    OPENED = "opened"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"


def dot_rename(path: Union[str, Path]) -> Optional[Path]:
    """
    Mark a file as consumed by prefixing its name with a dot.

    Never overwrites an existing file, and leaves names that already
    start with a dot alone.

    Returns:
        The new path, or None if the file was not renamed
    """
    path = Path(path)
    if path.name.startswith("."):
        logger.warning(f"File {path} is already marked as processed")
        return None

    target = path.with_name("." + path.name)
    if target.exists():
        logger.warning(f"Can't rename file {path}: {target} already exists")
        return None

    try:
        path.rename(target)
    except OSError as e:
        logger.error(f"Can't rename file {path}: {e}")
        return None
    return target


class FileIngestor:
    """
    Read one compressed file and hand its lines to the parser.

    Attributes:
        path: Input file
        lines: Queue shared by every ingestor of the run
        dry_run: Skip the completion rename
    """

    def __init__(self, path: Union[str, Path], lines: asyncio.Queue, dry_run: bool = False):
        self.path = Path(path)
        self.lines = lines
        self.dry_run = dry_run
        self.state: Optional[FileState] = None
        self.lines_read = 0
        self._stream = None

    def open(self) -> None:
        """
        Open the file and check the gzip header.

        Raises:
            FatalIOError: The file is missing, unreadable, empty or not gzip
        """
        try:
            stream = gzip.open(self.path, "rb")
        except OSError as e:
            raise FatalIOError(
                f"Can't open file {self.path}",
                context={"file_path": str(self.path)},
                original_exception=e
            )

        try:
            # Reading the first byte forces the header to be parsed
            head = stream.peek(1)
        except (OSError, EOFError, zlib.error) as e:
            stream.close()
            raise FatalIOError(
                f"Can't open gzip file {self.path}",
                context={"file_path": str(self.path)},
                original_exception=e
            )

        if not head and self.path.stat().st_size == 0:
            stream.close()
            raise FatalIOError(
                f"Can't open gzip file {self.path}: file is empty",
                context={"file_path": str(self.path)}
            )

        self._stream = stream
        self.state = FileState.OPENED

    async def run(self) -> bool:
        """
        Stream every line of the file into the queue.

        Returns:
            True if the file was read to a clean end of stream

        Raises:
            FatalIOError: See open()
        """
        logger.info(f"Read file {self.path}")
        await asyncio.to_thread(self.open)

        try:
            self.state = FileState.STREAMING
            await self._stream_lines()
        except StreamReadError as e:
            self.state = FileState.ABORTED
            logger.error(
                f"Aborted reading {self.path}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return False
        finally:
            self._close()

        self.state = FileState.COMPLETED
        logger.info(f"{self.lines_read} lines read from {self.path}")

        if not self.dry_run:
            dot_rename(self.path)
        return True

    def _read_batch(self) -> Tuple[List[bytes], Optional[Exception]]:
        """
        Read whole lines until READ_HINT bytes or end of stream.

        A decompression error ends the batch early. The lines read before
        it are returned together with the error so none of them is lost.
        """
        batch: List[bytes] = []
        size = 0
        try:
            while size < READ_HINT:
                raw = self._stream.readline()
                if not raw:
                    break
                batch.append(raw)
                size += len(raw)
        except (OSError, EOFError, zlib.error) as e:
            return batch, e
        return batch, None

    async def _stream_lines(self) -> None:
        while True:
            batch, error = await asyncio.to_thread(self._read_batch)

            for raw in batch:
                await self.lines.put(raw.decode("utf-8", errors="replace"))
                self.lines_read += 1

            if error is not None:
                raise StreamReadError(
                    f"Error while decompressing {self.path}",
                    context={"file_path": str(self.path), "lines_read": self.lines_read},
                    original_exception=error
                )
            if not batch:
                return

    def _close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.close()
        except OSError as e:
            logger.warning(f"Can't close file {self.path}: {e}")
        self._stream = None
