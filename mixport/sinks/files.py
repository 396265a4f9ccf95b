"""Export files backing the file sinks.

Files are named ``{product}-{stamp}.{ext}`` (column exports add the event
name: ``{product}-{event}-{stamp}.csv``) with a ``.gz`` suffix when
compressed. The stamp is the day, or ``start-end`` for a range.

A file may be created as a named pipe instead, so another process can load
the export while it is produced. Opening a pipe for writing blocks until a
reader attaches, which is why opening and closing run in a worker thread.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import gzip
import io
import os
import typing as typ
from pathlib import Path

from mixport.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    from mixport.common.dates import DateRange
    from mixport.config import FileExportConfig

logger = get_logger(__name__)

_FIFO_MODE = 0o700


def export_file_name(
    product: str,
    date_range: DateRange,
    ext: str,
    *,
    event: str | None = None,
    compress: bool = False,
) -> str:
    """Return the file name for one export destination."""
    parts = [product] if event is None else [product, event]
    parts.append(date_range.stamp())
    name = f"{'-'.join(parts)}.{ext}"
    return f"{name}.gz" if compress else name


@dc.dataclass(slots=True)
class ExportFile:
    """An open export destination.

    Attributes
    ----------
    path
        Location of the file or named pipe.
    stream
        UTF-8 text stream sinks write to.
    fifo
        Whether ``path`` is a named pipe, removed again on close.

    """

    path: Path
    stream: typ.TextIO
    fifo: bool = False
    _raw: typ.BinaryIO | None = dc.field(default=None, repr=False)
    _closed: bool = dc.field(default=False, repr=False)

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has run."""
        return self._closed

    async def close(self) -> None:
        """Close the stream, the compression layer and the file.

        A named pipe is removed afterwards. Later calls are no-ops.
        """
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._close_sync)
        log_debug(logger, "closed export file %s", self.path)

    def _close_sync(self) -> None:
        try:
            # Closing the text layer also closes the gzip layer, but gzip
            # leaves the underlying file open.
            self.stream.close()
            if self._raw is not None:
                self._raw.close()
        finally:
            if self.fifo:
                self.path.unlink(missing_ok=True)


async def open_export_file(
    product: str,
    date_range: DateRange,
    config: FileExportConfig,
    ext: str,
    *,
    event: str | None = None,
) -> ExportFile:
    """Create the export file for ``product`` described by ``config``.

    Raises
    ------
    OSError
        If the file or named pipe cannot be created.

    """
    name = export_file_name(
        product, date_range, ext, event=event, compress=config.gzip
    )
    path = Path(config.directory) / name
    export_file = await asyncio.to_thread(
        _open_sync, path, compress=config.gzip, fifo=config.fifo
    )
    log_debug(
        logger,
        "opened export file %s (gzip=%s fifo=%s)",
        path,
        config.gzip,
        config.fifo,
    )
    return export_file


def _open_sync(path: Path, *, compress: bool, fifo: bool) -> ExportFile:
    if fifo:
        os.mkfifo(path, _FIFO_MODE)
    try:
        raw = path.open("wb")
    except OSError:
        if fifo:
            path.unlink(missing_ok=True)
        raise

    binary: typ.BinaryIO = raw
    if compress:
        binary = typ.cast("typ.BinaryIO", gzip.GzipFile(fileobj=raw, mode="wb"))
    # newline="" leaves line endings to the writers (csv emits its own).
    stream = io.TextIOWrapper(typ.cast("typ.Any", binary), encoding="utf-8", newline="")
    return ExportFile(path=path, stream=stream, fifo=fifo, _raw=raw)
