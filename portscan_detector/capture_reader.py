"""Capture file ingestion: yields raw frames from pcap and pcapng containers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Iterator, Optional, Tuple, Union

import dpkt

from .frame_decoder import is_supported_link_type

logger = logging.getLogger(__name__)

PCAP_MAGICS = frozenset({0xA1B2C3D4, 0xD4C3B2A1, 0xA1B23C4D, 0x4D3CB2A1})
PCAPNG_MAGIC = 0x0A0D0D0A


class CaptureOpenError(RuntimeError):
    """Raised when a capture file cannot be opened or its container is invalid."""


def detect_container(head: bytes) -> Optional[str]:
    """Return ``"pcap"``, ``"pcapng"`` or ``None`` for the first bytes of a file."""
    if len(head) < 4:
        return None
    magic = int.from_bytes(head[:4], byteorder="little")
    if magic in PCAP_MAGICS:
        return "pcap"
    if magic == PCAPNG_MAGIC:
        return "pcapng"
    return None


class CaptureReader:
    """Iterates over the raw frame buffers stored in a capture file.

    The file handle is acquired on first use (or ``__enter__``) and released by
    :meth:`close`. A container error in the middle of the file ends the stream
    and sets :attr:`truncated`; it is not raised to the caller.
    """

    def __init__(self, capture_path: Union[str, Path]) -> None:
        self.path = Path(capture_path)

        self._file: Optional[IO[bytes]] = None
        self._reader = None
        self._frame_iter: Optional[Iterator[Tuple[float, bytes]]] = None
        self._exhausted = False

        self.container: Optional[str] = None
        self.link_type: Optional[int] = None
        self.frames_read = 0
        self.truncated = False

    # ------------------------------------------------------------------
    def __enter__(self) -> "CaptureReader":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    # ------------------------------------------------------------------
    def open(self) -> None:
        if self._reader is not None:
            return
        if not self.path.is_file():
            raise CaptureOpenError(f"Capture file does not exist: {self.path}")
        try:
            self._file = self.path.open("rb")
            self.container = detect_container(self._file.read(4))
            self._file.seek(0)
            if self.container == "pcap":
                self._reader = dpkt.pcap.Reader(self._file)
            elif self.container == "pcapng":
                self._reader = dpkt.pcapng.Reader(self._file)
            else:
                raise CaptureOpenError(f"Not a pcap or pcapng capture file: {self.path}")
            self.link_type = self._reader.datalink()
        except CaptureOpenError:
            self.close()
            raise
        except (OSError, ValueError, dpkt.UnpackError) as exc:
            self.close()
            raise CaptureOpenError(f"Failed to open capture file: {self.path}") from exc

        if not is_supported_link_type(self.link_type):
            link_type = self.link_type
            self.close()
            raise CaptureOpenError(
                f"Unsupported link-layer header type {link_type} in capture file: {self.path}"
            )
        self._frame_iter = iter(self._reader)
        self._exhausted = False
        self.frames_read = 0
        self.truncated = False
        logger.debug(
            "Opened %s capture %s (link type %d)", self.container, self.path, self.link_type
        )

    def close(self) -> None:
        self._reader = None
        self._frame_iter = None
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug("Failed to close capture file", exc_info=True)
            finally:
                self._file = None

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[bytes]:
        while True:
            frame = self.next_frame()
            if frame is None:
                break
            yield frame

    def next_frame(self) -> Optional[bytes]:
        """Return the next raw frame, or ``None`` at the end of the stream."""
        if self._exhausted:
            return None
        self.open()
        assert self._frame_iter is not None

        try:
            _, buf = next(self._frame_iter)
        except StopIteration:
            self._exhausted = True
            return None
        except (ValueError, dpkt.UnpackError):
            logger.warning(
                "Capture file %s is truncated after %d frames", self.path, self.frames_read,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            self.truncated = True
            self._exhausted = True
            return None

        self.frames_read += 1
        return bytes(buf)


def open_capture(capture_path: Union[str, Path]) -> CaptureReader:
    """Open *capture_path* eagerly so container errors surface immediately."""
    reader = CaptureReader(capture_path)
    reader.open()
    return reader


__all__ = ["CaptureOpenError", "CaptureReader", "detect_container", "open_capture"]
