from __future__ import annotations

import dpkt
import pytest

from portscan_detector.capture_reader import (
    CaptureOpenError,
    CaptureReader,
    detect_container,
    open_capture,
)


def test_capture_reader_yields_raw_frames(pcap_file, ipv4_frame, arp_frame):
    frames = [ipv4_frame("192.0.2.1", "192.0.2.2"), arp_frame]
    path = pcap_file(frames)

    with CaptureReader(path) as reader:
        assert reader.container == "pcap"
        assert reader.link_type == dpkt.pcap.DLT_EN10MB
        assert list(reader) == frames
        assert reader.frames_read == 2
        assert not reader.truncated

    assert reader._file is None


def test_capture_reader_reads_pcapng(tmp_path, ipv4_frame):
    path = tmp_path / "capture.pcapng"
    frame = ipv4_frame("198.51.100.7", "203.0.113.9")
    with path.open("wb") as fh:
        writer = dpkt.pcapng.Writer(fh)
        writer.writepkt(frame, ts=1.0)
        writer.writepkt(frame, ts=2.0)

    with CaptureReader(path) as reader:
        assert reader.container == "pcapng"
        assert list(reader) == [frame, frame]


def test_next_frame_iteration(pcap_file, ipv4_frame):
    path = pcap_file([ipv4_frame("192.0.2.1", "192.0.2.2")])

    reader = CaptureReader(path)
    first = reader.next_frame()
    second = reader.next_frame()
    third = reader.next_frame()

    assert first is not None
    assert second is None
    assert third is None

    reader.close()


def test_empty_capture_yields_nothing(pcap_file):
    path = pcap_file([])

    with open_capture(path) as reader:
        assert list(reader) == []
        assert reader.frames_read == 0


def test_missing_file_names_the_path(tmp_path):
    path = tmp_path / "missing.pcap"

    with pytest.raises(CaptureOpenError, match="missing.pcap"):
        open_capture(path)


@pytest.mark.parametrize("content", [b"", b"\x00\x01", b"this is not a capture file at all"])
def test_invalid_container_is_rejected(tmp_path, content):
    path = tmp_path / "bogus.pcap"
    path.write_bytes(content)

    with pytest.raises(CaptureOpenError, match="bogus.pcap"):
        with CaptureReader(path):
            pass


def test_unsupported_link_type_is_rejected(pcap_file):
    path = pcap_file([], linktype=105)

    with pytest.raises(CaptureOpenError, match="Unsupported link-layer"):
        open_capture(path)


def test_truncated_record_header_ends_the_stream(pcap_file, ipv4_frame):
    frame = ipv4_frame("192.0.2.1", "192.0.2.2")
    path = pcap_file([frame, frame])
    # Global header (24) + first record (16 + frame) + half of the second record header.
    path.write_bytes(path.read_bytes()[: 24 + 16 + len(frame) + 8])

    with CaptureReader(path) as reader:
        assert list(reader) == [frame]
        assert reader.truncated


def test_detect_container_magic_numbers():
    assert detect_container(b"\xd4\xc3\xb2\xa1") == "pcap"
    assert detect_container(b"\xa1\xb2\xc3\xd4") == "pcap"
    assert detect_container(b"\x0a\x0d\x0d\x0a") == "pcapng"
    assert detect_container(b"\x7fELF") is None
    assert detect_container(b"\x0a") is None
