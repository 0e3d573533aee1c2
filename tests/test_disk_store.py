import os

import pytest

from conftest import stream_of
from upload_server.storage import BlobNotFoundError, Capability, DiskStore, WriteError


async def read_all(store, name):
    async with await store.read(name) as reader:
        return b"".join([chunk async for chunk in reader])


def test_requires_root_directory():
    with pytest.raises(ValueError, match="no root directory provided"):
        DiskStore("")


def test_supports_every_operation(disk_store):
    for capability in Capability:
        assert disk_store.supports(capability)


def test_path_is_joined_under_root(disk_store, document_root):
    assert disk_store.get_path("report.txt") == document_root / "report.txt"


@pytest.mark.asyncio
async def test_initialize_creates_root(tmp_path):
    store = DiskStore(tmp_path / "nested" / "root")
    await store.initialize()
    assert (tmp_path / "nested" / "root").is_dir()


@pytest.mark.asyncio
async def test_write_then_read_round_trip(disk_store):
    content = os.urandom(20000)
    written = await disk_store.write("blob.bin", stream_of(content[:7000], content[7000:]))
    assert written == len(content)
    assert await read_all(disk_store, "blob.bin") == content


@pytest.mark.asyncio
async def test_rewrite_replaces_previous_content(disk_store):
    await disk_store.write("notes.txt", stream_of(b"a much longer first version"))
    await disk_store.write("notes.txt", stream_of(b"short"))
    assert await read_all(disk_store, "notes.txt") == b"short"


@pytest.mark.asyncio
async def test_exists(disk_store):
    assert await disk_store.exists("missing.txt") is False
    await disk_store.write("present.txt", stream_of(b"x"))
    assert await disk_store.exists("present.txt") is True


@pytest.mark.asyncio
async def test_exists_is_false_for_directories(disk_store, document_root):
    (document_root / "subdir").mkdir()
    assert await disk_store.exists("subdir") is False


@pytest.mark.asyncio
async def test_read_missing_raises_not_found(disk_store):
    with pytest.raises(BlobNotFoundError):
        await disk_store.read("missing.txt")


@pytest.mark.asyncio
async def test_reader_can_be_closed_after_partial_read(disk_store):
    await disk_store.write("big.bin", stream_of(b"0123456789"))
    reader = await disk_store.read("big.bin")
    assert await reader.read(4) == b"0123"
    await reader.close()
    assert reader.closed


@pytest.mark.asyncio
async def test_failed_write_reports_partial_count_and_keeps_old_blob(disk_store, document_root):
    await disk_store.write("keep.txt", stream_of(b"original"))

    async def broken_stream():
        yield b"hello"
        raise OSError("connection reset")

    with pytest.raises(WriteError) as exc_info:
        await disk_store.write("keep.txt", broken_stream())

    assert exc_info.value.bytes_written == 5
    assert await read_all(disk_store, "keep.txt") == b"original"
    # No temporary files left behind
    assert sorted(p.name for p in document_root.iterdir()) == ["keep.txt"]


@pytest.mark.asyncio
async def test_write_into_missing_root_fails(tmp_path):
    store = DiskStore(tmp_path / "does-not-exist")
    with pytest.raises(WriteError) as exc_info:
        await store.write("file.txt", stream_of(b"data"))
    assert exc_info.value.bytes_written == 0


@pytest.mark.asyncio
async def test_temp_file_stays_inside_root(disk_store, document_root, tmp_path):
    """Test a name that resolves to the root itself never writes next to it."""
    with pytest.raises(WriteError):
        await disk_store.write(".", stream_of(b"data"))

    assert [p.name for p in tmp_path.iterdir()] == ["data"]
    assert list(document_root.iterdir()) == []
