import pytest

from vdiskfs.cache import CacheManager
from vdiskfs.config import DiskError
from vdiskfs.disk import VirtualDisk

BS = 4096


@pytest.fixture
def disk(tmp_path):
    d = VirtualDisk(tmp_path / "disk.img", 1, BS)
    d.create(tmp_path / "disk.img", 1)
    yield d
    d.close()


def _block(fill: int) -> bytes:
    return bytes([fill]) * BS


def test_write_then_read_returns_cached_data(disk):
    cache = CacheManager(disk, 4, BS)
    cache.write_block(3, _block(7))
    assert cache.read_block(3) == _block(7)


def test_write_is_deferred_until_flush(disk):
    cache = CacheManager(disk, 4, BS)
    cache.write_block(3, _block(9))
    assert disk.read_block(3) == bytes(BS)
    cache.flush_all()
    assert disk.read_block(3) == _block(9)


def test_read_miss_loads_from_disk(disk):
    disk.write_block(5, _block(0x42))
    cache = CacheManager(disk, 4, BS)
    assert cache.read_block(5) == _block(0x42)


def test_overwrite_keeps_latest(disk):
    cache = CacheManager(disk, 4, BS)
    cache.write_block(1, _block(1))
    cache.write_block(1, _block(2))
    assert cache.read_block(1) == _block(2)
    cache.flush_all()
    assert disk.read_block(1) == _block(2)


def test_eviction_writes_back_oldest_dirty_page(disk):
    cache = CacheManager(disk, 2, BS)
    cache.write_block(0, _block(10))
    cache.write_block(1, _block(11))
    cache.write_block(2, _block(12))
    assert disk.read_block(0) == _block(10)
    assert disk.read_block(1) == bytes(BS)
    assert disk.read_block(2) == bytes(BS)


def test_evicted_block_is_reloaded(disk):
    cache = CacheManager(disk, 1, BS)
    cache.write_block(0, _block(3))
    cache.write_block(1, _block(4))
    assert cache.read_block(0) == _block(3)
    assert disk.read_block(1) == _block(4)


def test_context_manager_flushes(disk):
    with CacheManager(disk, 4, BS) as cache:
        cache.write_block(8, _block(0xAA))
    assert disk.read_block(8) == _block(0xAA)


def test_close_flushes(disk):
    cache = CacheManager(disk, 4, BS)
    cache.write_block(6, _block(5))
    cache.close()
    assert disk.read_block(6) == _block(5)


def test_wrong_length_rejected(disk):
    cache = CacheManager(disk, 4, BS)
    with pytest.raises(ValueError):
        cache.write_block(0, b"short")


def test_out_of_range_block_rejected(disk):
    cache = CacheManager(disk, 4, BS)
    with pytest.raises(DiskError):
        cache.write_block(disk.total_blocks, _block(1))
    with pytest.raises(DiskError):
        cache.read_block(disk.total_blocks)


def test_zero_pages_rejected(disk):
    with pytest.raises(ValueError):
        CacheManager(disk, 0, BS)