import io

import pytest

from vdiskfs.bitmap import FreeBitmap
from vdiskfs.config import NoSpaceError


def test_zero_blocks_rejected():
    with pytest.raises(ValueError):
        FreeBitmap(0)


def test_new_bitmap_is_all_free():
    bm = FreeBitmap(20)
    assert bm.total_blocks == 20
    assert bm.free_blocks == 20
    assert bm.used_blocks == 0
    assert bm.usage_ratio == 0.0
    assert not any(bm.is_block_allocated(b) for b in range(20))


def test_allocate_block_returns_lowest_free_in_order():
    bm = FreeBitmap(10)
    blocks = [bm.allocate_block() for _ in range(4)]
    assert blocks == list(range(4))
    assert bm.free_blocks == 10 - 4
    assert bm.validate()


def test_allocate_block_reuses_freed_hole():
    bm = FreeBitmap(10)
    for _ in range(5):
        bm.allocate_block()
    bm.free_block(2)
    assert not bm.is_block_allocated(2)
    assert bm.allocate_block() == 2


def test_allocate_block_exhaustion():
    bm = FreeBitmap(3)
    for _ in range(3):
        bm.allocate_block()
    with pytest.raises(NoSpaceError):
        bm.allocate_block()
    assert bm.usage_ratio == 1.0


def test_consecutive_allocation_skips_too_short_runs():
    bm = FreeBitmap(16)
    bm.mark_block_used(2)
    start = bm.allocate_consecutive_blocks(3)
    assert start == 3
    assert all(bm.is_block_allocated(b) for b in range(3, 6))
    assert bm.free_blocks == 16 - 1 - 3


def test_consecutive_allocation_errors():
    bm = FreeBitmap(8)
    with pytest.raises(ValueError):
        bm.allocate_consecutive_blocks(0)
    with pytest.raises(NoSpaceError):
        bm.allocate_consecutive_blocks(9)
    bm.mark_block_used(4)
    with pytest.raises(NoSpaceError):
        bm.allocate_consecutive_blocks(5)
    assert bm.free_blocks == 7


def test_free_consecutive_blocks_clips_to_disk():
    bm = FreeBitmap(8)
    start = bm.allocate_consecutive_blocks(8)
    assert start == 0
    bm.free_consecutive_blocks(5, 100)
    assert bm.free_blocks == 3
    assert bm.is_block_allocated(4)
    assert not bm.is_block_allocated(7)


def test_out_of_range_operations_are_ignored():
    bm = FreeBitmap(8)
    bm.mark_block_used(8)
    bm.free_block(99)
    bm.free_consecutive_blocks(8, 2)
    assert bm.free_blocks == 8
    assert bm.is_block_allocated(8) is False
    assert bm.is_block_allocated(-1) is False


def test_double_free_and_double_mark_keep_count_consistent():
    bm = FreeBitmap(8)
    bm.mark_block_used(1)
    bm.mark_block_used(1)
    assert bm.used_blocks == 1
    bm.free_block(1)
    bm.free_block(1)
    assert bm.used_blocks == 0
    assert bm.validate()


def test_initialize_clears_everything():
    bm = FreeBitmap(12)
    bm.allocate_consecutive_blocks(7)
    bm.initialize()
    assert bm.free_blocks == 12
    assert bm.to_bytes() == bytes(2)


def test_to_bytes_bit_layout():
    bm = FreeBitmap(16)
    bm.mark_block_used(0)
    bm.mark_block_used(9)
    assert bm.to_bytes() == b"\x01\x02"


def test_bytes_round_trip():
    src = FreeBitmap(30)
    src.allocate_consecutive_blocks(5)
    src.mark_block_used(17)
    src.mark_block_used(29)
    dst = FreeBitmap(30)
    dst.load_bytes(src.to_bytes())
    assert dst.to_bytes() == src.to_bytes()
    assert dst.free_blocks == src.free_blocks
    assert dst.validate()


def test_load_bytes_too_short():
    bm = FreeBitmap(16)
    with pytest.raises(ValueError):
        bm.load_bytes(b"\x00")


def test_load_bytes_ignores_extra_data():
    bm = FreeBitmap(8)
    bm.load_bytes(b"\xff\xff\xff")
    assert bm.to_bytes() == b"\xff"
    assert bm.free_blocks == 0


def test_status_report_contents():
    bm = FreeBitmap(16)
    bm.mark_block_used(0)
    bm.mark_block_used(9)
    report = bm.status_report()
    assert "=== 空闲盘块表状态 ===" in report
    assert "总块数: 16" in report
    assert "空闲块数: 14" in report
    assert "已使用块数: 2" in report
    assert "使用率: 12.50%" in report
    assert "位图样本（前2字节）: 01 02 " in report


def test_print_status_writes_report():
    bm = FreeBitmap(40)
    bm.allocate_consecutive_blocks(3)
    out = io.StringIO()
    bm.print_status(out)
    assert out.getvalue() == bm.status_report()