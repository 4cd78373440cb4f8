import pytest

from easyos.mm.address import PAGE_SIZE, PhysPageNum
from easyos.mm.frame_allocator import FrameAllocationError, StackFrameAllocator
from easyos.mm.physmem import PhysicalMemory


@pytest.fixture
def allocator():
    alloc = StackFrameAllocator(PhysicalMemory())
    alloc.init(PhysPageNum(10), PhysPageNum(13))
    return alloc


def test_init_reports_frame_count():
    alloc = StackFrameAllocator(PhysicalMemory())
    assert alloc.init(PhysPageNum(100), PhysPageNum(150)) == 50


def test_allocates_in_order_until_exhausted(allocator):
    got = [allocator.alloc() for _ in range(3)]
    assert got == [PhysPageNum(10), PhysPageNum(11), PhysPageNum(12)]
    assert allocator.alloc() is None


def test_recycled_frames_reused_last_first(allocator):
    a, b = allocator.alloc(), allocator.alloc()
    allocator.dealloc(a)
    allocator.dealloc(b)
    assert allocator.alloc() == b
    assert allocator.alloc() == a


def test_dealloc_unallocated_rejected(allocator):
    allocator.alloc()
    with pytest.raises(FrameAllocationError):
        allocator.dealloc(PhysPageNum(12))


def test_double_dealloc_rejected(allocator):
    ppn = allocator.alloc()
    allocator.dealloc(ppn)
    with pytest.raises(FrameAllocationError):
        allocator.dealloc(ppn)


def test_frame_alloc_zeroes_page(allocator):
    frame = allocator.frame_alloc()
    allocator.memory.page(frame.ppn)[:4] = b"junk"
    frame.release()
    again = allocator.frame_alloc()
    assert again.ppn == frame.ppn
    assert bytes(allocator.memory.page(again.ppn)) == bytes(PAGE_SIZE)


def test_release_is_idempotent(allocator):
    frame = allocator.frame_alloc()
    frame.release()
    frame.release()
    assert allocator.recycled == [frame.ppn.value]


def test_context_manager_releases(allocator):
    with allocator.frame_alloc() as frame:
        ppn = frame.ppn
    assert allocator.alloc() == ppn


def test_frame_alloc_returns_none_when_exhausted(allocator):
    frames = [allocator.frame_alloc() for _ in range(3)]
    assert all(f is not None for f in frames)
    assert allocator.frame_alloc() is None


def test_tracker_repr(allocator):
    assert repr(allocator.frame_alloc()) == "FrameTracker:PPN=0xa"