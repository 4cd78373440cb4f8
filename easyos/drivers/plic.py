"""The platform-level interrupt controller, programmed over a memory-mapped bus."""

from __future__ import annotations

import enum

_U32 = 0xFFFF_FFFF
_MAX_SOURCE = 132


class MmioBus:
    """A 32-bit register space; registers never written read as zero."""

    def __init__(self) -> None:
        self.registers: dict[int, int] = {}

    def read_u32(self, addr: int) -> int:
        return self.registers.get(addr, 0)

    def write_u32(self, addr: int, value: int) -> None:
        self.registers[addr] = value & _U32


class IntrTargetPriority(enum.IntEnum):
    MACHINE = 0
    SUPERVISOR = 1

    @staticmethod
    def supported_number() -> int:
        return 2


class PLIC:
    """Register-level access to a PLIC at ``base_addr``."""

    def __init__(self, bus: MmioBus, base_addr: int) -> None:
        self.bus = bus
        self.base_addr = base_addr

    def _priority_addr(self, intr_source_id: int) -> int:
        if not 0 < intr_source_id <= _MAX_SOURCE:
            raise ValueError(f"interrupt source {intr_source_id} out of range")
        return self.base_addr + intr_source_id * 4

    @staticmethod
    def _context(hart_id: int, target_priority: IntrTargetPriority) -> int:
        return hart_id * IntrTargetPriority.supported_number() + int(target_priority)

    def _enable_addr(
        self, hart_id: int, target_priority: IntrTargetPriority, intr_source_id: int
    ) -> tuple[int, int]:
        context = self._context(hart_id, target_priority)
        reg_id, reg_shift = divmod(intr_source_id, 32)
        return self.base_addr + 0x2000 + 0x80 * context + 0x4 * reg_id, reg_shift

    def _threshold_addr(self, hart_id: int, target_priority: IntrTargetPriority) -> int:
        return self.base_addr + 0x20_0000 + 0x1000 * self._context(hart_id, target_priority)

    def _claim_complete_addr(self, hart_id: int, target_priority: IntrTargetPriority) -> int:
        return self.base_addr + 0x20_0004 + 0x1000 * self._context(hart_id, target_priority)

    def set_priority(self, intr_source_id: int, priority: int) -> None:
        if not 0 <= priority < 8:
            raise ValueError(f"priority {priority} out of range")
        self.bus.write_u32(self._priority_addr(intr_source_id), priority)

    def get_priority(self, intr_source_id: int) -> int:
        return self.bus.read_u32(self._priority_addr(intr_source_id)) & 7

    def enable(
        self, hart_id: int, target_priority: IntrTargetPriority, intr_source_id: int
    ) -> None:
        addr, shift = self._enable_addr(hart_id, target_priority, intr_source_id)
        self.bus.write_u32(addr, self.bus.read_u32(addr) | 1 << shift)

    def disable(
        self, hart_id: int, target_priority: IntrTargetPriority, intr_source_id: int
    ) -> None:
        addr, shift = self._enable_addr(hart_id, target_priority, intr_source_id)
        self.bus.write_u32(addr, self.bus.read_u32(addr) & ~(1 << shift))

    def is_enabled(
        self, hart_id: int, target_priority: IntrTargetPriority, intr_source_id: int
    ) -> bool:
        addr, shift = self._enable_addr(hart_id, target_priority, intr_source_id)
        return bool(self.bus.read_u32(addr) >> shift & 1)

    def set_threshold(
        self, hart_id: int, target_priority: IntrTargetPriority, threshold: int
    ) -> None:
        if not 0 <= threshold < 8:
            raise ValueError(f"threshold {threshold} out of range")
        self.bus.write_u32(self._threshold_addr(hart_id, target_priority), threshold)

    def get_threshold(self, hart_id: int, target_priority: IntrTargetPriority) -> int:
        return self.bus.read_u32(self._threshold_addr(hart_id, target_priority)) & 7

    def claim(self, hart_id: int, target_priority: IntrTargetPriority) -> int:
        """The id of the highest-priority pending interrupt, 0 if none."""
        return self.bus.read_u32(self._claim_complete_addr(hart_id, target_priority))

    def complete(
        self, hart_id: int, target_priority: IntrTargetPriority, completion: int
    ) -> None:
        """Signal that handling of interrupt ``completion`` is done."""
        self.bus.write_u32(self._claim_complete_addr(hart_id, target_priority), completion)