"""The QEMU virt board: device addresses, interrupt setup and the exit device."""

from __future__ import annotations

from typing import Callable, Mapping

from ..mm.memory_set import MMIO
from .plic import PLIC, IntrTargetPriority, MmioBus

CLOCK_FREQ = 12500000

VIRT_PLIC = 0xC00_0000
VIRT_UART = 0x1000_0000
VIRT_TEST = 0x100000

VIRTGPU_XRES = 1280
VIRTGPU_YRES = 800

KEYBOARD_IRQ = 5
MOUSE_IRQ = 6
BLOCK_IRQ = 8
UART_IRQ = 10
DEVICE_IRQS = (KEYBOARD_IRQ, MOUSE_IRQ, BLOCK_IRQ, UART_IRQ)

EXIT_SUCCESS = 0x5555
EXIT_FAILURE_FLAG = 0x3333
EXIT_RESET = 0x7777


def exit_code_encode(code: int) -> int:
    """Encode an exit code for the test device."""
    return ((code << 16) | EXIT_FAILURE_FLAG) & 0xFFFF_FFFF


EXIT_FAILURE = exit_code_encode(1)

__all_mmio__ = MMIO


class QemuExitRequested(SystemExit):
    """The guest asked the emulator to stop; ``value`` is the word written."""

    def __init__(self, value: int) -> None:
        super().__init__(value)
        self.value = value


class QemuExit:
    """The sifive test device through which the guest ends emulation."""

    def __init__(self, bus: MmioBus, addr: int = VIRT_TEST) -> None:
        self.bus = bus
        self.addr = addr

    def exit(self, code: int) -> None:
        """Write ``code`` (encoded unless special) to the device and stop."""
        if code in (EXIT_SUCCESS, EXIT_FAILURE, EXIT_RESET):
            value = code
        else:
            value = exit_code_encode(code)
        self.bus.write_u32(self.addr, value)
        raise QemuExitRequested(value)

    def exit_success(self) -> None:
        self.exit(EXIT_SUCCESS)

    def exit_failure(self) -> None:
        self.exit(EXIT_FAILURE)


def device_init(bus: MmioBus) -> PLIC:
    """Route the board's device interrupts to the supervisor on hart 0."""
    plic = PLIC(bus, VIRT_PLIC)
    hart_id = 0
    supervisor = IntrTargetPriority.SUPERVISOR
    plic.set_threshold(hart_id, supervisor, 0)
    plic.set_threshold(hart_id, IntrTargetPriority.MACHINE, 1)
    for intr_src_id in DEVICE_IRQS:
        plic.enable(hart_id, supervisor, intr_src_id)
        plic.set_priority(intr_src_id, 1)
    return plic


def dispatch_irq(bus: MmioBus, handlers: Mapping[int, Callable[[], None]]) -> int:
    """Claim the pending interrupt, run its handler, complete it; return its id."""
    plic = PLIC(bus, VIRT_PLIC)
    intr_src_id = plic.claim(0, IntrTargetPriority.SUPERVISOR)
    handler = handlers.get(intr_src_id)
    if handler is None:
        raise RuntimeError(f"unsupported IRQ {intr_src_id}")
    handler()
    plic.complete(0, IntrTargetPriority.SUPERVISOR, intr_src_id)
    return intr_src_id