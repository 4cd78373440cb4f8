"""Interior-mutable cells for a uniprocessor that mask interrupts while borrowed."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")
V = TypeVar("V")


class BorrowError(RuntimeError):
    """The cell is already borrowed."""


@dataclass
class InterruptState:
    """The supervisor interrupt-enable bit of the processor."""

    sie: bool = False


class IntrMaskingInfo:
    """Nesting counter that disables interrupts and restores them on the last exit."""

    def __init__(self, state: Optional[InterruptState] = None) -> None:
        self.state = state if state is not None else InterruptState()
        self.nested_level = 0
        self.sie_before_masking = False

    def enter(self) -> None:
        sie = self.state.sie
        self.state.sie = False
        if self.nested_level == 0:
            self.sie_before_masking = sie
        self.nested_level += 1

    def exit(self) -> None:
        if self.nested_level == 0:
            raise RuntimeError("interrupt masking is not active")
        self.nested_level -= 1
        if self.nested_level == 0 and self.sie_before_masking:
            self.state.sie = True


INTR_MASKING_INFO = IntrMaskingInfo()


class _RefMut(Generic[T]):
    """Exclusive access to a cell's value; interrupts stay masked until released."""

    def __init__(self, cell: "UPIntrFreeCell[T]") -> None:
        self._cell = cell
        self._active = True

    @property
    def value(self) -> T:
        self._check()
        return self._cell._value

    @value.setter
    def value(self, new: T) -> None:
        self._check()
        self._cell._value = new

    def _check(self) -> None:
        if not self._active:
            raise BorrowError("access after release")

    def release(self) -> None:
        if self._active:
            self._active = False
            self._cell._borrowed = False
            self._cell._masking.exit()

    def __enter__(self) -> "_RefMut[T]":
        return self

    def __exit__(self, *args) -> None:
        self.release()


class UPIntrFreeCell(Generic[T]):
    """A value that is accessed exclusively with interrupts masked."""

    def __init__(self, value: T, masking: Optional[IntrMaskingInfo] = None) -> None:
        self._value = value
        self._masking = masking if masking is not None else INTR_MASKING_INFO
        self._borrowed = False

    def exclusive_access(self) -> _RefMut[T]:
        """Borrow the value; raises BorrowError if it is already borrowed."""
        self._masking.enter()
        if self._borrowed:
            self._masking.exit()
            raise BorrowError("already borrowed")
        self._borrowed = True
        return _RefMut(self)

    def exclusive_session(self, func: Callable[[T], V]) -> V:
        """Call ``func`` on the value while holding exclusive access."""
        with self.exclusive_access() as guard:
            return func(guard.value)