"""Request epochs for discarding stale async results."""


class Epoch:
    """
    Monotonic counter shared by one kind of async operation.

    An operation calls `begin()` when it starts and checks `is_current()`
    before writing its result. Starting a newer operation makes every older
    one stale; nothing in flight is cancelled, its result is just dropped.
    """

    def __init__(self) -> None:
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def begin(self) -> int:
        self._value += 1
        return self._value

    def is_current(self, epoch: int) -> bool:
        return epoch == self._value

    def reset(self) -> None:
        # Bumping instead of zeroing keeps pre-reset operations stale.
        self._value += 1
