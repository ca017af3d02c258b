"""
Synchronous, ordered change-notification channel.

Listeners are called in registration order, within the `dispatch` call.
"""

import typing

from .exceptions import SignalError
from .typing import Listener


__all__ = ["Signal", "SignalBinding"]


class SignalBinding:
    """Association between a signal and one of its listeners."""

    __slots__ = ("signal", "listener", "once", "active")

    def __init__(self, signal: "Signal", listener: Listener, once: bool = False):
        self.signal = signal
        self.listener = listener
        self.once = once
        self.active = True
        """Inactive bindings stay attached but are skipped on dispatch."""

    def execute(self, args: typing.Tuple[typing.Any, ...]) -> typing.Any:
        if not self.active:
            return None
        if self.once:
            self.detach()
        return self.listener(*args)

    def detach(self) -> None:
        self.signal.remove(self.listener)

    def is_bound(self) -> bool:
        return self.signal.has(self.listener)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(listener={self.listener!r}, "
            f"once={self.once}, active={self.active})"
        )


class Signal:
    """
    Observer list with ordered delivery and one-shot listeners.

    Example:
    ```python
    changed = Signal()
    changed.add(lambda name, new, old: print(name, new, old))
    changed.add_once(lambda *args: print("first change only"))
    changed.dispatch("title", "new", "old")
    ```

    A listener returning `False` stops propagation to the listeners after it,
    as does calling `halt()` from within a listener.
    """

    def __init__(self) -> None:
        self._bindings: typing.List[SignalBinding] = []
        self._halted = False
        self._disposed = False
        self.active = True
        """If False, `dispatch` does nothing."""

    def _check_disposed(self) -> None:
        if self._disposed:
            raise SignalError("Signal has been disposed and can no longer be used.")

    def _find(self, listener: Listener) -> int:
        for index, binding in enumerate(self._bindings):
            if binding.listener == listener:
                return index
        return -1

    def _register(self, listener: Listener, once: bool) -> SignalBinding:
        self._check_disposed()
        if not callable(listener):
            raise SignalError(f"Listener {listener!r} is not callable.")

        index = self._find(listener)
        if index != -1:
            binding = self._bindings[index]
            if binding.once != once:
                added_with = "add_once()" if binding.once else "add()"
                raise SignalError(
                    f"Listener {listener!r} was attached with {added_with}. "
                    "Remove it before attaching it again the other way."
                )
            return binding

        binding = SignalBinding(self, listener, once=once)
        self._bindings.append(binding)
        return binding

    def add(self, listener: Listener) -> SignalBinding:
        """Attach a listener. Adding an attached listener returns its binding."""
        return self._register(listener, once=False)

    def add_once(self, listener: Listener) -> SignalBinding:
        """Attach a listener that is removed right before its first call."""
        return self._register(listener, once=True)

    def remove(self, listener: Listener) -> Listener:
        self._check_disposed()
        index = self._find(listener)
        if index != -1:
            del self._bindings[index]
        return listener

    def remove_all(self) -> None:
        self._bindings.clear()

    def has(self, listener: Listener) -> bool:
        return self._find(listener) != -1

    def halt(self) -> None:
        """Stop the dispatch in progress. Has no effect outside of a dispatch."""
        self._halted = True

    def dispatch(self, *args: typing.Any) -> None:
        """Call every listener in registration order with `args`."""
        self._check_disposed()
        if not self.active:
            return

        # Listeners may attach or detach bindings while being called.
        bindings = list(self._bindings)
        outer_halted = self._halted
        self._halted = False
        try:
            for binding in bindings:
                if self._halted:
                    break
                if binding.execute(args) is False:
                    break
        finally:
            self._halted = outer_halted

    def dispose(self) -> None:
        """Remove all listeners. The signal cannot be used afterwards."""
        self.remove_all()
        self._disposed = True

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(listeners={len(self)}, active={self.active})"
