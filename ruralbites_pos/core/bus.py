from collections import defaultdict
from types import MethodType
from typing import Callable, DefaultDict, List, Union
import weakref

# Events raised by the ordering engine.
DRAFT_SAVED = "draft_saved"
DRAFT_SAVE_FAILED = "draft_save_failed"
DRAFT_LOAD_FAILED = "draft_load_failed"
HISTORY_LOAD_FAILED = "history_load_failed"
BILL_FINALIZED = "bill_finalized"
BILL_SAVE_FAILED = "bill_save_failed"
TABLE_STATE_CHANGED = "table_state_changed"
TABLE_TOTAL_CHANGED = "table_total_changed"

_Listener = Union[Callable[..., None], weakref.WeakMethod]


class EventBus:
    """Minimal pub/sub helper that avoids retaining dead listeners."""

    __slots__ = ("_subs",)

    def __init__(self) -> None:
        self._subs: DefaultDict[str, List[_Listener]] = defaultdict(list)

    def subscribe(self, event_name: str, callback: Callable[..., None]) -> None:
        listeners = self._subs[event_name]
        if isinstance(callback, MethodType):
            listeners.append(weakref.WeakMethod(callback))
        else:
            listeners.append(callback)

    def unsubscribe(self, event_name: str, callback: Callable[..., None]) -> None:
        listeners = self._subs.get(event_name)
        if not listeners:
            return
        kept: List[_Listener] = []
        for cb in listeners:
            target = cb() if isinstance(cb, weakref.WeakMethod) else cb
            if target is None or target == callback:
                continue
            kept.append(cb)
        self._subs[event_name] = kept

    def emit(self, event_name: str, *args, **kwargs) -> None:
        listeners = self._subs.get(event_name)
        if not listeners:
            return

        alive: List[_Listener] = []
        for cb in list(listeners):
            if isinstance(cb, weakref.WeakMethod):
                fn = cb()
                if fn is None:
                    continue
                fn(*args, **kwargs)
            else:
                cb(*args, **kwargs)
            alive.append(cb)
        self._subs[event_name] = alive

    def listener_count(self, event_name: str) -> int:
        return len(self._subs.get(event_name, ()))


bus = EventBus()
