# sandbox/runtime.py
from __future__ import annotations

import asyncio
import importlib
from collections import defaultdict

from sandbox.objects import (
    BARS, CHANGE_EVENTS, OBJECT_TYPES, Attribute, ChatMessage, Graphic, HostObject, bar_key,
)


class Sandbox:
    """
    The scripting host: object store, event bus, log sink and timers.

    Scripts are handed this object and only use `on`, `find_objs`, `get_obj`,
    `log`, `set_timeout` and `send_chat`. Everything else is the host's side
    (players changing things, chat arriving, campaign storage).
    """

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None, sink=print):
        self._loop = loop
        self._sink = sink
        self._handlers = defaultdict(list)
        self._objects: dict[str, HostObject] = {}
        self._chat_listeners = []
        self.scripts = {}

    # ---------- script API ----------

    def on(self, event: str, callback) -> None:
        self._handlers[event].append(callback)

    def log(self, message) -> None:
        self._sink(str(message))

    def find_objs(self, attrs: dict) -> list[HostObject]:
        """Every object whose properties equal all of `attrs` (`type`/`id` may omit the underscore)."""
        want = {}
        for k, v in attrs.items():
            want["_" + k if k in ("type", "id") else k] = v
        return [o for o in self._objects.values() if all(o.get(k, None) == v for k, v in want.items())]

    def get_obj(self, obj_type: str, obj_id: str) -> HostObject | None:
        obj = self._objects.get(obj_id)
        if obj is None or obj.obj_type != obj_type:
            return None
        return obj

    def set_timeout(self, callback, delay_ms: int) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0, delay_ms) / 1000, self._guarded, "timeout", callback)

    def send_chat(self, speaker: str, text: str) -> None:
        for listener in list(self._chat_listeners):
            listener(speaker, text)

    # ---------- host side ----------

    def add_chat_listener(self, listener) -> None:
        self._chat_listeners.append(listener)

    def trigger(self, event: str, *args) -> None:
        for cb in list(self._handlers.get(event, ())):
            self._guarded(event, cb, *args)

    def _guarded(self, label: str, callback, *args):
        # script errors are logged; the session keeps running
        try:
            callback(*args)
        except Exception as e:
            self.log(f"[sandbox] {label} handler {getattr(callback, '__qualname__', callback)} failed: {type(e).__name__}: {e}")

    def create_obj(self, obj_type: str, **props) -> HostObject:
        cls = OBJECT_TYPES.get(obj_type)
        if cls is None:
            raise ValueError(f"Unknown object type: {obj_type}")
        obj = cls(props.pop("_id", None), **props)
        self._objects[obj.id] = obj
        return obj

    def remove_obj(self, obj: HostObject) -> None:
        self._objects.pop(obj.id, None)

    def all_objs(self, obj_type: str | None = None) -> list[HostObject]:
        return [o for o in self._objects.values() if obj_type is None or o.obj_type == obj_type]

    def clear(self) -> None:
        self._objects.clear()

    def link_bar(self, token: Graphic, bar: int, attribute: Attribute | None) -> None:
        """Link (or with None, unlink) a token bar to an attribute; the bar takes the attribute's values."""
        if bar not in BARS:
            raise ValueError(f"Bar must be one of {BARS}, got {bar!r}")
        if attribute is None:
            token._host_set(bar_key(bar, "link"), "")
            return
        token._host_set(bar_key(bar, "link"), attribute.id)
        token.set({bar_key(bar): attribute.get("current"), bar_key(bar, "max"): attribute.get("max")})

    def update(self, obj: HostObject, **changes) -> dict:
        """
        A player-initiated change: apply `changes`, then fire the object's
        change event with the previous property snapshot. Linked bars carry
        their new value/max into the backing attribute.
        """
        previous = obj.snapshot()
        obj.set(changes)
        if isinstance(obj, Graphic):
            for bar in BARS:
                link = obj.get(bar_key(bar, "link"))
                if not link:
                    continue
                attr = self.get_obj("attribute", link)
                if attr is None:
                    continue
                if bar_key(bar) in changes:
                    attr.set("current", changes[bar_key(bar)])
                if bar_key(bar, "max") in changes:
                    attr.set("max", changes[bar_key(bar, "max")])
        event = CHANGE_EVENTS.get(obj.obj_type)
        if event:
            self.trigger(event, obj, previous)
        return previous

    def chat(self, content: str, who: str = "", playerid: str = "") -> ChatMessage:
        msg = ChatMessage(content, who=who, playerid=playerid)
        self.trigger("chat:message", msg)
        return msg

    def load_script(self, name: str, **options):
        """Import a script module and call its `register(sandbox, **options)`."""
        module = importlib.import_module(name)
        register = getattr(module, "register", None)
        if register is None:
            raise ValueError(f"Script {name} has no register() function.")
        self.scripts[name] = register(self, **options)
        return self.scripts[name]
