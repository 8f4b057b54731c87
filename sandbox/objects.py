# sandbox/objects.py
from __future__ import annotations

import uuid

BARS = (1, 2, 3)


def new_id() -> str:
    return "-" + uuid.uuid4().hex[:19]


def bar_key(bar, field: str = "value") -> str:
    """`bar_key(1)` -> 'bar1_value', `bar_key(3, 'link')` -> '_bar3_link'."""
    if field == "link":
        return f"_bar{bar}_link"
    return f"bar{bar}_{field}"


class HostObject:
    """
    A host-owned game object. Scripts read and write it through `get`/`set`;
    properties starting with '_' are read-only to scripts.
    """
    obj_type = ""
    defaults: dict = {}

    def __init__(self, obj_id: str | None = None, **props):
        self._props = {"_id": obj_id or new_id(), "_type": self.obj_type}
        self._props.update(self.defaults)
        self._props.update(props)

    @property
    def id(self) -> str:
        return self._props["_id"]

    def get(self, key: str, fallback=""):
        if key in self._props:
            return self._props[key]
        # scripts may ask for 'id' or '_id' interchangeably
        if not key.startswith("_") and f"_{key}" in self._props:
            return self._props[f"_{key}"]
        return fallback

    def set(self, key, value=None) -> None:
        changes = key if isinstance(key, dict) else {key: value}
        for k, v in changes.items():
            if k.startswith("_"):
                continue
            self._props[k] = v

    def snapshot(self) -> dict:
        return dict(self._props)

    def _host_set(self, key: str, value) -> None:
        self._props[key] = value

    def __repr__(self):
        name = self._props.get("name", "")
        return f"<{type(self).__name__} {self.id} {name!r}>"


class Graphic(HostObject):
    obj_type = "graphic"
    defaults = {
        "name": "",
        "represents": "",
        **{bar_key(b, f): "" for b in BARS for f in ("value", "max", "link")},
    }


class Character(HostObject):
    obj_type = "character"
    defaults = {"name": ""}


class Attribute(HostObject):
    obj_type = "attribute"
    defaults = {"_characterid": "", "name": "", "current": "", "max": ""}


OBJECT_TYPES = {cls.obj_type: cls for cls in (Graphic, Character, Attribute)}

# event name fired when a player changes an object of that type
CHANGE_EVENTS = {
    "graphic": "change:token",
    "character": "change:character",
    "attribute": "change:attribute",
}


class ChatMessage:
    def __init__(self, content: str, who: str = "", playerid: str = "", type: str | None = None):
        self.content = content
        self.who = who
        self.playerid = playerid
        self.type = type or ("api" if content.startswith("!") else "general")

    def __repr__(self):
        return f"<ChatMessage {self.type} {self.who!r}: {self.content!r}>"
