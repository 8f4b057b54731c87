# sandbox/store.py
import os
import re

from sandbox.objects import OBJECT_TYPES
from utils.ini import new_cfg, read_cfg, write_cfg

# only gauge-like properties are numbers; names, links and ids stay text
_NUMERIC_KEY = re.compile(r"bar[123]_(value|max)|current|max")
_INT_RE = re.compile(r"-?[1-9]\d*|0")


def _restore(key: str, value: str):
    if _NUMERIC_KEY.fullmatch(key) and _INT_RE.fullmatch(value):
        return int(value)
    return value


def save_campaign(sandbox, path: str) -> int:
    """Write every host object to `path`, one `[type:id]` section each. Returns the object count."""
    cfg = new_cfg()
    objs = sandbox.all_objs()
    for obj in objs:
        sec = f"{obj.obj_type}:{obj.id}"
        cfg.add_section(sec)
        for k, v in obj.snapshot().items():
            if k in ("_id", "_type"):
                continue
            cfg.set(sec, k, "" if v is None else str(v))
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    tmp = path + ".tmp"
    write_cfg(tmp, cfg)
    os.replace(tmp, path)
    return len(objs)


def load_campaign(sandbox, path: str) -> int:
    """Replace the sandbox's objects with the ones stored at `path`. Returns the object count."""
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    cfg = read_cfg(path)
    sandbox.clear()
    count = 0
    for sec in cfg.sections():
        obj_type, _, obj_id = sec.partition(":")
        if obj_type not in OBJECT_TYPES or not obj_id:
            sandbox.log(f"[sandbox] skipping unknown section [{sec}] in {path}")
            continue
        props = {k: _restore(k, v) for k, v in cfg[sec].items()}
        sandbox.create_obj(obj_type, _id=obj_id, **props)
        count += 1
    return count
