# utils/config.py
import os
from dataclasses import dataclass

from utils.ini import read_cfg, resolve_section, get_compat, getint_compat, getbool_compat

SECTION = "dd4e"
VALID_BARS = (1, 2, 3)


@dataclass(frozen=True)
class Config:
    # Hit Points
    hp_attribute: str = "Hit Points"
    hp_bar: int = 1

    # Temporary Hit Points
    thp_attribute: str = "Temporary Hit Points"
    thp_bar: int = 3

    # Log output
    debug: bool = True
    error: bool = True
    notice: bool = True
    warn: bool = True

    # Milliseconds to wait before writing a bar
    latency: int = 10


def load_config(path: str | None = None) -> Config:
    """
    Read script settings from the [dd4e] section of an ini file.
    Keys match the field names, case-insensitively (`HP_BAR`, `hp_bar`, ...).
    A missing file or missing keys fall back to the defaults.
    """
    d = Config()
    if not path or not os.path.exists(path):
        cfg = None
        sec = None
    else:
        cfg = read_cfg(path)
        sec = resolve_section(cfg, SECTION)

    if sec is None:
        conf = d
    else:
        conf = Config(
            hp_attribute=get_compat(cfg, sec, "hp_attribute", fallback=d.hp_attribute).strip(),
            hp_bar=getint_compat(cfg, sec, "hp_bar", fallback=d.hp_bar),
            thp_attribute=get_compat(cfg, sec, "thp_attribute", fallback=d.thp_attribute).strip(),
            thp_bar=getint_compat(cfg, sec, "thp_bar", fallback=d.thp_bar),
            debug=getbool_compat(cfg, sec, "debug", fallback=d.debug),
            error=getbool_compat(cfg, sec, "error", fallback=d.error),
            notice=getbool_compat(cfg, sec, "notice", fallback=d.notice),
            warn=getbool_compat(cfg, sec, "warn", fallback=d.warn),
            latency=max(0, getint_compat(cfg, sec, "latency", fallback=d.latency)),
        )

    if conf.hp_bar not in VALID_BARS or conf.thp_bar not in VALID_BARS:
        raise ValueError(f"HP_BAR and THP_BAR must be one of {VALID_BARS} (got {conf.hp_bar}, {conf.thp_bar}).")
    if conf.hp_bar == conf.thp_bar:
        raise ValueError(f"HP_BAR and THP_BAR cannot share bar {conf.hp_bar}.")
    return conf
