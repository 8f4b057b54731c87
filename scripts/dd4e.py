# scripts/dd4e.py
"""
D&D 4th Edition hit point automation.

Watches token bar changes and applies the temporary hit point rules:
damage comes off THP before HP, and THP from different sources never
stack (a token keeps whichever is higher).
"""
from __future__ import annotations

import re

from sandbox.objects import BARS, bar_key
from utils.config import Config
from utils.log import ScriptLog

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_int(value) -> int | None:
    """Leading integer of `value` ('12', 12, '7 hp', 3.9 -> 3), or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and abs(value) != float("inf") else None
    m = _LEADING_INT.match(str(value if value is not None else ""))
    return int(m.group(1)) if m else None


def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def absorb_damage(current: int, previous: int, thp: int) -> tuple[int, int]:
    """
    HP went from `previous` to `current` while the token had `thp`.
    Returns the (hp, thp) the token should end up with.
    """
    if thp <= 0 or current >= previous:
        return current, thp
    change = current - previous
    if thp + change >= 0:
        return previous, thp + change
    return previous + thp + change, 0


def keep_highest(current: int, previous: int) -> int:
    return current if current > previous else previous


def parse_command(content: str) -> tuple[str, dict, str]:
    """
    '!damage --token=abc --quiet 5 fire' -> ('damage', {'token': 'abc', 'quiet': True}, '5 fire')
    Flags stop at the first word that is not a `--flag`.
    """
    words = content.split()
    if not words:
        return "", {}, ""
    command = words.pop(0)[1:].lower()
    flags = {}
    while words and words[0].startswith("--"):
        name, sep, value = words.pop(0)[2:].partition("=")
        flags[name] = value if sep else True
    return command, flags, " ".join(words)


class FourthEdition:
    def __init__(self, sandbox, config: Config | None = None):
        self.sandbox = sandbox
        self.config = config or Config()
        self.logger = ScriptLog(sandbox.log, self.config)
        self.commands = {}
        # (token id, bar) -> last value scheduled by set_bar and not yet written
        self._pending = {}

        self.hp_value = bar_key(self.config.hp_bar)
        self.thp_value = bar_key(self.config.thp_bar)

    # ---------- validators ----------

    def has_thp(self, token) -> bool:
        self.logger.debug("has_thp")
        thp = parse_int(token.get(self.thp_value))
        return thp is not None and thp > 0

    def is_hp_change(self, token, previous: dict) -> bool:
        self.logger.debug("is_hp_change")
        return token.get(self.hp_value) != previous.get(self.hp_value, "")

    def is_thp_change(self, token, previous: dict) -> bool:
        self.logger.debug("is_thp_change")
        return token.get(self.thp_value) != previous.get(self.thp_value, "")

    # ---------- model changers ----------

    def set_bar(self, token, bar, value):
        """
        Write a bar (and its linked attribute) after `latency` ms.

        TODO: drop the delay once bar writes no longer race the host's own
              update of the same token.
        """
        self._pending[(token.get("_id"), bar)] = value
        return self.sandbox.set_timeout(lambda: self._flush_bar(token, bar, value), self.config.latency)

    def bar_value(self, token, bar):
        """The value a bar will hold once scheduled writes land."""
        key = (token.get("_id"), bar)
        if key in self._pending:
            return self._pending[key]
        return token.get(bar_key(bar))

    def _flush_bar(self, token, bar, value):
        key = (token.get("_id"), bar)
        if key in self._pending and self._pending[key] == value:
            del self._pending[key]
        self._write_bar(token, bar, value)

    def _write_bar(self, token, bar, value):
        self.logger.debug("set_bar (%s, %s, %s)", token.get("_id"), bar, value)

        if isinstance(bar, bool) or not isinstance(bar, int) or bar not in BARS or not is_number(value):
            self.logger.warn("Could not adjust bar; invalid bar or value.")
            return

        link = token.get(bar_key(bar, "link"))
        if link:
            attrs = self.sandbox.find_objs({"_type": "attribute", "_id": link})
            if len(attrs) == 1:
                attrs[0].set({"current": value})
            else:
                self.logger.warn('Could not find associated attribute for bar "%s" on token "%s".', bar, token.get("_id"))
        token.set(bar_key(bar), value)

    # ---------- change handlers ----------

    def change_hp(self, token, previous: dict):
        current = parse_int(token.get(self.hp_value))
        before = parse_int(previous.get(self.hp_value))
        thp = parse_int(token.get(self.thp_value))

        self.logger.debug("change_hp (%s, %s, %s, %s)", previous.get("_id"), current, before, thp)

        if current is None or before is None or thp is None:
            self.logger.warn('Non-numeric hit points on token "%s"; leaving bars alone.', previous.get("_id"))
            return

        # THP only matter when HP went down
        if thp > 0 and current < before:
            hp, thp = absorb_damage(current, before, thp)
            self.set_bar(token, self.config.hp_bar, hp)
            self.set_bar(token, self.config.thp_bar, thp)

    def change_thp(self, token, previous: dict):
        current = parse_int(token.get(self.thp_value))
        before = parse_int(previous.get(self.thp_value))

        self.logger.debug("change_thp (%s, %s, %s)", previous.get("_id"), current, before)

        if current is None or before is None:
            self.logger.warn('Non-numeric temporary hit points on token "%s"; leaving bars alone.', previous.get("_id"))
            return

        # only compare when both are there
        if current > 0 and before > 0:
            thp = keep_highest(current, before)
            if thp != current:
                self.set_bar(token, self.config.thp_bar, thp)

    # ---------- triggers ----------

    def on_change_token(self, token, previous: dict):
        self.logger.debug("on_change_token (%s)", previous.get("_id"))

        if self.is_hp_change(token, previous) and self.has_thp(token):
            self.change_hp(token, previous)
        if self.is_thp_change(token, previous) and self.has_thp(token):
            self.change_thp(token, previous)

    def on_chat_message(self, message):
        self.logger.debug("on_chat_message (%s)", message.type)

        # only API messages, for now
        if message.type != "api":
            return

        command, flags, content = parse_command(message.content)
        handler = self.commands.get(command)
        if handler is None:
            self.logger.warn('Attempted to call invalid command "%s".', command)
            return
        handler(flags, content, message)

    def register_command(self, name: str, handler):
        self.commands[name.lower()] = handler

    # ---------- commands ----------

    def find_token(self, ref):
        """Token by id, then by case-insensitive name. None when missing or ambiguous."""
        if not isinstance(ref, str) or not ref:
            return None
        tok = self.sandbox.get_obj("graphic", ref)
        if tok is not None:
            return tok
        named = [t for t in self.sandbox.find_objs({"_type": "graphic"}) if str(t.get("name")).lower() == ref.lower()]
        return named[0] if len(named) == 1 else None

    def _command_target(self, command: str, flags: dict, content: str):
        token = self.find_token(flags.get("token"))
        if token is None:
            self.logger.warn('%s: no token matches "%s".', command, flags.get("token"))
            return None, None
        amount = parse_int(content)
        if amount is None or amount < 0:
            self.logger.warn('%s: "%s" is not a valid amount.', command, content)
            return None, None
        return token, amount

    def cmd_damage(self, flags: dict, content: str, message):
        token, amount = self._command_target("damage", flags, content)
        if token is None:
            return
        hp = parse_int(self.bar_value(token, self.config.hp_bar))
        thp = parse_int(self.bar_value(token, self.config.thp_bar)) or 0
        if hp is None:
            self.logger.warn('damage: token "%s" has no numeric hit points.', token.id)
            return

        new_hp, new_thp = absorb_damage(hp - amount, hp, max(0, thp))
        self.set_bar(token, self.config.hp_bar, new_hp)
        if thp > 0:
            self.set_bar(token, self.config.thp_bar, new_thp)
        self.sandbox.send_chat("D&D 4e", f"{token.get('name') or token.id} takes {amount} damage: HP {new_hp}, THP {new_thp}.")

    def cmd_thp(self, flags: dict, content: str, message):
        token, amount = self._command_target("thp", flags, content)
        if token is None:
            return
        thp = parse_int(self.bar_value(token, self.config.thp_bar)) or 0
        kept = keep_highest(amount, thp)
        if kept != thp:
            self.set_bar(token, self.config.thp_bar, kept)
        self.sandbox.send_chat("D&D 4e", f"{token.get('name') or token.id} has {kept} temporary hit points.")


def register(sandbox, config: Config | None = None) -> FourthEdition:
    script = FourthEdition(sandbox, config)
    script.register_command("damage", script.cmd_damage)
    script.register_command("thp", script.cmd_thp)
    sandbox.on("change:token", script.on_change_token)
    sandbox.on("chat:message", script.on_chat_message)
    script.logger.notice("D&D 4e automation ready (HP bar %d, THP bar %d).", script.config.hp_bar, script.config.thp_bar)
    return script
