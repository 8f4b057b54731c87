# utils/log.py
from utils.config import Config


def format_message(message, *args) -> str:
    """`%`-format `message` with `args`; leftover args are appended space-separated."""
    text = str(message)
    if not args:
        return text
    try:
        return text % args
    except (TypeError, ValueError):
        return " ".join([text, *(str(a) for a in args)])


class ScriptLog:
    """Severity-tagged writers over the host log sink, each gated by a config flag."""

    def __init__(self, sink, config: Config):
        self.sink = sink
        self.config = config

    def _emit(self, enabled: bool, tag: str, message, args):
        if enabled:
            self.sink(f"[{tag}] {format_message(message, *args)}")

    def debug(self, message, *args):
        self._emit(self.config.debug, "DEBUG", message, args)

    def notice(self, message, *args):
        self._emit(self.config.notice, "NOTICE", message, args)

    def warn(self, message, *args):
        self._emit(self.config.warn, "WARN", message, args)

    def error(self, message, *args):
        self._emit(self.config.error, "ERROR", message, args)
