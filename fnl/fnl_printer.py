"""
A printer for FNL values, used by `log` and the REPL.
"""
import collections.abc

from fnl.fnl_coerce import format_number


class Printer:
    """Formats FNL values the way the sandbox console shows them."""

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        if obj is None: return self._pformat_none
        if isinstance(obj, bool): return self._pformat_bool
        if isinstance(obj, (int, float)): return self._pformat_number
        if isinstance(obj, str): return self._pformat_str
        if isinstance(obj, list): return self._pformat_list
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        return lambda o, l: repr(o)

    def _pformat_none(self, obj, level):
        return 'null'

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_number(self, obj, level):
        return format_number(obj)

    def _pformat_str(self, obj, level):
        # Top-level strings print bare; nested ones are quoted
        if level == 0:
            return obj
        escaped = obj.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'

    def _pformat_list(self, obj, level):
        items = ", ".join(self.pformat(item, level + 1) for item in obj)
        return f"[{items}]"

    def _pformat_dict(self, obj, level):
        if not obj:
            return "{}"
        items = ", ".join(f'"{k}": {self.pformat(v, level + 1)}' for k, v in obj.items())
        return "{" + items + "}"
