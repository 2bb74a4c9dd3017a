"""Placeholders for arguments whose values are chosen by tuning."""

from typing import Any, Dict


class TuneParam:
    """Marks a recipe step or model argument as tunable.

    The placeholder's id defaults to the name of the argument it is
    assigned to; an explicit id lets two arguments share a name space
    without clashing.
    """

    def __init__(self, id: str | None = None):
        self.id = id

    def resolve_id(self, arg_name: str) -> str:
        return self.id if self.id is not None else arg_name

    def __eq__(self, other):
        return isinstance(other, TuneParam) and other.id == self.id

    def __hash__(self):
        return hash(("tune", self.id))

    def __repr__(self):
        return f"tune({self.id!r})" if self.id is not None else "tune()"


def tune(id: str | None = None) -> TuneParam:
    """Returns a placeholder for a value to be filled in by tuning."""
    return TuneParam(id)


def is_tune(value: Any) -> bool:
    return isinstance(value, TuneParam)


def placeholder_ids(args: Dict[str, Any]) -> Dict[str, str]:
    """Maps tuning ids to the argument names holding a placeholder."""
    return {value.resolve_id(name): name for name, value in args.items() if is_tune(value)}


def fill_placeholders(args: Dict[str, Any], params: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a copy of ``args`` with placeholders replaced from ``params``.

    Placeholders without a matching entry in ``params`` are left in place.
    """
    filled = dict(args)
    for name, value in args.items():
        if is_tune(value):
            key = value.resolve_id(name)
            if key in params:
                filled[name] = params[key]
    return filled
