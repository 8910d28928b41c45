"""Internal constants shared across the library."""

DEFAULT_METHOD = "get"
DEFAULT_SAVE_METHOD = "post"
DEFAULT_PRIORITY = 10

#: Verbs accepted by ``get``.
READ_METHODS: frozenset[str] = frozenset({"get", "head", "options"})
#: Verbs accepted by ``save``.
MUTATING_METHODS: frozenset[str] = frozenset({"post", "put", "patch", "delete"})
#: Verbs whose request body is dropped.
BODYLESS_METHODS: frozenset[str] = frozenset({"get", "head", "delete"})

#: Lower bound (seconds) of the ``save`` debounce window.
MIN_DEBOUNCE = 0.01

#: Request option keys understood by the transports.
OPTION_KEYS: frozenset[str] = frozenset({"method", "headers", "params", "data", "auth", "base_url", "timeout"})


def normalize_method(method: object, default: str = DEFAULT_METHOD) -> str:
    """Return *method* as a lowercase verb, falling back to *default*."""
    if not method:
        return default
    return str(method).strip().lower()
