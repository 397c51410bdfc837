"""
Layered configuration merging for agentloop.

Each configuration layer is merged over the previous one. Sections merge
recursively, scalars and lists replace, and a null value removes the key so
the schema default applies again.

The list-valued settings can also be edited in place instead of replaced:

    provider:
      +fallback: [claude-haiku]     # append, skipping duplicates
    agent:
      -stop_sequences: ["###"]      # remove
"""

from typing import Any

# Settings that accept +/- list edits, by section
LIST_SETTINGS: dict[str, frozenset[str]] = {
    "provider": frozenset({"fallback"}),
    "agent": frozenset({"stop_sequences"}),
}

_LIST_OPS = ("+", "-")


def deep_merge(
    base: dict[str, Any],
    override: dict[str, Any],
    section: str | None = None,
) -> dict[str, Any]:
    """
    Merge one configuration layer over another.

    Args:
        base: Configuration merged so far.
        override: The next layer.
        section: Top-level section name when merging inside one.

    Returns:
        A new merged dictionary. Neither input is modified.

    Raises:
        ValueError: For a +/- edit on a setting that is not a list
            setting, or with a non-list value.

    Examples:
        >>> deep_merge({"provider": {"fallback": ["a"]}}, {"provider": {"+fallback": ["b"]}})
        {'provider': {'fallback': ['a', 'b']}}
    """
    merged = dict(base)

    for key, value in override.items():
        if key[:1] in _LIST_OPS:
            name = key[1:]
            merged[name] = _edit_list(key, merged.get(name), value, section)
        elif value is None:
            merged.pop(key, None)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value, section=key if section is None else section)
        else:
            merged[key] = value

    return merged


def _edit_list(key: str, current: Any, items: Any, section: str | None) -> list[Any]:
    op, name = key[0], key[1:]
    allowed = LIST_SETTINGS.get(section or "", frozenset())
    if name not in allowed:
        supported = ", ".join(f"{s}.{n}" for s, names in LIST_SETTINGS.items() for n in sorted(names))
        where = f"{section}.{name}" if section else name
        raise ValueError(f"'{op}' list edit is not supported for '{where}' (supported: {supported})")
    if not isinstance(items, list):
        raise ValueError(f"'{key}' expects a list, got {type(items).__name__}")

    existing = current if isinstance(current, list) else []
    if op == "+":
        return existing + [item for item in items if item not in existing]
    return [item for item in existing if item not in items]


def set_nested_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """
    Set `value` at a dotted path such as "resilience.retry.enabled".

    Missing or non-dict intermediate entries are replaced by dicts. The
    config is modified in place and returned.
    """
    *parents, leaf = key_path.split(".")
    node = config
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value
    return config
