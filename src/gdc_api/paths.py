"""Dotted-path access into JSON documents.

Used at the JSON boundary only, e.g. ``get_path(data, "meta.title")``.
"""

from typing import Any

EACH = "@each"


def get_path(document: Any, path: str | int | None) -> Any:
    """Get a nested value by dotted path.

    Missing keys along the way yield None instead of raising. The special
    ``@each`` segment maps the remainder of the path over a list, e.g.
    ``get_path(data, "entries.@each.link")``; it yields ``[]`` when the
    value before it is not a list. An empty path returns the document.
    """
    if path is None or path == "":
        return document
    if isinstance(path, int):
        return document[path]

    segments = path.split(".")
    for index, segment in enumerate(segments):
        if document is None:
            return None
        if segment == EACH:
            if not isinstance(document, list):
                return []
            rest = ".".join(segments[index + 1 :])
            return [get_path(item, rest) for item in document]
        document = _child(document, segment)
    return document


def set_path(document: Any, path: str | int, value: Any) -> Any:
    """Set a nested value by dotted path, creating dicts along the way.

    Returns:
        The container holding the final key.

    Raises:
        ValueError: If a segment along the path is a scalar, or a list
            index that does not exist.
    """
    if isinstance(path, int):
        document[path] = value
        return document

    *parents, last = path.split(".")
    for segment in parents:
        child = _child(document, segment)
        if child is None:
            if not isinstance(document, dict):
                msg = f"Cannot create {segment!r} of {path!r} inside {type(document).__name__}"
                raise ValueError(msg)
            child = {}
            document[segment] = child
        document = child
    if isinstance(document, dict):
        document[last] = value
        return document
    try:
        document[int(last)] = value
    except (TypeError, ValueError, IndexError) as exc:
        msg = f"Cannot set {path!r}: no {last!r} in {type(document).__name__}"
        raise ValueError(msg) from exc
    return document


def _child(container: Any, segment: str) -> Any:
    if isinstance(container, list):
        try:
            return container[int(segment)]
        except (ValueError, IndexError):
            return None
    if isinstance(container, dict):
        return container.get(segment)
    return None
