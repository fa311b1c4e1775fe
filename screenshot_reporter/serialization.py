"""Cycle-safe JSON serialization and atomic file writes.

Host objects (browser log entries, user metadata) may reference themselves.
``decycle`` replaces a dict or list that contains itself with a
``{"$ref": "<json-pointer>"}`` marker pointing at the enclosing occurrence and
``retrocycle`` restores the reference after parsing. Containers that are only
shared, without forming a cycle, are written out in full at every occurrence.
"""

import contextlib
import json
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

REF_KEY = "$ref"


def decycle(value: Any) -> Any:
    """Return a copy of ``value`` with cyclic references replaced by refs.

    Only containers on the path from the root to the current node are
    tracked. Mappings become dicts with string keys, lists and tuples become
    lists. Any other leaf is returned unchanged.
    """
    ancestors: dict[int, str] = {}

    def walk(node: Any, pointer: str) -> Any:
        if not isinstance(node, Mapping | list | tuple):
            return node
        if (ref := ancestors.get(id(node))) is not None:
            return {REF_KEY: ref}

        ancestors[id(node)] = pointer
        try:
            if isinstance(node, Mapping):
                return {
                    str(key): walk(child, f"{pointer}/{_escape(str(key))}")
                    for key, child in node.items()
                }
            return [walk(child, f"{pointer}/{index}") for index, child in enumerate(node)]
        finally:
            del ancestors[id(node)]

    return walk(value, "#")


def retrocycle(value: Any) -> Any:
    """Resolve ``$ref`` markers produced by ``decycle`` in place."""

    def resolve(pointer: str) -> Any:
        node = value
        for token in pointer.split("/")[1:]:
            token = _unescape(token)
            node = node[int(token)] if isinstance(node, list) else node[token]
        return node

    def walk(node: Any) -> None:
        if isinstance(node, dict):
            slots: list[tuple[Any, Any]] = list(node.items())
        elif isinstance(node, list):
            slots = list(enumerate(node))
        else:
            return

        for key, child in slots:
            if _is_ref(child):
                node[key] = resolve(child[REF_KEY])
            else:
                walk(child)

    walk(value)
    return value


def dumps(value: Any, indent: int | None = 2) -> str:
    """Serialize ``value`` to JSON, tolerating cycles and non-JSON leaves."""
    return json.dumps(decycle(value), indent=indent, default=str, ensure_ascii=False)


def loads(text: str) -> Any:
    """Parse JSON produced by ``dumps`` and restore cyclic references."""
    return retrocycle(json.loads(text))


async def write_atomic(path: Path, data: str | bytes) -> None:
    """Write ``data`` to ``path`` via a temporary sibling and ``os.replace``.

    Parent directories are created as needed. Readers never observe a
    partially written file.
    """
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")

    try:
        if isinstance(data, bytes):
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
        else:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(data)
        await aiofiles.os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            await aiofiles.os.remove(tmp_path)
        raise


async def read_text(path: Path) -> str | None:
    """Read a UTF-8 file, returning None if it does not exist."""
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()
    except FileNotFoundError:
        return None


def _is_ref(node: Any) -> bool:
    return isinstance(node, dict) and len(node) == 1 and isinstance(node.get(REF_KEY), str)


def _escape(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")
