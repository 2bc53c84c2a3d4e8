from __future__ import annotations
import json
import os
from typing import Any, Dict, Optional

import yaml

from fnl.fnl_host import Store


def _resolve_path(path: str, base_dir: Optional[str] = None) -> str:
    # Home directory
    if path.startswith("~"):
        return os.path.expanduser(path)
    if os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(base_dir or os.getcwd(), path))


def _format_for(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    return "json" if ext == ".json" else "yaml"


def load_mapping(path: str) -> Dict[str, Any]:
    """Read the whole store file; a missing or empty file is an empty store."""
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        return {}
    if _format_for(path) == "json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"store file does not hold a mapping: {path}")
    return {str(k): v for k, v in data.items()}


def dump_mapping(path: str, data: Dict[str, Any]):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    if _format_for(path) == "json":
        text = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        text = yaml.safe_dump(data, sort_keys=True, allow_unicode=True)
    # write to a sibling temp file, then rename over the store
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(text)
    os.replace(tmp, path)


class YamlFileStore(Store):
    """
    Durable store kept in a single YAML (or `.json`) file.

    The file is re-read on every `get` and rewritten on every `put`, so two
    runners pointed at the same path see each other's writes.
    """

    def __init__(self, path: str, *, base_dir: Optional[str] = None):
        self.path = _resolve_path(path, base_dir)

    async def get(self, key: str) -> Any:
        return load_mapping(self.path).get(key)

    async def put(self, key: str, value: Any):
        data = load_mapping(self.path)
        data[key] = value
        dump_mapping(self.path, data)

    def __repr__(self):
        return f"<YamlFileStore path={self.path}>"
