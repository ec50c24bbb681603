"""File-backed key/value storage for client-side state."""

import json
import os
from pathlib import Path
from typing import Optional


class LocalStorage:
    """
    Minimal local storage: string values under string keys, kept in one JSON file.

    Every write rewrites the whole file. Read and write errors propagate to
    the caller, which decides whether they matter.
    """

    def __init__(self, storage_file: Optional[str] = None) -> None:
        if storage_file is None:
            storage_file = str(Path.home() / ".storefront_storage.json")
        self.storage_file = storage_file

    def _read_all(self) -> dict[str, str]:
        if not os.path.exists(self.storage_file):
            return {}
        with open(self.storage_file, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.storage_file} does not hold an object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        with open(self.storage_file, "w") as f:
            json.dump(data, f)

    def get_item(self, key: str) -> Optional[str]:
        """Get the value stored under key, or None."""
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store value under key."""
        data = self._read_all()
        data[key] = value
        self._write_all(data)
