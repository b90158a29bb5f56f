"""Shared utility functions."""

from __future__ import annotations

import os
import sys


def output_text(data: str, output_file: str | None = None) -> None:
    """Write *data* to *output_file* (append) or stdout."""
    if output_file:
        mode = "a" if os.path.exists(output_file) else "w"
        with open(output_file, mode) as f:
            f.write(data + "\n")
    else:
        sys.stdout.write(data + "\n")
        sys.stdout.flush()


def split_names(values: list[str] | None) -> frozenset[str]:
    """Flatten repeated and comma-separated CLI values into a set of names."""
    names: set[str] = set()
    for value in values or ():
        names.update(part.strip() for part in value.split(",") if part.strip())
    return frozenset(names)
