"""
File I/O utilities
"""

import os
from typing import Optional

from contractweave.core.config import DEFAULT_OUTPUT_DIR, GENERATED_SUFFIX


def generated_name(base_name: str) -> str:
    """``wallet`` -> ``wallet_contracts.py``"""
    return f"{base_name}{GENERATED_SUFFIX}.py"


def save_generated(source: str, base_name: str, output_dir: Optional[str] = None) -> str:
    """
    Save a generated wrapper module to disk.

    Args:
        source: Generated Python source
        base_name: Stem of the woven file
        output_dir: Target directory, created if missing

    Returns:
        Path of the written file
    """
    directory = output_dir or DEFAULT_OUTPUT_DIR
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, generated_name(base_name))

    with open(path, "w", encoding="utf-8") as f:
        f.write(source)

    return path
