"""
Stable hashing of wrapper descriptors and generated sources.
"""

import hashlib
import json
from typing import Any, Dict, Optional


def canonical_json(data: Dict[str, Any]) -> str:
    """Serialize with sorted keys and no whitespace so equal data gives equal text"""
    return json.dumps(data, sort_keys=True, separators=(',', ':'), default=repr)


class ArtifactHasher:
    """
    Computes SHA-256 hashes for weaving artifacts.
    """

    @staticmethod
    def hash_string(content: str) -> str:
        return hashlib.sha256(content.encode('utf-8')).hexdigest()

    @staticmethod
    def hash_data(data: Dict[str, Any]) -> str:
        """
        Hash a JSON-compatible mapping.

        Args:
            data: Mapping such as ``WrapperDescriptor.to_dict()``

        Returns:
            64-character SHA-256 hex digest of its canonical JSON form
        """
        return ArtifactHasher.hash_string(canonical_json(data))

    @staticmethod
    def hash_file(file_path: str) -> Optional[str]:
        """
        Compute SHA-256 hash of a file.

        Returns:
            Hexadecimal hash string, or None if file doesn't exist
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = f.read()
            return ArtifactHasher.hash_string(content)
        except (FileNotFoundError, IOError):
            return None

    @staticmethod
    def compute_combined_hash(*hashes: str) -> str:
        """Single hash over several artifact hashes, order-sensitive"""
        return ArtifactHasher.hash_string("|".join(hashes))
