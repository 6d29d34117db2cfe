"""
JSON output formatter for weave results.
Generates a report with integrity hashes of the inputs and generated source.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from contractweave.core.weaver import WeaveResult
from contractweave.utils.hashing import ArtifactHasher


class WeaveReportFormatter:
    """
    Formats weave results as structured JSON with integrity hashes.
    """

    SCHEMA_VERSION = "1.0.0"

    def __init__(self, source_file: str, source_text: Optional[str] = None):
        """
        Initialize formatter.

        Args:
            source_file: Path to the Python file or JSON table that was woven
            source_text: Its contents, hashed into the report when given
        """
        self.source_file = source_file
        self.source_hash = ArtifactHasher.hash_string(source_text) if source_text is not None else None
        self.wrappers: List[Dict[str, Any]] = []
        self.errors: List[Dict[str, Any]] = []
        self.artifacts: Dict[str, Any] = {}

    def add_result(self, result: WeaveResult) -> None:
        """Record every descriptor and error of a weave"""
        for descriptor in result.descriptors:
            self.wrappers.append({
                "qualname": descriptor.qualname,
                "internal_name": descriptor.internal_name,
                "role": descriptor.role.value,
                "is_async": descriptor.is_async,
                "steps": [step.value for step in descriptor.steps],
                "captured_fields": list(descriptor.captured_fields),
                "fingerprint": descriptor.fingerprint(),
            })
        self.errors.extend(error.to_dict() for error in result.errors)

    def add_artifact(self, generated_file: str) -> None:
        generated_hash = ArtifactHasher.hash_file(generated_file)
        self.artifacts["generated_file"] = generated_file
        self.artifacts["generated_hash"] = generated_hash
        if self.source_hash and generated_hash:
            self.artifacts["combined_hash"] = ArtifactHasher.compute_combined_hash(
                self.source_hash, generated_hash
            )

    def generate(self) -> Dict[str, Any]:
        """
        Generate the complete JSON output structure.

        Returns:
            Dictionary representing the JSON structure
        """
        report = {
            "schema_version": self.SCHEMA_VERSION,
            "metadata": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "source_file": self.source_file,
                "source_hash": self.source_hash,
                "generator_version": "contractweave-0.1.0",
            },
            "summary": {
                "wrappers": len(self.wrappers),
                "rejected": len(self.errors),
                "ok": not self.errors,
            },
            "wrappers": self.wrappers,
            "errors": self.errors,
        }
        if self.artifacts:
            report["artifacts"] = self.artifacts
        return report

    def to_json_string(self, indent: int = 2) -> str:
        return json.dumps(self.generate(), indent=indent)

    def save_to_file(self, output_path: str, indent: int = 2) -> None:
        """
        Save JSON to file.

        Args:
            output_path: Path to output JSON file
            indent: Number of spaces for indentation
        """
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(self.generate(), f, indent=indent)
