"""Configuration model for the ingestkit-mime decoder.

Provides ``DecodeOptions`` with every tunable limit and policy switch and
sensible defaults.  Instances are immutable; supports loading overrides from
YAML or JSON files via the ``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_MAX_ATTACHMENT_SIZE = 25 * 1024 * 1024


class DecodeOptions(BaseModel):
    """All tunable parameters with sensible defaults."""

    model_config = ConfigDict(frozen=True)

    # --- Identity ---
    parser_version: str = "ingestkit_mime:1.0.0"

    # --- Attachment Policy ---
    include_content: bool = True
    max_attachment_size: int = DEFAULT_MAX_ATTACHMENT_SIZE
    allowed_types: list[str] = []
    forbidden_types: list[str] = []
    process_inline: bool = True
    decode_filenames: bool = True

    # --- Error Handling ---
    strict_mode: bool = False
    max_errors: int = 10

    # --- Structural Limits ---
    max_parts: int = 100
    max_consecutive_errors: int = 5
    max_nesting_depth: int = 32

    # --- Logging / PII Safety ---
    log_sample_data: bool = False

    @field_validator("allowed_types", "forbidden_types")
    @classmethod
    def _normalize_types(cls, v: list[str]) -> list[str]:
        return [t.strip().lower() for t in v if t.strip()]

    @field_validator(
        "max_attachment_size",
        "max_errors",
        "max_parts",
        "max_consecutive_errors",
        "max_nesting_depth",
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"limit must be positive, got {v}")
        return v

    @classmethod
    def from_file(cls, path: str) -> DecodeOptions:
        """Load options from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Keys present in the file override the
        corresponding defaults; keys not present retain their defaults.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError(
                    "pyyaml is required to load YAML config files. "
                    "Install it with: pip install pyyaml"
                ) from exc
            with open(file_path) as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path) as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
