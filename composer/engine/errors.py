"""Error taxonomy for the composition engine."""

from dataclasses import dataclass
from typing import Optional


class ComposerError(Exception):
    """Base class for engine errors."""


class UnknownAssetType(ComposerError):
    """Catalog or dispatch miss. Recoverable: render an unsupported-type placeholder."""

    def __init__(self, asset_type: str):
        self.asset_type = asset_type
        super().__init__(f"Unknown asset type: {asset_type}")


class SchemaViolation(ComposerError):
    """A required property is missing or null."""

    def __init__(self, asset_type: str, missing_field: str):
        self.asset_type = asset_type
        self.missing_field = missing_field
        super().__init__(f"{asset_type}: required property '{missing_field}' is missing")


class AnimationLoadFailure(ComposerError):
    """Fetching or parsing a vector animation document failed. Not retried."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load animation {source}: {reason}")


class TimelineError(ComposerError):
    """Invalid timeline operation (unknown id, empty selection, bad name)."""


@dataclass(frozen=True)
class PatchSkipped:
    """A patch that could not be applied to one node. Not an error."""

    path: str
    reason: str
    layer_name: Optional[str] = None

    def __str__(self) -> str:
        name = f" ({self.layer_name})" if self.layer_name else ""
        return f"{self.path}{name}: {self.reason}"
