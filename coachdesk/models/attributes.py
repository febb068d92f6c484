"""
Positional profile attribute payloads.

Profiles were first stored as a flat list of attribute names (v1) and later as
an object splitting attributes by phase of play (v2). Both shapes are parsed
here, at the storage boundary, and migrated to the current v2 model so no other
module has to inspect raw payload shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


class AttributePayloadError(ValueError):
    """Raised when a stored attribute payload has an unrecognised shape."""
    pass


def _clean(values: Any) -> List[str]:
    if not values:
        return []
    return [str(v).strip() for v in values if v and str(v).strip()]


@dataclass(frozen=True)
class AttributesV1:
    """Legacy shape: one flat list of attribute names."""
    attributes: List[str] = field(default_factory=list)

    version = 1

    def migrate(self) -> AttributesV2:
        # v1 had no phase split; everything was an in-possession attribute
        return AttributesV2(in_possession=list(self.attributes), out_of_possession=[])


@dataclass(frozen=True)
class AttributesV2:
    """Current shape: attributes grouped by phase of play."""
    in_possession: List[str] = field(default_factory=list)
    out_of_possession: List[str] = field(default_factory=list)

    version = 2

    def migrate(self) -> AttributesV2:
        return self

    def all_attributes(self) -> List[str]:
        return self.in_possession + self.out_of_possession

    def to_dict(self) -> Dict[str, List[str]]:
        """Convert to the stored v2 payload."""
        return {
            "in_possession": list(self.in_possession),
            "out_of_possession": list(self.out_of_possession),
        }


PositionalAttributes = Union[AttributesV1, AttributesV2]


def decode_attributes(raw: Any) -> PositionalAttributes:
    """
    Decode a stored payload into its tagged version without migrating it.

    Raises:
        AttributePayloadError: If the payload is neither a list nor a v2 object
    """
    if raw is None:
        return AttributesV2()
    if isinstance(raw, list):
        return AttributesV1(attributes=_clean(raw))
    if isinstance(raw, dict):
        if "in_possession" in raw or "out_of_possession" in raw:
            return AttributesV2(
                in_possession=_clean(raw.get("in_possession")),
                out_of_possession=_clean(raw.get("out_of_possession")),
            )
        if not raw:
            return AttributesV2()
    raise AttributePayloadError(f"Unrecognised attribute payload: {raw!r}")


def parse_attributes(raw: Any) -> AttributesV2:
    """Decode a stored payload and migrate it to the current version."""
    return decode_attributes(raw).migrate()
