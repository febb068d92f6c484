"""
Zone validation service for checking a pitch zone collection before it is persisted.

This module provides rule-based validation for zone collections and
user-friendly messages for rejected edits, following SOLID principles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..models.zone import PitchZone
from .zone_geometry import do_zones_overlap, is_within_pitch


class ValidationResult:
    """Result of a validation operation with success status and error messages."""

    def __init__(self, is_valid: bool = True, errors: Optional[List[str]] = None):
        self.is_valid = is_valid
        self.errors = errors or []

    def add_error(self, error: str) -> None:
        """Add an error message and mark as invalid."""
        self.errors.append(error)
        self.is_valid = False

    def combine(self, other: 'ValidationResult') -> 'ValidationResult':
        """Combine with another validation result."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


class ValidationRule(ABC):
    """Abstract base class for zone collection rules."""

    @abstractmethod
    def validate(self, zones: Sequence[PitchZone]) -> ValidationResult:
        """Perform validation and return result."""
        pass


class ZoneStructureValidator(ValidationRule):
    """Validates each zone's title and that it lies within the pitch."""

    def validate(self, zones: Sequence[PitchZone]) -> ValidationResult:
        result = ValidationResult()

        for i, zone in enumerate(zones):
            label = zone.title.strip() or f"Zone {i + 1}"
            if not zone.title or not zone.title.strip():
                result.add_error(f"Zone {i + 1} must have a title")
            if zone.width <= 0 or zone.height <= 0:
                result.add_error(
                    f"{label} has a non-positive size: {zone.width:g}x{zone.height:g}"
                )
            elif not is_within_pitch(zone):
                result.add_error(f"{label} extends beyond the pitch boundaries")

        return result


class ZoneIdValidator(ValidationRule):
    """Validates zone id uniqueness within the collection."""

    def validate(self, zones: Sequence[PitchZone]) -> ValidationResult:
        result = ValidationResult()
        seen = set()
        for zone in zones:
            if not zone.id:
                result.add_error("Zone id cannot be empty")
            elif zone.id in seen:
                result.add_error(f"Zone id '{zone.id}' is used by multiple zones")
            seen.add(zone.id)
        return result


class ZoneOverlapValidator(ValidationRule):
    """Validates that no two zones overlap."""

    def validate(self, zones: Sequence[PitchZone]) -> ValidationResult:
        result = ValidationResult()
        for i, first in enumerate(zones):
            for j, second in enumerate(zones[i + 1:], i + 1):
                if do_zones_overlap(first, second):
                    result.add_error(f"Zones {i + 1} and {j + 1} overlap")
        return result


class ZoneValidationService:
    """
    Zone collection validation service.

    Orchestrates the validation rules that must hold before a collection is
    written through to storage.
    """

    def __init__(self, rules: Optional[List[ValidationRule]] = None):
        self.rules = rules or [
            ZoneStructureValidator(),
            ZoneIdValidator(),
            ZoneOverlapValidator(),
        ]

    def validate_collection(self, zones: Sequence[PitchZone]) -> ValidationResult:
        """
        Run every rule over the collection.

        Args:
            zones: Full zone collection of one methodology configuration

        Returns:
            ValidationResult with success status and any error messages
        """
        result = ValidationResult()
        for rule in self.rules:
            result = result.combine(rule.validate(zones))
        return result


class ZoneEditErrorHandler:
    """
    Handler for rejected zone edits.

    Provides user-friendly error messages and recovery suggestions.
    """

    ERROR_MESSAGES = {
        "empty_title": "Please enter a zone name before saving.",
        "overlap": "Zones cannot overlap. Move or resize the zone into free space.",
        "not_found": "That zone no longer exists.",
        "read_only": "This pitch is read-only.",
        "save_failed": "Unable to save zones. Please check your connection and try again.",
    }

    def handle(self, error_type: str, details: str = "") -> Dict[str, Any]:
        """Build an inline error payload for a rejected operation."""
        return {
            "success": False,
            "error": self.ERROR_MESSAGES.get(error_type, f"Zone update failed: {details}"),
            "error_type": error_type,
            "recovery_suggestions": self._get_recovery_suggestions(error_type),
        }

    def handle_validation_result(self, validation_result: ValidationResult) -> Dict[str, Any]:
        """Handle collection validation errors with suggestions."""
        if validation_result.is_valid:
            return {"success": True}

        return {
            "success": False,
            "errors": validation_result.errors,
            "suggestions": [
                "Give every zone a name",
                "Keep zones inside the pitch",
                "Make sure no two zones overlap",
            ]
        }

    def _get_recovery_suggestions(self, error_type: str) -> List[str]:
        suggestions = {
            "empty_title": ["Enter a descriptive name such as 'Left Wing Attack Zone'"],
            "overlap": ["Drag the zone to an empty area", "Delete the zone it collides with"],
            "save_failed": [
                "Check your internet connection",
                "Try saving again",
            ],
        }
        return suggestions.get(error_type, ["Please try again"])
