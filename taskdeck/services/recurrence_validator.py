"""Recurrence Validator."""
from datetime import date
from typing import Dict, Any, Optional

from taskdeck.schemas.recurrence import RECURRENCE_TYPES, RecurrencePattern


class RecurrenceValidator:
    """Validate recurrence patterns before they reach the engine."""

    @staticmethod
    def _result() -> Dict[str, Any]:
        return {
            "valid": True,
            "errors": [],
            "warnings": []
        }

    @staticmethod
    def validate_recurrence_pattern(pattern: RecurrencePattern) -> Dict[str, Any]:
        """
        Validate a recurrence pattern.

        Args:
            pattern: Pattern submitted by a client

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator._result()

        if pattern.type not in RECURRENCE_TYPES:
            result["valid"] = False
            result["errors"].append(
                f"Recurrence type must be one of: {', '.join(RECURRENCE_TYPES)}"
            )
            return result

        if pattern.interval < 1:
            result["valid"] = False
            result["errors"].append(f"Interval must be at least 1, got {pattern.interval}")

        if pattern.days_of_week:
            invalid_days = [day for day in pattern.days_of_week if not 0 <= day <= 6]
            if invalid_days:
                result["valid"] = False
                result["errors"].append(
                    f"Days of week must be between 0 (Sunday) and 6 (Saturday), got {invalid_days}"
                )
            if len(set(pattern.days_of_week)) != len(pattern.days_of_week):
                result["warnings"].append("Duplicate days of week are ignored")
            if pattern.type != "weekly":
                result["warnings"].append("Days of week only apply to weekly recurrence")

        if pattern.day_of_month is not None:
            if not 1 <= pattern.day_of_month <= 31:
                result["valid"] = False
                result["errors"].append(
                    f"Day of month must be between 1 and 31, got {pattern.day_of_month}"
                )
            elif pattern.type != "monthly":
                result["warnings"].append("Day of month only applies to monthly recurrence")
            elif pattern.day_of_month > 28:
                result["warnings"].append(
                    f"Months shorter than {pattern.day_of_month} days will repeat on their last day"
                )

        return result

    @staticmethod
    def validate_task_with_recurrence(
        pattern: Optional[RecurrencePattern],
        due_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Validate a task's pattern together with its due date.

        Args:
            pattern: Recurrence pattern, or None for a one-off task
            due_date: Task due date

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator._result()

        if pattern is None:
            return result

        validation = RecurrenceValidator.validate_recurrence_pattern(pattern)
        result["warnings"].extend(validation["warnings"])
        if not validation["valid"]:
            result["valid"] = False
            result["errors"].extend(validation["errors"])
            return result

        if not due_date:
            result["warnings"].append("Recurring task without a due date will repeat from today")
        elif pattern.end_date and pattern.end_date < due_date:
            result["warnings"].append("End date is before the due date; no occurrences will be generated")

        return result

