"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Positive amount
- At least one participant
- This catches incomplete expense drafts

STAGE 2 - SEMANTIC VALIDATION:
- Custom split shares must add up to the amount (within tolerance)
- Payer should be among the participants
- Absurd amount detection
- This catches expenses that would leave the ledger unbalanced

Stage 2 only runs if stage 1 passes.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the tracker refuses to write on errors.
"""

from decimal import Decimal
from typing import Optional

from splitledger.config import get_settings
from splitledger.engine.splits import within_tolerance
from splitledger.models.expense import Expense, SplitType
from splitledger.models.validation import ValidationIssue, ValidationResult


class ExpenseValidationError(Exception):
    """An expense or settlement was rejected before any write."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(issue.message for issue in result.errors)
        super().__init__(messages or "Validation failed")


class ExpenseValidator:
    """
    Validates expenses through a two-stage pipeline.

    Tolerance and the sanity ceiling come from LedgerSettings unless given.
    """

    def __init__(
        self,
        tolerance: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
    ):
        settings = get_settings().ledger
        self._tolerance = tolerance if tolerance is not None else settings.split_tolerance
        self._max_amount = max_amount if max_amount is not None else settings.max_expense_amount

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def _validate_schema(self, expense: Expense) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if expense.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Expense amount must be greater than zero",
                severity="error",
                suggested_fix="Enter a valid amount",
            ))

        if not expense.participants:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="missing",
                message="At least one participant is required",
                severity="error",
                suggested_fix="Select who shares this expense",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(self, expense: Expense) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        share_total = expense.share_total

        if not within_tolerance(share_total, expense.amount, self._tolerance):
            if expense.split_type == SplitType.CUSTOM:
                issues.append(ValidationIssue(
                    field="participants",
                    issue_type="split_mismatch",
                    message=(
                        f"Custom split amounts ({share_total}) must equal "
                        f"the total expense amount ({expense.amount})"
                    ),
                    severity="error",
                    suggested_fix="Adjust the shares so they add up to the amount",
                ))
            else:
                issues.append(ValidationIssue(
                    field="participants",
                    issue_type="split_mismatch",
                    message=(
                        f"Shares ({share_total}) don't add up to "
                        f"the expense amount ({expense.amount})"
                    ),
                    severity="warning",
                    suggested_fix="Balances will not net to zero for this expense",
                ))

        if expense.participant(expense.paid_by) is None:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="payer_not_participant",
                message="The payer is not among the participants",
                severity="warning",
                suggested_fix="Add the payer with a zero share to credit them",
            ))

        if expense.amount > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({expense.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, expense: Expense) -> ValidationResult:
        """Run full two-stage validation pipeline."""
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(expense)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(expense)
            all_issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

    def validate_settlement_amount(self, amount: Decimal) -> ValidationResult:
        """A pairwise settlement needs a strictly positive amount."""
        issues = []
        if amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Settlement amount must be greater than zero",
                severity="error",
            ))
        valid = not issues
        return ValidationResult(
            schema_valid=valid,
            semantic_valid=valid,
            is_valid=valid,
            issues=issues,
        )

    @staticmethod
    def raise_for_errors(result: ValidationResult) -> ValidationResult:
        if result.has_errors:
            raise ExpenseValidationError(result)
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text summary suitable for showing next to an expense form."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        if result.has_errors:
            lines.append("This expense can't be saved:")
            for issue in result.errors:
                lines.append(f"  - {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"    ({issue.suggested_fix})")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines)
