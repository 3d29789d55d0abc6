"""Rights ledger — in-progress rights split for one work being described.

The ledger owns the current AuthorshipAllocation and
NeighboringRightsAllocation of a single editing session. Every mutation
replaces the frozen allocation it touches and returns the new value, so
allocations handed out earlier never change underneath their holders.

Authorship conservation:
- Adding a holder moves its share out of the main holder's percentage,
  floored at MAIN_HOLDER_FLOOR. When the floor is hit, less is taken
  from the main holder than the new holder receives, and the total
  exceeds 100 until the user corrects it.
- Removing a holder returns its share to the main holder, capped at 100.

Neighboring rights have no conservation rule.

Percentage edits are never reconciled automatically. Transient invalid
totals are allowed while editing; the submission boundary decides.

Lifecycle: editing -> submitted. freeze() ends the editing session.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from proofy.errors import (
    InvalidFieldError,
    InvalidValueError,
    LedgerFrozenError,
    OutOfRangeError,
)
from proofy.models.rights import (
    PERCENT_MAX,
    AuthorshipAllocation,
    AuthorshipCategory,
    Category,
    HolderField,
    NeighboringCategory,
    NeighboringRightsAllocation,
    RightsHolder,
    field_applies,
    has_role,
    parse_category,
    parse_field,
    validate_percentage,
)

DEFAULT_AUTHORSHIP_SHARE = 15
DEFAULT_NEIGHBORING_SHARE = 50
MAIN_HOLDER_FLOOR = 10

Allocation = Union[AuthorshipAllocation, NeighboringRightsAllocation]


class RightsLedger:
    """Editable rights split for one work.

    Usage:
        ledger = RightsLedger()
        ledger.add_authorship_holder("authors")          # main: 100 -> 85
        ledger.update_holder("authors", 0, "name", "Ada")
        ledger.add_neighboring_holder("others")
        ledger.update_neighboring_holder("others", 0, "role", "mixing engineer")
        if ledger.is_reconciled():
            payload = ledger.to_submission_payload()
        ledger.freeze()
    """

    def __init__(
        self,
        authorship: Optional[AuthorshipAllocation] = None,
        neighboring: Optional[NeighboringRightsAllocation] = None,
    ) -> None:
        self._authorship = authorship or AuthorshipAllocation()
        self._neighboring = neighboring or NeighboringRightsAllocation()
        self._frozen = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RightsLedger:
        """Rebuild a ledger from a submission payload.

        Missing sections start empty. Used to revalidate client-supplied
        splits on the server side.
        """
        authorship_data = payload.get("authorship")
        neighboring_data = payload.get("neighboring_rights")
        return cls(
            authorship=(
                AuthorshipAllocation.from_payload(authorship_data)
                if authorship_data is not None else None
            ),
            neighboring=(
                NeighboringRightsAllocation.from_payload(neighboring_data)
                if neighboring_data is not None else None
            ),
        )

    @property
    def authorship(self) -> AuthorshipAllocation:
        return self._authorship

    @property
    def neighboring(self) -> NeighboringRightsAllocation:
        return self._neighboring

    @property
    def main_holder_percentage(self) -> int:
        return self._authorship.main_holder_percentage

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """End the editing session. Later mutations raise LedgerFrozenError."""
        self._frozen = True

    # ------------------------------------------------------------------
    # Authorship
    # ------------------------------------------------------------------

    def add_authorship_holder(
        self,
        category: Union[str, AuthorshipCategory],
        initial_percentage: int = DEFAULT_AUTHORSHIP_SHARE,
    ) -> AuthorshipAllocation:
        """Append a placeholder holder and take its share from the main holder."""
        self._check_editable()
        cat = self._authorship_category(category)
        share = validate_percentage(initial_percentage)

        holders = self._authorship.holders(cat) + (RightsHolder(percentage=share),)
        main = max(MAIN_HOLDER_FLOOR, self._authorship.main_holder_percentage - share)
        self._authorship = self._authorship.with_holders(cat, holders, main)
        return self._authorship

    def remove_authorship_holder(
        self,
        category: Union[str, AuthorshipCategory],
        index: int,
    ) -> AuthorshipAllocation:
        """Remove a holder and return its share to the main holder (max 100)."""
        self._check_editable()
        cat = self._authorship_category(category)
        holders = self._authorship.holders(cat)
        self._check_index(cat, holders, index)

        removed = holders[index]
        remaining = holders[:index] + holders[index + 1:]
        main = min(PERCENT_MAX, self._authorship.main_holder_percentage + removed.percentage)
        self._authorship = self._authorship.with_holders(cat, remaining, main)
        return self._authorship

    def update_holder(
        self,
        category: Union[str, Category],
        index: int,
        field: Union[str, HolderField],
        value: Any,
    ) -> Allocation:
        """Edit one field of a holder in any category.

        Percentage edits do not touch the main holder's share.
        """
        self._check_editable()
        cat = parse_category(category)
        if isinstance(cat, NeighboringCategory):
            return self._update_neighboring(cat, index, field, value)

        holders = self._authorship.holders(cat)
        updated = self._edited(cat, holders, index, field, value)
        self._authorship = self._authorship.with_holders(cat, updated)
        return self._authorship

    def total_authorship_percentage(self) -> int:
        return self._authorship.total_percentage()

    def is_reconciled(self) -> bool:
        return self._authorship.is_reconciled()

    # ------------------------------------------------------------------
    # Neighboring rights
    # ------------------------------------------------------------------

    def add_neighboring_holder(
        self,
        category: Union[str, NeighboringCategory],
        default_percentage: int = DEFAULT_NEIGHBORING_SHARE,
    ) -> NeighboringRightsAllocation:
        self._check_editable()
        cat = self._neighboring_category(category)
        share = validate_percentage(default_percentage)
        holder = RightsHolder(percentage=share, role="" if has_role(cat) else None)
        self._neighboring = self._neighboring.with_holders(
            cat, self._neighboring.holders(cat) + (holder,)
        )
        return self._neighboring

    def remove_neighboring_holder(
        self,
        category: Union[str, NeighboringCategory],
        index: int,
    ) -> NeighboringRightsAllocation:
        self._check_editable()
        cat = self._neighboring_category(category)
        holders = self._neighboring.holders(cat)
        self._check_index(cat, holders, index)
        self._neighboring = self._neighboring.with_holders(
            cat, holders[:index] + holders[index + 1:]
        )
        return self._neighboring

    def update_neighboring_holder(
        self,
        category: Union[str, NeighboringCategory],
        index: int,
        field: Union[str, HolderField],
        value: Any,
    ) -> NeighboringRightsAllocation:
        self._check_editable()
        cat = self._neighboring_category(category)
        return self._update_neighboring(cat, index, field, value)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_submission_payload(self) -> dict[str, Any]:
        """Allocation payload for persistence, without placeholder holders.

        Holder order is preserved. The result is rebuilt from the frozen
        allocations on every call, so repeated calls are identical.
        """
        return {
            "authorship": self._authorship.to_payload(),
            "neighboring_rights": self._neighboring.to_payload(),
        }

    def to_submission_json(self) -> str:
        """Canonical JSON form of the submission payload (sorted keys)."""
        return json.dumps(
            self.to_submission_payload(), sort_keys=True, ensure_ascii=False
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update_neighboring(
        self,
        cat: NeighboringCategory,
        index: int,
        field: Union[str, HolderField],
        value: Any,
    ) -> NeighboringRightsAllocation:
        holders = self._neighboring.holders(cat)
        updated = self._edited(cat, holders, index, field, value)
        self._neighboring = self._neighboring.with_holders(cat, updated)
        return self._neighboring

    def _edited(
        self,
        cat: Category,
        holders: tuple[RightsHolder, ...],
        index: int,
        field: Union[str, HolderField],
        value: Any,
    ) -> tuple[RightsHolder, ...]:
        holder_field = parse_field(field)
        if not field_applies(cat, holder_field):
            raise InvalidFieldError(
                f"Field '{holder_field.value}' is not applicable to category {cat.value}"
            )
        self._check_index(cat, holders, index)

        current = holders[index]
        if holder_field is HolderField.PERCENTAGE:
            replacement = RightsHolder(current.name, validate_percentage(value), current.role)
        elif holder_field is HolderField.NAME:
            replacement = RightsHolder(_text(value, "name"), current.percentage, current.role)
        else:
            replacement = RightsHolder(current.name, current.percentage, _text(value, "role"))
        return holders[:index] + (replacement,) + holders[index + 1:]

    def _check_editable(self) -> None:
        if self._frozen:
            raise LedgerFrozenError("Rights ledger was submitted and is read-only")

    @staticmethod
    def _check_index(cat: Category, holders: tuple[RightsHolder, ...], index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(holders):
            raise OutOfRangeError(
                f"No holder at index {index!r} in {cat.value} ({len(holders)} holders)"
            )

    @staticmethod
    def _authorship_category(value: Union[str, AuthorshipCategory]) -> AuthorshipCategory:
        cat = parse_category(value)
        if not isinstance(cat, AuthorshipCategory):
            raise InvalidFieldError(f"{cat.value} is not an authorship category")
        return cat

    @staticmethod
    def _neighboring_category(value: Union[str, NeighboringCategory]) -> NeighboringCategory:
        cat = parse_category(value)
        if not isinstance(cat, NeighboringCategory):
            raise InvalidFieldError(f"{cat.value} is not a neighboring-rights category")
        return cat


def _text(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise InvalidValueError(f"Holder {what} must be a string, got {type(value).__name__}")
    return value
