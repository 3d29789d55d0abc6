"""Rights models — holders, categories, and the two allocations of a work.

A work carries two independent allocations:

- AuthorshipAllocation: the submitting user's main share plus authors,
  composers and publishers. For music works the shares must add up to
  exactly 100 before submission.
- NeighboringRightsAllocation: producers, labels and other contributors.
  These shares are informational and are never reconciled.

Categories form a closed set of enums. The ``role`` field exists only on
the ``others`` neighboring-rights category.

Allocations are frozen. Edits produce a new allocation via
``with_holders``; the RightsLedger owns the current one.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any, Optional, Union

from proofy.errors import InvalidFieldError, InvalidValueError

PERCENT_MIN = 0
PERCENT_MAX = 100
RECONCILED_TOTAL = 100


class AuthorshipCategory(str, enum.Enum):
    """Holder lists of the authorship allocation."""
    AUTHORS = "authors"
    COMPOSERS = "composers"
    PUBLISHERS = "publishers"


class NeighboringCategory(str, enum.Enum):
    """Holder lists of the neighboring-rights allocation."""
    PRODUCERS = "producers"
    LABELS = "labels"
    OTHERS = "others"


class HolderField(str, enum.Enum):
    """Editable fields of a rights holder."""
    NAME = "name"
    PERCENTAGE = "percentage"
    ROLE = "role"


Category = Union[AuthorshipCategory, NeighboringCategory]


def parse_category(value: Union[str, Category]) -> Category:
    """Resolve a category name to its enum member."""
    if isinstance(value, (AuthorshipCategory, NeighboringCategory)):
        return value
    for enum_cls in (AuthorshipCategory, NeighboringCategory):
        try:
            return enum_cls(value)
        except ValueError:
            continue
    raise InvalidFieldError(f"Unknown rights category: {value!r}")


def parse_field(value: Union[str, HolderField]) -> HolderField:
    try:
        return HolderField(value)
    except ValueError:
        raise InvalidFieldError(f"Unknown holder field: {value!r}") from None


def has_role(category: Category) -> bool:
    """Only miscellaneous neighboring-rights holders carry a role."""
    return category is NeighboringCategory.OTHERS


def field_applies(category: Category, holder_field: HolderField) -> bool:
    if holder_field is HolderField.ROLE:
        return has_role(category)
    return True


def validate_percentage(value: Any) -> int:
    """Return value if it is an integer percentage in [0, 100]."""
    # bool is an int subclass; True is not a percentage
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidValueError(
            f"Percentage must be an integer, got {type(value).__name__}"
        )
    if not PERCENT_MIN <= value <= PERCENT_MAX:
        raise InvalidValueError(
            f"Percentage must be within [{PERCENT_MIN}, {PERCENT_MAX}], got {value}"
        )
    return value


def _validate_text(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise InvalidValueError(f"{what} must be a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class RightsHolder:
    """A party entitled to a percentage share within one category.

    A holder with an empty name is a placeholder: it counts towards the
    editing totals but is dropped from submission payloads.
    """
    name: str = ""
    percentage: int = 0
    role: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.name != ""

    def to_dict(self, with_role: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "percentage": self.percentage}
        if with_role:
            data["role"] = self.role or ""
        return data

    @staticmethod
    def from_dict(data: dict[str, Any], category: Category) -> RightsHolder:
        """Parse a holder from payload data, validating every field."""
        if not isinstance(data, dict):
            raise InvalidValueError(
                f"Holder in {category.value} must be an object, got {type(data).__name__}"
            )
        name = _validate_text(data.get("name", ""), "Holder name")
        percentage = validate_percentage(data.get("percentage", 0))
        role: Optional[str] = None
        if "role" in data and data["role"] is not None:
            if not has_role(category):
                raise InvalidFieldError(
                    f"Field 'role' is not applicable to category {category.value}"
                )
            role = _validate_text(data["role"], "Holder role")
        elif has_role(category):
            role = ""
        return RightsHolder(name=name, percentage=percentage, role=role)


def _holders_payload(holders: tuple[RightsHolder, ...], category: Category) -> list[dict[str, Any]]:
    return [h.to_dict(with_role=has_role(category)) for h in holders if h.is_active]


def _parse_holders(data: dict[str, Any], category: Category) -> tuple[RightsHolder, ...]:
    raw = data.get(category.value, [])
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise InvalidValueError(
            f"Category {category.value} must be a list, got {type(raw).__name__}"
        )
    return tuple(RightsHolder.from_dict(item, category) for item in raw)


@dataclass(frozen=True)
class AuthorshipAllocation:
    """Authorship, composition and publishing shares of one work.

    Invariant (enforced at submission for music works only):
        main_holder_percentage + sum(holder percentages) == 100
    """
    main_holder_percentage: int = PERCENT_MAX
    authors: tuple[RightsHolder, ...] = ()
    composers: tuple[RightsHolder, ...] = ()
    publishers: tuple[RightsHolder, ...] = ()

    def holders(self, category: AuthorshipCategory) -> tuple[RightsHolder, ...]:
        return getattr(self, category.value)

    def with_holders(
        self,
        category: AuthorshipCategory,
        holders: tuple[RightsHolder, ...],
        main_holder_percentage: Optional[int] = None,
    ) -> AuthorshipAllocation:
        changes: dict[str, Any] = {category.value: holders}
        if main_holder_percentage is not None:
            changes["main_holder_percentage"] = main_holder_percentage
        return dataclasses.replace(self, **changes)

    def total_percentage(self) -> int:
        return self.main_holder_percentage + sum(
            h.percentage
            for category in AuthorshipCategory
            for h in self.holders(category)
        )

    def is_reconciled(self) -> bool:
        return self.total_percentage() == RECONCILED_TOTAL

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"main_holder_percentage": self.main_holder_percentage}
        for category in AuthorshipCategory:
            payload[category.value] = _holders_payload(self.holders(category), category)
        return payload

    @staticmethod
    def from_payload(data: dict[str, Any]) -> AuthorshipAllocation:
        if not isinstance(data, dict):
            raise InvalidValueError("Authorship allocation must be an object")
        main = validate_percentage(data.get("main_holder_percentage", PERCENT_MAX))
        return AuthorshipAllocation(
            main_holder_percentage=main,
            authors=_parse_holders(data, AuthorshipCategory.AUTHORS),
            composers=_parse_holders(data, AuthorshipCategory.COMPOSERS),
            publishers=_parse_holders(data, AuthorshipCategory.PUBLISHERS),
        )


@dataclass(frozen=True)
class NeighboringRightsAllocation:
    """Neighboring-rights royalty splits of one work.

    Shares here are informational and carry no sum constraint.
    """
    producers: tuple[RightsHolder, ...] = ()
    labels: tuple[RightsHolder, ...] = ()
    others: tuple[RightsHolder, ...] = ()

    def holders(self, category: NeighboringCategory) -> tuple[RightsHolder, ...]:
        return getattr(self, category.value)

    def with_holders(
        self,
        category: NeighboringCategory,
        holders: tuple[RightsHolder, ...],
    ) -> NeighboringRightsAllocation:
        return dataclasses.replace(self, **{category.value: holders})

    def total_percentage(self) -> int:
        return sum(
            h.percentage
            for category in NeighboringCategory
            for h in self.holders(category)
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            category.value: _holders_payload(self.holders(category), category)
            for category in NeighboringCategory
        }

    @staticmethod
    def from_payload(data: dict[str, Any]) -> NeighboringRightsAllocation:
        if not isinstance(data, dict):
            raise InvalidValueError("Neighboring rights allocation must be an object")
        return NeighboringRightsAllocation(
            producers=_parse_holders(data, NeighboringCategory.PRODUCERS),
            labels=_parse_holders(data, NeighboringCategory.LABELS),
            others=_parse_holders(data, NeighboringCategory.OTHERS),
        )
