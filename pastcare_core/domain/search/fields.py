"""Field catalog for the advanced member search.

Every field a client can filter or sort on is declared exactly once
in FIELD_CATALOG. The storage path is interpreted against the Member
model by the predicate builder:

- "first_name"       a column on members
- "location.city"    a column on a many-to-one related row
- "tags.tag"         the element column of a one-to-many collection
- "fellowships.id"   the element column of a many-to-many collection
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pastcare_core.domain.search.errors import (
    TenantScopeViolationError,
    UnknownFieldError,
)


class FieldType(str, Enum):
    """Declared data type of a searchable field."""

    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    BOOLEAN = "BOOLEAN"
    COLLECTION = "COLLECTION"


# Column holding the tenant on every tenant-owned table
TENANT_COLUMN = "church_id"

_TENANT_SEGMENTS = {"church", "churchid", "tenant", "tenantid"}
_SEGMENT_SPLIT = re.compile(r"[.\[\]/\s]+")


@dataclass(frozen=True)
class SearchField:
    """A searchable member field.

    Attributes:
        key: Upper-case catalog key (e.g. FIRST_NAME)
        name: Logical name used by clients (e.g. firstName)
        storage_path: Path to the stored value, relative to Member
        type: Declared field type
        element_type: Type of the elements of a COLLECTION field
        whole_numbers: Only integral NUMBER values are accepted
        minimum: Smallest accepted NUMBER value
        derived: Name of the derivation applied to the stored value
    """

    key: str
    name: str
    storage_path: str
    type: FieldType
    element_type: Optional[FieldType] = None
    whole_numbers: bool = False
    minimum: Optional[float] = None
    derived: Optional[str] = None

    @property
    def value_type(self) -> FieldType:
        """Type individual filter values are coerced to."""
        if self.type == FieldType.COLLECTION:
            return self.element_type or FieldType.TEXT
        return self.type

    @property
    def sortable(self) -> bool:
        return self.type != FieldType.COLLECTION


FIELD_CATALOG: tuple[SearchField, ...] = (
    # Personal info
    SearchField("FIRST_NAME", "firstName", "first_name", FieldType.TEXT),
    SearchField("LAST_NAME", "lastName", "last_name", FieldType.TEXT),
    SearchField("PHONE_NUMBER", "phoneNumber", "phone_number", FieldType.TEXT),
    SearchField("EMAIL", "email", "email", FieldType.TEXT),
    # Demographics
    SearchField("SEX", "sex", "sex", FieldType.TEXT),
    SearchField("MARITAL_STATUS", "maritalStatus", "marital_status", FieldType.TEXT),
    SearchField("DATE_OF_BIRTH", "dateOfBirth", "date_of_birth", FieldType.DATE),
    SearchField(
        "AGE",
        "age",
        "date_of_birth",
        FieldType.NUMBER,
        whole_numbers=True,
        minimum=0,
        derived="age",
    ),
    # Church-related
    SearchField("STATUS", "status", "status", FieldType.TEXT),
    SearchField("MEMBER_SINCE", "memberSince", "member_since", FieldType.DATE),
    SearchField("IS_VERIFIED", "isVerified", "is_verified", FieldType.BOOLEAN),
    SearchField(
        "PROFILE_COMPLETENESS",
        "profileCompleteness",
        "profile_completeness",
        FieldType.NUMBER,
        minimum=0,
    ),
    # Collections
    SearchField(
        "TAGS", "tags", "tags.tag", FieldType.COLLECTION, element_type=FieldType.TEXT
    ),
    SearchField(
        "FELLOWSHIPS",
        "fellowships",
        "fellowships.id",
        FieldType.COLLECTION,
        element_type=FieldType.NUMBER,
        whole_numbers=True,
    ),
    # Location
    SearchField("CITY", "location.city", "location.city", FieldType.TEXT),
    SearchField("SUBURB", "location.suburb", "location.suburb", FieldType.TEXT),
    SearchField("REGION", "location.region", "location.region", FieldType.TEXT),
    SearchField("COUNTRY", "location.country", "location.country", FieldType.TEXT),
)


def references_tenant(path: str) -> bool:
    """Check whether a field name or storage path points at the tenant."""
    segments = _SEGMENT_SPLIT.split(path.strip().lower())
    return any(
        segment.replace("_", "").replace("-", "") in _TENANT_SEGMENTS
        for segment in segments
        if segment
    )


def _build_index(catalog: tuple[SearchField, ...]) -> dict[str, SearchField]:
    index: dict[str, SearchField] = {}
    for search_field in catalog:
        if references_tenant(search_field.storage_path):
            raise RuntimeError(
                f"Search field {search_field.key} must not expose the tenant column"
            )
        for alias in (search_field.name.lower(), search_field.key.lower()):
            if alias in index and index[alias] is not search_field:
                raise RuntimeError(f"Duplicate search field alias: {alias}")
            index[alias] = search_field
    return index


_INDEX = _build_index(FIELD_CATALOG)


def resolve(field_name: str) -> SearchField:
    """Resolve a client field name to its catalog entry.

    Names are matched case-insensitively against the logical name
    (firstName) and the catalog key (FIRST_NAME).

    Raises:
        TenantScopeViolationError: If the name references the tenant.
        UnknownFieldError: If no catalog entry matches.
    """
    if not isinstance(field_name, str) or not field_name.strip():
        raise UnknownFieldError(str(field_name))

    if references_tenant(field_name):
        raise TenantScopeViolationError(
            "Search criteria may not reference the tenant scope",
            field_name=field_name,
        )

    search_field = _INDEX.get(field_name.strip().lower())
    if search_field is None:
        raise UnknownFieldError(field_name)
    return search_field
