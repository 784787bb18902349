"""
Payload validation for contest and profile requests.

Pure functions, no I/O. Each validate_* returns a Validated holding either the
normalized model or every field issue found; nothing here raises on bad input.
Callers turn a rejection into a ValidationError (400) with details().
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Generic, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic import ValidationError as PydanticValidationError

from cfs_backend.models import ContestStatus, ContestType

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Never taken from a payload, whatever the operation
IMMUTABLE_FIELDS = frozenset({"id", "creatorId", "createdAt", "updatedAt", "currentEntries"})


# ---------- Result types ----------


@dataclass(frozen=True)
class FieldIssue:
    """One violated rule on one field (field uses the wire name, e.g. maxEntryFee)."""
    field: str
    rule: str
    message: str


@dataclass
class Validated(Generic[T]):
    value: T | None = None
    issues: list[FieldIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def fields(self) -> list[str]:
        return list(dict.fromkeys(i.field for i in self.issues))

    def details(self) -> dict[str, list[dict[str, str]]]:
        return issues_to_details(self.issues)


def issues_to_details(issues: list[FieldIssue]) -> dict[str, list[dict[str, str]]]:
    """Field issues -> the response `details` object: {field: [{rule, message}, ...]}."""
    out: dict[str, list[dict[str, str]]] = {}
    for issue in issues:
        out.setdefault(issue.field, []).append({"rule": issue.rule, "message": issue.message})
    return out


def _rejected(*issues: FieldIssue) -> Validated[Any]:
    return Validated(issues=list(issues))


def _issues_from(exc: PydanticValidationError) -> list[FieldIssue]:
    issues: list[FieldIssue] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "body"
        issues.append(FieldIssue(loc, err["type"], err["msg"]))
    return issues


def _as_utc(value: datetime | None) -> datetime | None:
    """Naive timestamps are taken as UTC so comparisons never mix naive and aware."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


def temporal_issues(
    start_time: datetime | None,
    end_time: datetime | None,
    lock_time: datetime | None,
) -> list[FieldIssue]:
    """lockTime <= startTime <= endTime, checked only for the values present."""
    issues: list[FieldIssue] = []
    if start_time is None:
        return issues
    if end_time is not None and end_time < start_time:
        issues.append(FieldIssue("endTime", "after_start_time", "endTime must not be before startTime"))
    if lock_time is not None and lock_time > start_time:
        issues.append(FieldIssue("lockTime", "before_start_time", "lockTime must not be after startTime"))
    return issues


# ---------- Schemas ----------


class _Schema(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )


class ContestListQuery(_Schema):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    sport: str | None = None
    status: ContestStatus | None = None
    type: ContestType | None = None
    min_entry_fee: float | None = Field(default=None, ge=0, alias="minEntryFee")
    max_entry_fee: float | None = Field(default=None, ge=0, alias="maxEntryFee")

    @field_validator("status", "type", mode="before")
    @classmethod
    def _normalize_enum(cls, value: Any) -> Any:
        return _upper(value)

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, value: int) -> int:
        return min(value, MAX_PAGE_SIZE)


class SportsQuery(_Schema):
    active: bool | None = None


class ContestCreate(_Schema):
    sport_id: str = Field(..., min_length=1, alias="sportId")
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    type: ContestType
    entry_fee: float = Field(..., ge=0, alias="entryFee")
    prize_pool: float = Field(..., ge=0, alias="prizePool")
    roster_size: int = Field(..., gt=0, alias="rosterSize")
    max_entries: int | None = Field(default=None, gt=0, alias="maxEntries")
    salary_cap: float | None = Field(default=None, ge=0, alias="salaryCap")
    scoring_rules: dict[str, Any] = Field(default_factory=dict, alias="scoringRules")
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime | None = Field(default=None, alias="endTime")
    lock_time: datetime | None = Field(default=None, alias="lockTime")
    is_private: bool = Field(default=False, alias="isPrivate")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_enum(cls, value: Any) -> Any:
        return _upper(value)

    @field_validator("scoring_rules", mode="before")
    @classmethod
    def _default_rules(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("is_private", mode="before")
    @classmethod
    def _default_private(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("start_time", "end_time", "lock_time")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class ContestUpdate(_Schema):
    """Partial update. Only keys present in the payload end up in changes()."""
    sport_id: str | None = Field(default=None, min_length=1, alias="sportId")
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: ContestType | None = None
    status: ContestStatus | None = None
    entry_fee: float | None = Field(default=None, ge=0, alias="entryFee")
    prize_pool: float | None = Field(default=None, ge=0, alias="prizePool")
    roster_size: int | None = Field(default=None, gt=0, alias="rosterSize")
    max_entries: int | None = Field(default=None, gt=0, alias="maxEntries")
    salary_cap: float | None = Field(default=None, ge=0, alias="salaryCap")
    scoring_rules: dict[str, Any] | None = Field(default=None, alias="scoringRules")
    start_time: datetime | None = Field(default=None, alias="startTime")
    end_time: datetime | None = Field(default=None, alias="endTime")
    lock_time: datetime | None = Field(default=None, alias="lockTime")
    is_private: bool | None = Field(default=None, alias="isPrivate")
    invite_code: str | None = Field(default=None, alias="inviteCode")

    @field_validator("type", "status", mode="before")
    @classmethod
    def _normalize_enum(cls, value: Any) -> Any:
        return _upper(value)

    @field_validator("start_time", "end_time", "lock_time")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def changes(self) -> dict[str, Any]:
        """Field name -> new value, for the fields the payload actually carried."""
        return {name: getattr(self, name) for name in sorted(self.model_fields_set)}


# Present-but-null is rejected for these; the rest may be cleared with null
_NON_NULLABLE_UPDATE_FIELDS = frozenset({
    "sport_id", "name", "type", "status", "entry_fee", "prize_pool",
    "roster_size", "start_time", "is_private", "scoring_rules",
})


class NotificationPreferences(_Schema):
    email: bool | None = None
    push: bool | None = None
    sms: bool | None = None

    def overrides(self) -> dict[str, bool]:
        return self.model_dump(exclude_none=True)


class ProfileFields(_Schema):
    name: str | None = Field(default=None, min_length=1)
    username: str | None = Field(default=None, min_length=3)
    image: HttpUrl | None = None
    date_of_birth: date | None = Field(default=None, alias="dateOfBirth")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    phone: str | None = None
    country: str | None = None
    timezone: str | None = None
    language: str | None = None
    notifications: NotificationPreferences | None = None


class ProfileUpdate(_Schema):
    profile: ProfileFields | None = None
    preferences: NotificationPreferences | None = None


# ---------- Validators ----------


def _alias(model: type[BaseModel], name: str) -> str:
    return model.model_fields[name].alias or name


def _not_a_mapping(payload: Any) -> Validated[Any] | None:
    if isinstance(payload, Mapping):
        return None
    return _rejected(FieldIssue("body", "object_type", "Request body must be a JSON object"))


def validate_list_query(params: Mapping[str, Any]) -> Validated[ContestListQuery]:
    """Coerce list-query parameters. Empty strings count as absent."""
    data = {k: v for k, v in params.items() if v is not None and v != ""}
    try:
        query = ContestListQuery.model_validate(data)
    except PydanticValidationError as exc:
        return _rejected(*_issues_from(exc))
    if (
        query.min_entry_fee is not None
        and query.max_entry_fee is not None
        and query.max_entry_fee < query.min_entry_fee
    ):
        return _rejected(FieldIssue(
            "maxEntryFee", "gte_min_entry_fee", "maxEntryFee must be greater than or equal to minEntryFee",
        ))
    return Validated(value=query)


def validate_sports_query(params: Mapping[str, Any]) -> Validated[SportsQuery]:
    data = {k: v for k, v in params.items() if v is not None and v != ""}
    try:
        return Validated(value=SportsQuery.model_validate(data))
    except PydanticValidationError as exc:
        return _rejected(*_issues_from(exc))


def validate_create(payload: Any) -> Validated[ContestCreate]:
    rejected = _not_a_mapping(payload)
    if rejected is not None:
        return rejected
    data = {k: v for k, v in payload.items() if k not in IMMUTABLE_FIELDS}
    try:
        contest = ContestCreate.model_validate(data)
    except PydanticValidationError as exc:
        return _rejected(*_issues_from(exc))
    issues = temporal_issues(contest.start_time, contest.end_time, contest.lock_time)
    if issues:
        return _rejected(*issues)
    return Validated(value=contest)


def validate_update(payload: Any) -> Validated[ContestUpdate]:
    """Same fields as create, all optional, plus status. A patch with nothing recognized is rejected."""
    rejected = _not_a_mapping(payload)
    if rejected is not None:
        return rejected
    data = {k: v for k, v in payload.items() if k not in IMMUTABLE_FIELDS}
    try:
        patch = ContestUpdate.model_validate(data)
    except PydanticValidationError as exc:
        return _rejected(*_issues_from(exc))
    if not patch.model_fields_set:
        return _rejected(FieldIssue("body", "no_fields", "No updatable fields provided"))
    issues = [
        FieldIssue(_alias(ContestUpdate, name), "not_nullable", "Field cannot be null")
        for name in sorted(patch.model_fields_set & _NON_NULLABLE_UPDATE_FIELDS)
        if getattr(patch, name) is None
    ]
    issues.extend(temporal_issues(patch.start_time, patch.end_time, patch.lock_time))
    if issues:
        return _rejected(*issues)
    return Validated(value=patch)


def validate_profile_update(payload: Any) -> Validated[ProfileUpdate]:
    rejected = _not_a_mapping(payload)
    if rejected is not None:
        return rejected
    try:
        update = ProfileUpdate.model_validate(payload)
    except PydanticValidationError as exc:
        return _rejected(*_issues_from(exc))
    if update.profile is None and update.preferences is None:
        return _rejected(FieldIssue("profile", "no_fields", "No update data provided"))
    issues: list[FieldIssue] = []
    if update.preferences is not None and not update.preferences.overrides():
        issues.append(FieldIssue(
            "preferences", "no_fields", "At least one notification preference must be provided",
        ))
    if (
        update.profile is not None
        and update.profile.notifications is not None
        and not update.profile.notifications.overrides()
    ):
        issues.append(FieldIssue(
            "profile.notifications", "no_fields", "At least one notification preference must be provided",
        ))
    if issues:
        return _rejected(*issues)
    return Validated(value=update)
