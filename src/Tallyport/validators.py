"""Batch validation for the built-in import types.

Validators check every row and return human-readable failure messages; an
empty list means the batch may be written. Row numbers count the CSV header,
so the first record is row 2.

Foreign-key fields that hold an integer-like string are normalized to ``int``
in place, and nomination records gain the resolved ``candidate`` id so the
upsert does not have to look the candidate up again.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from Tallyport import repos
from Tallyport.content_types import CANDIDATE, CONSTITUENCY, ELECTION, PARTY

HEADER_ROWS = 1

CANDIDATE_REQUIRED_FIELDS = ("firstName", "lastName", "party", "email", "published")
NOMINATION_REQUIRED_FIELDS = (
    "election",
    "constituency",
    "email",
    "party",
    "electionSymbol",
    "published",
)


def row_number(index: int) -> int:
    """Spreadsheet row of the record at ``index`` (0-based)."""
    return index + 1 + HEADER_ROWS


def missing_fields(record: Mapping[str, Any], required: Iterable[str]) -> list[str]:
    return [field for field in required if field not in record]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_id(value: Any) -> Any:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _check_foreign_key(
    record: MutableMapping[str, Any],
    field: str,
    valid_ids: set[int],
    row: int,
    failures: list[str],
    label: str | None = None,
) -> bool:
    """Report an unknown id; True when the field holds a known id."""
    # An absent field is already reported as missing
    if field not in record:
        return False
    value = record[field] = _coerce_id(record[field])
    if isinstance(value, int) and value in valid_ids:
        return True
    failures.append(f"Row {row} has invalid {label or field} id")
    return False


def _check_email(
    record: MutableMapping[str, Any], row: int, failures: list[str]
) -> str | None:
    if "email" not in record:
        return None
    if _is_blank(record["email"]):
        failures.append(f"Row {row} is missing email")
        return None
    # Stored back so the upsert matches on the same value the checks used
    email = record["email"] = str(record["email"]).strip()
    return email


async def validate_candidates(
    s: AsyncSession, records: Sequence[MutableMapping[str, Any]]
) -> list[str]:
    """Validate a candidate batch.

    Checks that each row has every required field and a non-empty email,
    that emails are unique within the batch, and that the party id exists.
    """
    failures: list[str] = []
    party_ids = await repos.find_ids(s, PARTY)
    seen_emails: dict[str, int] = {}

    for i, candidate in enumerate(records):
        row = row_number(i)
        missing = missing_fields(candidate, CANDIDATE_REQUIRED_FIELDS)
        if missing:
            failures.append(f"Row {row} is missing required fields: {', '.join(missing)}")

        email = _check_email(candidate, row, failures)
        if email is not None:
            if email in seen_emails:
                failures.append(f"Rows {seen_emails[email]} and {row} has same email")
            else:
                seen_emails[email] = row

        _check_foreign_key(candidate, "party", party_ids, row, failures)

    return failures


async def validate_nominations(
    s: AsyncSession, records: Sequence[MutableMapping[str, Any]]
) -> list[str]:
    """Validate a nomination batch.

    - Each nomination has all the required fields
    - Emails are not empty and belong to an existing candidate
    - Election, constituency and party ids are valid
    - Each combination of email, election, constituency and party is unique

    The matching candidate's id is stored on the record as ``candidate``.
    """
    failures: list[str] = []
    election_ids = await repos.find_ids(s, ELECTION)
    constituency_ids = await repos.find_ids(s, CONSTITUENCY)
    party_ids = await repos.find_ids(s, PARTY)
    seen_keys: dict[tuple[Any, ...], int] = {}

    for i, nomination in enumerate(records):
        row = row_number(i)
        missing = missing_fields(nomination, NOMINATION_REQUIRED_FIELDS)
        if missing:
            failures.append(f"Row {row} is missing required fields: {', '.join(missing)}")

        email = _check_email(nomination, row, failures)
        if email is not None:
            candidate = await repos.find_first(s, CANDIDATE, {"email": email})
            nomination["candidate"] = candidate.id if candidate is not None else None
            if candidate is None:
                failures.append(f"Row {row} has invalid email")

        # Every field is checked; only rows with known ids join the duplicate check
        known_ids = [
            _check_foreign_key(nomination, "election", election_ids, row, failures),
            _check_foreign_key(nomination, "constituency", constituency_ids, row, failures),
            _check_foreign_key(nomination, "party", party_ids, row, failures),
        ]

        if email is not None and all(known_ids):
            key = (
                email,
                nomination.get("election"),
                nomination.get("constituency"),
                nomination.get("party"),
            )
            if key in seen_keys:
                failures.append(
                    f"Rows {seen_keys[key]} and {row} has same email, election, "
                    "constituency and party"
                )
            else:
                seen_keys[key] = row

    return failures
