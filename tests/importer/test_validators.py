"""Batch validation for candidate and nomination imports."""

import pytest

from Tallyport.content_types import CANDIDATE, CONSTITUENCY, ELECTION, PARTY
from Tallyport.validators import (
    missing_fields,
    row_number,
    validate_candidates,
    validate_nominations,
)


def _candidate(email: str, party: int, **overrides) -> dict:
    row = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "party": party,
        "email": email,
        "published": "true",
    }
    row.update(overrides)
    return row


def test_row_number_counts_the_header():
    assert row_number(0) == 2
    assert row_number(9) == 11


def test_missing_fields_preserves_required_order():
    assert missing_fields({"email": "x"}, ["firstName", "email", "party"]) == [
        "firstName",
        "party",
    ]


class TestCandidateValidation:
    async def test_valid_batch_has_no_failures(self, db, seed):
        party = await seed(PARTY, {"name": "Greens"})
        records = [_candidate("a@example.org", party), _candidate("b@example.org", party)]

        assert await validate_candidates(db, records) == []

    async def test_reports_missing_fields_with_row_number(self, db, seed):
        party = await seed(PARTY, {"name": "Greens"})
        incomplete = {"firstName": "Ada", "party": party, "email": "a@example.org"}
        records = [_candidate("ok@example.org", party), incomplete]

        failures = await validate_candidates(db, records)

        assert failures == ["Row 3 is missing required fields: lastName, published"]

    async def test_reports_empty_email(self, db, seed):
        party = await seed(PARTY, {"name": "Greens"})

        failures = await validate_candidates(db, [_candidate("", party)])

        assert failures == ["Row 2 is missing email"]

    async def test_duplicate_email_reports_both_rows_once(self, db, seed):
        party = await seed(PARTY, {"name": "Greens"})
        records = [
            _candidate("dup@example.org", party),
            _candidate("dup@example.org", party),
            _candidate("other@example.org", party),
            _candidate("dup@example.org", party),
        ]

        failures = await validate_candidates(db, records)

        assert failures == [
            "Rows 2 and 3 has same email",
            "Rows 2 and 5 has same email",
        ]

    async def test_unknown_party_is_reported(self, db, seed):
        party = await seed(PARTY, {"name": "Greens"})

        failures = await validate_candidates(db, [_candidate("a@example.org", party + 100)])

        assert failures == ["Row 2 has invalid party id"]

    async def test_party_id_given_as_text_is_normalized(self, db, seed):
        party = await seed(PARTY, {"name": "Greens"})
        record = _candidate("a@example.org", str(party))

        assert await validate_candidates(db, [record]) == []
        assert record["party"] == party

    async def test_every_row_is_checked(self, db, seed):
        await seed(PARTY, {"name": "Greens"})
        records = [_candidate("", 999), _candidate("b@example.org", 998)]

        failures = await validate_candidates(db, records)

        assert failures == [
            "Row 2 is missing email",
            "Row 2 has invalid party id",
            "Row 3 has invalid party id",
        ]


class TestNominationValidation:
    @pytest.fixture
    async def refs(self, seed):
        party = await seed(PARTY, {"name": "Greens"})
        election = await seed(ELECTION, {"name": "General 2026"})
        constituency = await seed(CONSTITUENCY, {"name": "North"})
        candidate = await seed(CANDIDATE, {"email": "ada@example.org", "party": party})
        return {
            "party": party,
            "election": election,
            "constituency": constituency,
            "candidate": candidate,
        }

    def _nomination(self, refs, **overrides) -> dict:
        row = {
            "election": refs["election"],
            "constituency": refs["constituency"],
            "email": "ada@example.org",
            "party": refs["party"],
            "electionSymbol": "Tree",
            "published": "false",
        }
        row.update(overrides)
        return row

    async def test_attaches_candidate_id(self, db, refs):
        record = self._nomination(refs)

        assert await validate_nominations(db, [record]) == []
        assert record["candidate"] == refs["candidate"]

    async def test_unknown_email_is_reported(self, db, refs):
        record = self._nomination(refs, email="nobody@example.org")

        failures = await validate_nominations(db, [record])

        assert failures == ["Row 2 has invalid email"]
        assert record["candidate"] is None

    async def test_invalid_foreign_keys(self, db, refs):
        record = self._nomination(refs, election=0, constituency=0, party=0)

        failures = await validate_nominations(db, [record])

        assert failures == [
            "Row 2 has invalid election id",
            "Row 2 has invalid constituency id",
            "Row 2 has invalid party id",
        ]

    async def test_missing_fields_and_email(self, db, refs):
        record = self._nomination(refs, email="")
        del record["electionSymbol"]

        failures = await validate_nominations(db, [record])

        assert failures == [
            "Row 2 is missing required fields: electionSymbol",
            "Row 2 is missing email",
        ]

    async def test_duplicate_composite_key(self, db, refs):
        other = await _other_constituency(db)
        records = [
            self._nomination(refs),
            self._nomination(refs, constituency=other),
            self._nomination(refs),
        ]

        failures = await validate_nominations(db, records)

        assert failures == [
            "Rows 2 and 4 has same email, election, constituency and party",
        ]

    async def test_non_scalar_reference_is_reported_not_raised(self, db, refs):
        records = [
            self._nomination(refs, election=[refs["election"]]),
            self._nomination(refs, election=[refs["election"]]),
            self._nomination(refs, party={"id": refs["party"]}),
        ]

        failures = await validate_nominations(db, records)

        assert failures == [
            "Row 2 has invalid election id",
            "Row 3 has invalid election id",
            "Row 4 has invalid party id",
        ]


async def _other_constituency(db) -> int:
    from Tallyport import repos

    entry = await repos.create_entry(db, CONSTITUENCY, {"name": "South"})
    return entry.id


async def test_candidate_email_is_trimmed_in_place(db, seed):
    party = await seed(PARTY, {"name": "Greens"})
    records = [_candidate(" dup@example.org", party), _candidate("dup@example.org ", party)]

    failures = await validate_candidates(db, records)

    assert failures == ["Rows 2 and 3 has same email"]
    assert [r["email"] for r in records] == ["dup@example.org", "dup@example.org"]
