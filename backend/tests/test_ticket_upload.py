import uuid
from datetime import datetime

import pytest
from sqlalchemy import select

from alignzo.exceptions import DuplicateError, NotFoundError, ValidationError
from alignzo.models import TicketMasterMapping, UploadedTicket, UploadSession
from alignzo.services.master_mapping import MasterMappingService
from alignzo.services.ticket_upload import TicketUploadService, decode_upload

HEADERS = [
    "Incident_ID",
    "Priority",
    "Assignee",
    "Status",
    "Reported_Date1",
    "Last_Resolved_Date",
    "Group_Transfers",
    "MTTR",
]


async def upload(db, seed, content, **kwargs):
    return await TicketUploadService(db).process_upload(
        content=content,
        file_name="export.csv",
        source_id=seed.source.id,
        user_email="agent@example.com",
        **kwargs,
    )


class TestProcessUpload:
    async def test_missing_incident_id_rejects_only_that_row(self, db, seed, csv_text):
        content = csv_text(
            HEADERS,
            [
                ("INC0001", "SR", "jdoe", "Resolved", "08/18/2025, 07:06:29 PM", "08/18/2025, 09:06:29 PM", "1", "02:00:00"),
                ("", "INC", "jdoe", "Pending", "08/19/2025, 10:00:00 AM", "", "", ""),
                ("INC0003", "", "asmith", "Assigned", "not a date", "", "x", ""),
            ],
        )
        summary = await upload(db, seed, content)

        assert summary.total_rows == 3
        assert summary.inserted_count == 2
        assert summary.rejected_count == 1
        assert len(summary.errors) == 1
        error = summary.errors[0]
        assert error.row == 2
        assert error.field == "incident_id"
        assert error.code == "VALIDATION_ERROR"
        assert "required" in error.message

        rows = (await db.execute(select(UploadedTicket).order_by(UploadedTicket.incident_id))).scalars().all()
        assert [r.incident_id for r in rows] == ["INC0001", "INC0003"]
        first, third = rows
        assert first.reported_date1.replace(tzinfo=None) == datetime(2025, 8, 18, 19, 6, 29)
        assert first.group_transfers == 1
        assert first.mttr_seconds == 7200
        assert third.reported_date1 is None
        assert third.group_transfers is None
        assert third.priority is None
        assert all(r.upload_session_id == summary.session_id for r in rows)

    async def test_counts_always_add_up_and_ids_are_unique(self, db, seed, csv_text):
        content = csv_text(
            HEADERS,
            [
                ("INC1", "SR", "", "", "", "", "", ""),
                ("INC1", "SR", "", "", "", "", "", ""),
                ("bad id!", "SR", "", "", "", "", "", ""),
                ("INC2", "P1", "", "", "", "", "", ""),
                ("INC3", "cr", "", "", "", "", "", ""),
            ],
        )
        summary = await upload(db, seed, content)

        assert summary.inserted_count + summary.rejected_count == summary.total_rows == 5
        assert summary.inserted_count == 2
        codes = {e.row: (e.code, e.field) for e in summary.errors}
        assert codes == {
            2: ("DUPLICATE", "incident_id"),
            3: ("VALIDATION_ERROR", "incident_id"),
            4: ("VALIDATION_ERROR", "priority"),
        }

        ids = (await db.execute(select(UploadedTicket.incident_id))).scalars().all()
        assert sorted(ids) == ["INC1", "INC3"]

    async def test_over_long_cell_rejects_only_that_row(self, db, seed, csv_text):
        content = csv_text(
            HEADERS,
            [
                ("INC1", "SR", "jdoe", "Resolved", "", "", "", ""),
                ("INC2", "SR", "jdoe", "x" * 101, "", "", "", ""),
                ("INC3", "SR", "jdoe", "y" * 100, "", "", "", ""),
            ],
        )
        summary = await upload(db, seed, content)

        assert summary.inserted_count == 2
        assert summary.rejected_count == 1
        error = summary.errors[0]
        assert (error.row, error.field, error.code) == (2, "status", "VALIDATION_ERROR")
        assert "100" in error.message

    async def test_already_stored_incident_is_duplicate(self, db, seed, csv_text):
        content = csv_text(HEADERS, [("INC9", "SR", "", "", "", "", "", "")])
        await upload(db, seed, content)
        summary = await upload(db, seed, content)

        assert summary.inserted_count == 0
        assert summary.errors[0].code == "DUPLICATE"
        assert "already exists" in summary.errors[0].message

    async def test_assignee_mapped_case_insensitively(self, db, seed, csv_text):
        await MasterMappingService(db).create_mapping(seed.source.id, "JDoe", "John.Doe@Example.com")
        content = csv_text(
            HEADERS,
            [
                ("INC1", "SR", " jdoe ", "", "", "", "", ""),
                ("INC2", "SR", "unknown", "", "", "", "", ""),
            ],
        )
        await upload(db, seed, content)

        rows = (await db.execute(select(UploadedTicket).order_by(UploadedTicket.incident_id))).scalars().all()
        assert rows[0].mapped_user_email == "john.doe@example.com"
        assert rows[1].mapped_user_email is None

    async def test_session_records_outcome(self, db, seed, csv_text):
        content = csv_text(
            HEADERS,
            [
                ("", "SR", "", "", "", "", "", ""),
                ("", "SR", "x", "", "", "", "", ""),
            ],
        )
        summary = await upload(db, seed, content, project_id=seed.project.id)

        session = await db.get(UploadSession, summary.session_id)
        assert session.status == "failed"
        assert session.total_rows == 2
        assert session.rejected_count == 2
        assert session.project_id == seed.project.id
        assert [e["row"] for e in session.error_details] == [1, 2]
        assert session.completed_at is not None

    async def test_top_level_errors(self, db, seed):
        with pytest.raises(ValidationError):
            await upload(db, seed, "")
        with pytest.raises(NotFoundError):
            await TicketUploadService(db).process_upload(
                content="Incident_ID\nINC1\n",
                file_name="x.csv",
                source_id=uuid.uuid4(),
                user_email="agent@example.com",
            )
        with pytest.raises(NotFoundError):
            await upload(db, seed, "Incident_ID\nINC1\n", project_id=uuid.uuid4())

    def test_decode_upload(self):
        assert decode_upload("\ufeffIncident_ID\n".encode("utf-8")) == "Incident_ID\n"
        with pytest.raises(ValidationError):
            decode_upload(b"\xff\xfe\x00bad")


class TestListings:
    async def test_filters_and_search(self, db, seed, csv_text):
        content = csv_text(
            ["Incident_ID", "Priority", "Status", "Summary", "Assignee"],
            [
                ("INC1", "SR", "Resolved", "VPN outage", "jdoe"),
                ("INC2", "SR", "Pending", "Printer jam", "asmith"),
            ],
        )
        await upload(db, seed, content)
        service = TicketUploadService(db)

        tickets, total = await service.list_tickets(status="Pending")
        assert total == 1 and tickets[0].incident_id == "INC2"

        tickets, total = await service.list_tickets(search="vpn")
        assert [t.incident_id for t in tickets] == ["INC1"]

        sessions = await service.list_sessions(user_email="agent@example.com")
        assert len(sessions) == 1

    async def test_sources(self, db, seed):
        service = TicketUploadService(db)
        await service.create_source("ServiceNow")
        assert [s.name for s in await service.list_sources()] == ["Remedy", "ServiceNow"]
        with pytest.raises(DuplicateError):
            await service.create_source("remedy")


class TestMasterMappings:
    async def test_duplicate_mapping_rejected(self, db, seed):
        service = MasterMappingService(db)
        await service.create_mapping(seed.source.id, "jdoe", "john@example.com")
        with pytest.raises(DuplicateError):
            await service.create_mapping(seed.source.id, " JDOE ", "other@example.com")

    async def test_list_and_delete(self, db, seed):
        service = MasterMappingService(db)
        mapping = await service.create_mapping(seed.source.id, "jdoe", "john@example.com")
        await service.create_mapping(seed.source.id, "asmith", "anna@example.com")

        mappings, total = await service.list_mappings(search="anna")
        assert total == 1 and mappings[0].source_assignee_value == "asmith"

        await service.delete_mapping(mapping.id)
        assert await service.build_lookup(seed.source.id) == {"asmith": "anna@example.com"}
        assert (await db.execute(select(TicketMasterMapping))).scalars().all()[0].source_assignee_value == "asmith"

        with pytest.raises(NotFoundError):
            await service.delete_mapping(uuid.uuid4())
