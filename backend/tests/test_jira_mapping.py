import uuid

import pytest

from alignzo.exceptions import NotFoundError, ValidationError
from alignzo.services.jira_mapping import JiraMappingService

OWNER = "agent@example.com"


class TestProjectMappings:
    async def test_save_then_update_in_place(self, db, seed):
        service = JiraMappingService(db, OWNER)

        mapping, created = await service.save_project_mapping(seed.project.id, " ops ", "Operations")
        assert created is True
        assert mapping.jira_project_key == "OPS"
        assert mapping.integration_user_email == OWNER

        again, created = await service.save_project_mapping(seed.project.id, "OPS", "Ops Desk")
        assert created is False
        assert again.id == mapping.id
        assert again.jira_project_name == "Ops Desk"
        assert len(await service.list_project_mappings()) == 1

    async def test_resolve_project_key(self, db, seed):
        service = JiraMappingService(db, OWNER)
        await service.save_project_mapping(seed.project.id, "OPS")

        assert await service.resolve_project_key(seed.project.id) == "OPS"
        with pytest.raises(NotFoundError):
            await service.resolve_project_key(seed.other_project.id)

    async def test_scoped_to_owner(self, db, seed):
        mapping, _ = await JiraMappingService(db, OWNER).save_project_mapping(seed.project.id, "OPS")
        other = JiraMappingService(db, "someone@example.com")

        assert await other.list_project_mappings() == []
        with pytest.raises(NotFoundError):
            await other.delete_project_mapping(mapping.id)
        with pytest.raises(NotFoundError):
            await other.resolve_project_key(seed.project.id)

    async def test_filter_by_project(self, db, seed):
        service = JiraMappingService(db, OWNER)
        await service.save_project_mapping(seed.project.id, "OPS")
        await service.save_project_mapping(seed.other_project.id, "NET")

        mappings = await service.list_project_mappings(seed.other_project.id)
        assert [m.jira_project_key for m in mappings] == ["NET"]

    @pytest.mark.parametrize("key", ["", "  ", "ops desk", "1OPS"])
    async def test_invalid_key(self, db, seed, key):
        with pytest.raises(ValidationError) as exc_info:
            await JiraMappingService(db, OWNER).save_project_mapping(seed.project.id, key)
        assert exc_info.value.field == "jira_project_key"

    async def test_unknown_project_and_delete(self, db, seed):
        service = JiraMappingService(db, OWNER)
        with pytest.raises(NotFoundError):
            await service.save_project_mapping(uuid.uuid4(), "OPS")

        mapping, _ = await service.save_project_mapping(seed.project.id, "OPS")
        await service.delete_project_mapping(mapping.id)
        assert await service.list_project_mappings() == []


class TestUserMappings:
    async def test_global_and_per_project_mappings_are_distinct(self, db, seed):
        service = JiraMappingService(db, OWNER)

        general, created = await service.save_user_mapping("John@Example.com", "John Doe")
        assert created is True
        assert general.user_email == "john@example.com"
        assert general.jira_project_key is None

        scoped, created = await service.save_user_mapping(
            "john@example.com", "jdoe", jira_project_key="ops"
        )
        assert created is True
        assert scoped.jira_project_key == "OPS"

        updated, created = await service.save_user_mapping(
            "john@example.com", "Johnny Doe", jira_reporter_name="J. Doe"
        )
        assert created is False
        assert updated.id == general.id
        assert updated.jira_assignee_name == "Johnny Doe"
        assert updated.jira_reporter_name == "J. Doe"

        assert len(await service.list_user_mappings()) == 2
        assert [m.id for m in await service.list_user_mappings("ops")] == [scoped.id]

    async def test_required_fields(self, db, seed):
        service = JiraMappingService(db, OWNER)
        with pytest.raises(ValidationError) as exc_info:
            await service.save_user_mapping("  ", "John")
        assert exc_info.value.field == "user_email"

        with pytest.raises(ValidationError) as exc_info:
            await service.save_user_mapping("john@example.com", " ")
        assert exc_info.value.field == "jira_assignee_name"

    async def test_delete_scoped_to_owner(self, db, seed):
        mapping, _ = await JiraMappingService(db, OWNER).save_user_mapping("a@b.c", "A")

        with pytest.raises(NotFoundError):
            await JiraMappingService(db, "other@example.com").delete_user_mapping(mapping.id)

        await JiraMappingService(db, OWNER).delete_user_mapping(mapping.id)
        assert await JiraMappingService(db, OWNER).list_user_mappings() == []
