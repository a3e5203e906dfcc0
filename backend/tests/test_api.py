import uuid

from conftest import jira_issue, make_token

PREFIX = "/api/v1"


class TestAuthAndErrors:
    async def test_requires_bearer_token(self, anon_client, seed):
        response = await anon_client.get(f"{PREFIX}/categories/projects/{seed.project.id}")
        assert response.status_code == 401

    async def test_rejects_token_signed_with_other_key(self, anon_client, seed):
        response = await anon_client.get(
            f"{PREFIX}/kanban/projects/{seed.project.id}/columns",
            headers={"Authorization": f"Bearer {make_token(secret='wrong')}"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    async def test_domain_error_body(self, client, seed):
        missing = uuid.uuid4()
        response = await client.get(f"{PREFIX}/kanban/tasks/{missing}")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": f"Task not found: {missing}",
            "code": "NOT_FOUND",
        }

    async def test_validation_error_names_field(self, client, seed):
        response = await client.post(
            f"{PREFIX}/kanban/tasks/{seed.task.id}/move",
            json={"column_id": str(seed.doing.id), "sort_order": 0, "categories": [{"category_id": "bad"}]},
        )
        assert response.status_code == 422
        assert response.json()["field"] == "categories"

    async def test_request_id_and_timing_headers(self, client):
        response = await client.get(f"{PREFIX}/health", headers={"X-Request-ID": "req-1"})
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-1"
        assert "X-Process-Time" in response.headers

        response = await client.get(f"{PREFIX}/health", headers={"X-Request-ID": "bad id\twith spaces"})
        assert response.headers["X-Request-ID"] != "bad id\twith spaces"
        assert len(response.headers["X-Request-ID"]) == 36


class TestHealth:
    async def test_ready(self, anon_client):
        response = await anon_client.get(f"{PREFIX}/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"database": "healthy", "cache": "healthy"}


class TestCategoriesApi:
    async def test_project_categories_and_cache(self, client, seed):
        response = await client.get(f"{PREFIX}/categories/projects/{seed.project.id}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert [c["name"] for c in data] == ["Work Type", "Module"]
        assert [o["option_name"] for o in data[0]["options"]] == ["Change", "Request", "Incident"]

        stats = (await client.get(f"{PREFIX}/cache/stats")).json()["data"]
        key = f"project-categories:{seed.project.id}"
        assert stats["keys"] == [key]
        assert stats["misses"] == 1

        response = await client.delete(f"{PREFIX}/cache/{key}")
        assert response.json() == {"success": True, "flushed": 1}
        response = await client.delete(f"{PREFIX}/cache")
        assert response.json() == {"success": True, "flushed": 0}

    async def test_create_category_refreshes_listing(self, client, seed):
        await client.get(f"{PREFIX}/categories/projects/{seed.project.id}")

        response = await client.post(
            f"{PREFIX}/categories",
            json={"project_id": str(seed.project.id), "name": "Severity", "sort_order": 9},
        )
        assert response.status_code == 201
        category_id = response.json()["data"]["id"]

        response = await client.post(
            f"{PREFIX}/categories/{category_id}/options", json={"option_name": "High"}
        )
        assert response.status_code == 201
        assert response.json()["data"]["option_value"] == "High"

        data = (await client.get(f"{PREFIX}/categories/projects/{seed.project.id}")).json()["data"]
        assert data[-1]["name"] == "Severity"
        assert [o["option_name"] for o in data[-1]["options"]] == ["High"]

    async def test_resolve(self, client, seed):
        response = await client.get(
            f"{PREFIX}/categories/resolve",
            params={"category_id": str(seed.category.id), "option_id": "unknown"},
        )
        assert response.json()["data"] == {
            "category_id": str(seed.category.id),
            "category_name": "Work Type",
            "category_resolved": True,
            "option_id": "unknown",
            "option_name": "unknown",
            "option_resolved": False,
        }


class TestKanbanApi:
    async def test_move_and_timeline(self, client, seed):
        url = f"{PREFIX}/kanban/tasks/{seed.task.id}"

        response = await client.post(
            f"{url}/move", json={"column_id": str(seed.todo.id), "sort_order": 3}
        )
        body = response.json()
        assert response.status_code == 200
        assert body["moved"] is False
        assert body["data"]["sort_order"] == 3

        response = await client.post(
            f"{url}/move",
            json={
                "column_id": str(seed.doing.id),
                "sort_order": 0,
                "categories": [
                    {"category_id": str(seed.category.id), "category_option_id": str(seed.options[1].id)}
                ],
            },
        )
        body = response.json()
        assert body["moved"] is True
        assert body["categories_updated"] is True
        assert body["data"]["column_id"] == str(seed.doing.id)
        assert body["data"]["category_mappings"][0]["category_option_id"] == str(seed.options[1].id)

        timeline = (await client.get(f"{url}/timeline")).json()["data"]
        assert [e["action"] for e in timeline] == ["categories_updated", "moved"]
        assert timeline[0]["details"]["categories"][0]["option_name"] == "Change"
        assert timeline[1]["details"]["to_column_name"] == "In Progress"
        assert timeline[1]["user_email"] == "agent@example.com"

    async def test_task_lifecycle(self, client, seed):
        response = await client.post(
            f"{PREFIX}/kanban/tasks",
            json={
                "project_id": str(seed.project.id),
                "column_id": str(seed.todo.id),
                "title": "Renew licence",
                "priority": "high",
            },
        )
        assert response.status_code == 201
        task = response.json()["data"]
        assert task["created_by"] == "agent@example.com"
        url = f"{PREFIX}/kanban/tasks/{task['id']}"

        response = await client.patch(url, json={"assigned_to": "ops@example.com"})
        assert response.json()["data"]["assigned_to"] == "ops@example.com"

        response = await client.post(f"{url}/comments", json={"comment": "Vendor contacted"})
        assert response.status_code == 201

        response = await client.delete(url)
        assert response.json()["data"]["status"] == "archived"

        board = (await client.get(f"{PREFIX}/kanban/projects/{seed.project.id}/board")).json()["data"]
        titles = [t["title"] for column in board for t in column["tasks"]]
        assert titles == ["Rotate certificates"]

        actions = [e["action"] for e in (await client.get(f"{url}/timeline")).json()["data"]]
        assert actions == ["status_changed", "commented", "assigned", "created"]

    async def test_patch_null_required_field_is_rejected(self, client, seed):
        response = await client.patch(f"{PREFIX}/kanban/tasks/{seed.task.id}", json={"title": None})

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["field"] == "title"


class TestTicketsApi:
    async def test_upload_reports_rejected_rows(self, client, seed, csv_text):
        content = csv_text(
            ["Incident ID", "Priority", "Assignee"],
            [("INC1", "SR", "jdoe"), ("", "SR", "jdoe"), ("INC2", "XX", "")],
        )
        response = await client.post(
            f"{PREFIX}/tickets/upload",
            files={"file": ("export.csv", content.encode(), "text/csv")},
            data={"source_id": str(seed.source.id), "project_id": str(seed.project.id)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["total_rows"] == 3
        assert body["inserted_count"] == 1
        assert body["rejected_count"] == 2
        assert [(e["row"], e["field"]) for e in body["errors"]] == [(2, "incident_id"), (3, "priority")]

        listing = (await client.get(f"{PREFIX}/tickets", params={"project_id": str(seed.project.id)})).json()
        assert listing["total"] == 1
        assert listing["data"][0]["incident_id"] == "INC1"

        sessions = (await client.get(f"{PREFIX}/tickets/sessions")).json()["data"]
        assert sessions[0]["inserted_count"] == 1

    async def test_upload_rejects_non_csv(self, client, seed):
        response = await client.post(
            f"{PREFIX}/tickets/upload",
            files={"file": ("export.xlsx", b"binary", "application/octet-stream")},
            data={"source_id": str(seed.source.id)},
        )
        assert response.status_code == 422
        assert response.json()["field"] == "file"

    async def test_master_mappings(self, client, seed):
        payload = {
            "source_id": str(seed.source.id),
            "source_assignee_value": "jdoe",
            "mapped_user_email": "John@Example.com",
        }
        response = await client.post(f"{PREFIX}/master-mappings", json=payload)
        assert response.status_code == 201
        mapping = response.json()["data"]
        assert mapping["mapped_user_email"] == "john@example.com"

        response = await client.post(f"{PREFIX}/master-mappings", json={**payload, "source_assignee_value": "JDOE"})
        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE"

        response = await client.delete(f"{PREFIX}/master-mappings/{mapping['id']}")
        assert response.status_code == 200
        assert (await client.get(f"{PREFIX}/master-mappings")).json()["total"] == 0


class TestJiraApi:
    async def save_integration(self, client):
        return await client.put(
            f"{PREFIX}/integrations/jira",
            json={
                "base_url": "https://acme.atlassian.net/",
                "user_email_integration": "agent@acme.com",
                "api_token": "secret-token-1234",
            },
        )

    async def test_save_and_search(self, client, fake_jira):
        response = await self.save_integration(client)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_verified"] is True
        assert data["base_url"] == "https://acme.atlassian.net"
        assert data["api_token"].endswith("1234")
        assert "secret" not in data["api_token"]

        fake_jira.search['key = "OTHER-42"'] = [jira_issue("OTHER-42", "Disk full")]
        response = await client.post(
            f"{PREFIX}/integrations/jira/search",
            json={"project_key": "abc", "search_term": "other-42"},
        )
        body = response.json()
        assert response.status_code == 200
        assert body["strategy"] == "exact_key"
        assert body["total"] == 1
        assert body["tickets"][0]["summary"] == "Disk full"

    async def test_search_failure_maps_to_bad_gateway(self, client, fake_jira):
        await self.save_integration(client)
        fake_jira.fail_search = True

        response = await client.post(
            f"{PREFIX}/integrations/jira/search",
            json={"project_key": "ABC", "search_term": "ABC-1"},
        )
        assert response.status_code == 502
        assert response.json()["code"] == "UPSTREAM_ERROR"

    async def test_rejected_credentials_are_not_stored(self, client, fake_jira):
        fake_jira.reject_auth = True

        response = await self.save_integration(client)
        assert response.status_code == 502

        response = await client.get(f"{PREFIX}/integrations/jira")
        assert response.status_code == 404

    async def test_search_without_integration(self, client):
        response = await client.post(
            f"{PREFIX}/integrations/jira/search",
            json={"project_key": "ABC", "search_term": "x"},
        )
        assert response.status_code == 404

    async def test_search_by_mapped_project(self, client, seed, fake_jira):
        await self.save_integration(client)
        response = await client.post(
            f"{PREFIX}/integrations/jira/project-mappings",
            json={"dashboard_project_id": str(seed.project.id), "jira_project_key": "ops"},
        )
        assert response.status_code == 200
        assert response.json()["created"] is True
        assert response.json()["data"]["jira_project_key"] == "OPS"

        jql = 'project = "OPS" AND key = "OPS-7"'
        fake_jira.search[jql] = [jira_issue("OPS-7", "Renew certificate")]
        response = await client.post(
            f"{PREFIX}/integrations/jira/search",
            json={"project_id": str(seed.project.id), "search_term": "7"},
        )
        assert response.status_code == 200
        assert response.json()["strategy"] == "project_key_pattern"
        assert fake_jira.queries == [jql]

        response = await client.post(
            f"{PREFIX}/integrations/jira/search",
            json={"project_id": str(seed.other_project.id), "search_term": "7"},
        )
        assert response.status_code == 404

    async def test_text_search_with_jira_down_is_bad_gateway(self, client, fake_jira):
        await self.save_integration(client)
        fake_jira.fail_search = True

        response = await client.post(
            f"{PREFIX}/integrations/jira/search",
            json={"project_key": "ABC", "search_term": "vpn outage"},
        )
        assert response.status_code == 502
        assert response.json()["success"] is False


class TestJiraMappingsApi:
    async def test_project_mapping_lifecycle(self, client, seed):
        url = f"{PREFIX}/integrations/jira/project-mappings"
        payload = {"dashboard_project_id": str(seed.project.id), "jira_project_key": "OPS"}

        first = (await client.post(url, json=payload)).json()
        second = (await client.post(url, json={**payload, "jira_project_name": "Operations"})).json()
        assert second["created"] is False
        assert second["data"]["id"] == first["data"]["id"]
        assert second["data"]["jira_project_name"] == "Operations"

        listing = (await client.get(url, params={"dashboard_project_id": str(seed.project.id)})).json()
        assert [m["jira_project_key"] for m in listing["data"]] == ["OPS"]

        response = await client.delete(f"{url}/{first['data']['id']}")
        assert response.json() == {"success": True}
        assert (await client.get(url)).json()["data"] == []

    async def test_invalid_project_key(self, client, seed):
        response = await client.post(
            f"{PREFIX}/integrations/jira/project-mappings",
            json={"dashboard_project_id": str(seed.project.id), "jira_project_key": "not a key"},
        )
        assert response.status_code == 422
        assert response.json()["field"] == "jira_project_key"

    async def test_user_mapping_lifecycle(self, client):
        url = f"{PREFIX}/integrations/jira/user-mappings"

        response = await client.post(
            url,
            json={"user_email": "dana@example.com", "jira_assignee_name": "Dana Agent", "jira_project_key": "ops"},
        )
        mapping = response.json()["data"]
        assert response.json()["created"] is True
        assert mapping["jira_project_key"] == "OPS"

        listing = (await client.get(url, params={"jira_project_key": "OPS"})).json()["data"]
        assert [m["jira_assignee_name"] for m in listing] == ["Dana Agent"]

        await client.delete(f"{url}/{mapping['id']}")
        response = await client.delete(f"{url}/{mapping['id']}")
        assert response.status_code == 404
