"""
Unit tests for the Ticketing service HTTP surface.
"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from shared.config import get_config
from shared.errors import AccessLayerException
from service_tickets.app.main import TicketsService
from service_tickets.app.cache.redis_cache import QueryCache
from service_tickets.app.domain.models import TicketStatus, CreateTicketParams
from service_tickets.app.persistence.store import RecordNotFound

from conftest import TEST_SECRET, make_token, make_ticket, make_comment, make_category


def auth_header(*permissions, sub="admin"):
    return {"Authorization": f"Bearer {make_token(list(permissions), sub=sub)}"}


class TestTicketsService:
    """Test cases for TicketsService."""

    @pytest.fixture
    def distributor(self):
        distributor = AsyncMock()
        distributor.enqueue_email_delivery = AsyncMock(return_value={"id": "task-1"})
        return distributor

    @pytest.fixture
    def cache(self, mock_redis):
        cache = QueryCache("redis://localhost:6379/0")
        cache.redis = mock_redis
        return cache

    @pytest.fixture
    def service(self, mock_store, cache, distributor):
        """Create TicketsService with mocked dependencies."""
        config = get_config("tickets", 8080, token_secret=TEST_SECRET)
        return TicketsService(config, store=mock_store, cache=cache, distributor=distributor)

    @pytest.fixture
    def client(self, service):
        """Create test client."""
        return TestClient(service.app)

    # Tickets

    def test_create_ticket(self, client, mock_store, distributor):
        """Ticket creation is public and notifies the owner."""
        mock_store.create_ticket.return_value = make_ticket()

        response = client.post("/tickets", json={
            "title": "Ticket 1",
            "description": "Printer is on fire",
            "status": "open",
            "user_assigned": "alice",
            "category_id": 1
        })

        assert response.status_code == 200
        assert response.json()["ticket_id"] == 1
        mock_store.create_ticket.assert_awaited_once_with(CreateTicketParams(
            title="Ticket 1",
            description="Printer is on fire",
            status=TicketStatus.OPEN,
            user_assigned="alice",
            category_id=1
        ))
        distributor.enqueue_email_delivery.assert_awaited_once()

    def test_create_ticket_invalid_status(self, client, mock_store):
        """Unknown statuses are binding errors."""
        response = client.post("/tickets", json={
            "title": "Ticket 1",
            "description": "Printer is on fire",
            "status": "pending",
            "user_assigned": "alice",
            "category_id": 1
        })

        assert response.status_code == 400
        assert "error" in response.json()
        mock_store.create_ticket.assert_not_awaited()

    def test_create_ticket_enqueue_failure(self, client, mock_store, distributor):
        """A failed notification enqueue is a 500."""
        mock_store.create_ticket.return_value = make_ticket()
        distributor.enqueue_email_delivery.side_effect = AccessLayerException(
            "TASK_ENQUEUE_FAILED", "failed to enqueue task: down"
        )

        response = client.post("/tickets", json={
            "title": "Ticket 1",
            "description": "Printer is on fire",
            "status": "open",
            "user_assigned": "alice",
            "category_id": 1
        })

        assert response.status_code == 500
        assert response.json() == {"error": "failed to enqueue task: down"}

    def test_list_tickets_requires_credential(self, client, mock_store):
        response = client.get("/tickets?page_id=1&page_size=5&is_admin=false&requester=alice")

        assert response.status_code == 401
        assert response.json() == {"error": "authorization header is not provided"}
        mock_store.list_tickets.assert_not_awaited()

    def test_list_tickets_page_id_zero(self, client, mock_store, mock_redis):
        """page_id=0 is a 400 and touches neither cache nor store."""
        response = client.get(
            "/tickets?page_id=0&page_size=5&is_admin=false&requester=alice",
            headers=auth_header()
        )

        assert response.status_code == 400
        mock_redis.get.assert_not_awaited()
        mock_store.list_tickets.assert_not_awaited()

    def test_list_tickets_empty_for_non_admin(self, client, mock_store):
        """A non-admin with no tickets gets an empty array."""
        mock_store.list_tickets.return_value = []

        response = client.get(
            "/tickets?page_id=1&page_size=5&is_admin=false&requester=alice",
            headers=auth_header()
        )

        assert response.status_code == 200
        assert response.json() == []
        assert response.headers["X-Cache"] == "MISS"

    def test_list_tickets_missing_requester(self, client):
        response = client.get("/tickets?page_id=1&page_size=5&is_admin=false", headers=auth_header())

        assert response.status_code == 400

    def test_list_tickets_cache_hit_is_byte_identical(self, client, mock_store, mock_redis):
        """A repeated listing is served from cache with the same body."""
        mock_store.list_tickets.return_value = [make_ticket(owner="alice")]
        url = "/tickets?page_id=1&page_size=5&is_admin=false&requester=alice"

        first = client.get(url, headers=auth_header())
        stored_key, ttl, stored_body = mock_redis.setex.await_args.args
        mock_redis.get.return_value = stored_body
        second = client.get(url, headers=auth_header())

        assert stored_key == "/tickets:user:alice:1:5"
        assert ttl == 300
        assert first.status_code == 200
        assert second.status_code == 200
        assert first.content == second.content
        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        mock_store.list_tickets.assert_awaited_once()

    def test_admin_list_uses_filters(self, client, mock_store):
        mock_store.list_all_tickets.return_value = [make_ticket(owner="bob")]

        response = client.get(
            "/tickets?page_id=1&page_size=5&is_admin=true&requester=root&user_assigned=bob",
            headers=auth_header()
        )

        assert response.status_code == 200
        assert response.json()[0]["user_assigned"] == "bob"
        params = mock_store.list_all_tickets.await_args.args[0]
        assert params.user_assigned == "bob"

    def test_get_own_ticket(self, client, mock_store):
        mock_store.get_ticket.return_value = make_ticket(owner="alice")

        response = client.get("/tickets/1?is_admin=false&requester=alice")

        assert response.status_code == 200
        assert response.json()["user_assigned"] == "alice"

    def test_get_foreign_ticket_as_non_admin(self, client, mock_store):
        """Non-admins cannot read tickets they do not own."""
        mock_store.get_ticket.return_value = make_ticket(owner="bob")

        response = client.get("/tickets/1?is_admin=false&requester=alice")

        assert response.status_code == 401
        assert response.json() == {"error": "user doesn't own that ticket"}

    def test_get_missing_ticket_as_admin(self, client, mock_store):
        mock_store.get_ticket.side_effect = RecordNotFound()

        response = client.get("/tickets/99?is_admin=true&requester=root")

        assert response.status_code == 404
        assert response.json() == {"error": "ticket not found"}

    def test_update_ticket_without_permission(self, client, mock_store):
        """Missing tickets.PUT is a 401 with no store mutation."""
        response = client.put(
            "/tickets/1",
            json={"status": "closed"},
            headers=auth_header("categories.POST")
        )

        assert response.status_code == 401
        mock_store.get_ticket_for_update.assert_not_awaited()
        mock_store.update_ticket.assert_not_awaited()

    def test_update_ticket_with_expired_token(self, client, mock_store):
        token = make_token(["tickets.PUT"], expires_in=timedelta(minutes=-1))

        response = client.put(
            "/tickets/1",
            json={"status": "closed"},
            headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "token has expired"}
        mock_store.update_ticket.assert_not_awaited()

    def test_update_ticket(self, client, mock_store):
        mock_store.get_ticket_for_update.return_value = make_ticket()
        mock_store.update_ticket.return_value = make_ticket(status=TicketStatus.IN_PROGRESS, assigned_to="eng")

        response = client.put(
            "/tickets/1",
            json={"status": "inprogress", "assigned_to": "eng"},
            headers=auth_header("tickets.PUT")
        )

        assert response.status_code == 200
        assert response.json()["status"] == "inprogress"
        assert response.json()["assigned_to"] == "eng"

    def test_delete_ticket(self, client, mock_store):
        mock_store.get_ticket.return_value = make_ticket()

        response = client.delete("/tickets/1")

        assert response.status_code == 204
        mock_store.delete_ticket.assert_awaited_once_with(1)

    def test_invalid_path_id(self, client):
        response = client.delete("/tickets/0")

        assert response.status_code == 400

    # Comments

    def test_create_comment(self, client, mock_store):
        mock_store.get_ticket.return_value = make_ticket()
        mock_store.create_comment.return_value = make_comment()

        response = client.post(
            "/tickets/1/comments",
            json={"comment_text": "Have you tried turning it off?", "user_commented": "bob"}
        )

        assert response.status_code == 200
        assert response.json()["comment_id"] == 1

    def test_list_comments(self, client, mock_store):
        mock_store.get_ticket.return_value = make_ticket()
        mock_store.list_comments.return_value = [make_comment(1), make_comment(2)]

        response = client.get("/tickets/1/comments?page_id=1&page_size=5")

        assert response.status_code == 200
        assert [c["comment_id"] for c in response.json()] == [1, 2]

    def test_update_comment_missing_ticket(self, client, mock_store):
        """Editing a comment on a missing ticket is 404 and mutates nothing."""
        mock_store.get_ticket_for_update.side_effect = RecordNotFound()

        response = client.put("/tickets/99/comments/1", json={"comment_text": "edited"})

        assert response.status_code == 404
        mock_store.update_comment.assert_not_awaited()
        mock_store.update_ticket.assert_not_awaited()

    def test_update_comment(self, client, mock_store):
        mock_store.get_ticket_for_update.return_value = make_ticket()
        mock_store.get_comment_for_update.return_value = make_comment()
        mock_store.update_comment.return_value = make_comment(text="edited")

        response = client.put("/tickets/1/comments/1", json={"comment_text": "edited"})

        assert response.status_code == 200
        assert response.json()["comment_text"] == "edited"
        mock_store.update_ticket.assert_awaited_once()

    def test_delete_comment(self, client, mock_store):
        mock_store.get_comment_for_update.return_value = make_comment()

        response = client.delete("/tickets/1/comments/1")

        assert response.status_code == 200
        assert response.json() is True

    # Categories

    def test_list_categories(self, client, mock_store):
        mock_store.list_categories.return_value = [make_category(1, "VIP")]

        response = client.get("/categories?page_id=1&page_size=1")

        assert response.status_code == 200
        assert response.json() == [{"category_id": 1, "name": "VIP"}]

    def test_list_categories_missing_page(self, client, mock_store):
        response = client.get("/categories?page_size=1")

        assert response.status_code == 400
        mock_store.list_categories.assert_not_awaited()

    def test_list_categories_oversized_page(self, client, mock_store, mock_redis):
        response = client.get("/categories?page_id=99999999999999999999&page_size=1")

        assert response.status_code == 400
        mock_redis.get.assert_not_awaited()
        mock_store.list_categories.assert_not_awaited()

    def test_create_category_requires_permission(self, client, mock_store):
        response = client.post("/categories", json={"name": "VIP"}, headers=auth_header("tickets.PUT"))

        assert response.status_code == 401
        mock_store.create_category.assert_not_awaited()

    def test_create_category(self, client, mock_store):
        mock_store.create_category.return_value = make_category(2, "Billing")

        response = client.post("/categories", json={"name": "Billing"}, headers=auth_header("categories.POST"))

        assert response.status_code == 200
        assert response.json() == {"category_id": 2, "name": "Billing"}

    # Operational endpoints

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "tickets"
        assert data["status"] == "ok"
        assert data["dependencies"]["redis"] == "ok"

    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_store_failure_is_internal_error(self, client, mock_store):
        mock_store.get_ticket.side_effect = RuntimeError("connection reset")

        response = client.get("/tickets/1?is_admin=true&requester=root")

        assert response.status_code == 500
        assert response.json() == {"error": "get ticket failed: connection reset"}
