from tests.utils.db import AppTestCase


class UserDirectoryTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        self.viewer_id = self.create_user("viewer")
        for username in ("carol", "alice", "bob"):
            self.create_user(username)
        self.login(self.viewer_id)

    def test_lists_users_by_email(self):
        response = self.client.get("/api/users")

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(
            [user["email"] for user in payload["users"]],
            ["alice@example.com", "bob@example.com", "carol@example.com", "viewer@example.com"],
        )
        self.assertEqual((payload["total"], payload["page"], payload["pageSize"], payload["totalPages"]), (4, 1, 50, 1))

    def test_search_is_case_insensitive(self):
        response = self.client.get("/api/users?search=BOB")
        self.assertEqual([user["name"] for user in response.get_json()["users"]], ["Bob"])

    def test_pagination(self):
        response = self.client.get("/api/users?page=2&pageSize=3")

        payload = response.get_json()
        self.assertEqual([user["email"] for user in payload["users"]], ["viewer@example.com"])
        self.assertEqual((payload["total"], payload["totalPages"]), (4, 2))

    def test_rejects_out_of_range_page_size(self):
        response = self.client.get("/api/users?pageSize=500")
        self.assertEqual(response.status_code, 400)
        self.assertIn("pageSize", response.get_json()["fieldErrors"])

    def test_requires_login(self):
        self.assertEqual(self.app.test_client().get("/api/users").status_code, 401)
