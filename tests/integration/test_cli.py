"""
Integration tests for the flask CLI commands
"""
from conftest import TEST_PASSWORD, login, query_scalar


class TestCommands:

    def test_init_db_is_idempotent(self, app):
        runner = app.test_cli_runner()
        assert runner.invoke(args=["init-db"]).exit_code == 0
        assert runner.invoke(args=["init-db"]).exit_code == 0

    def test_seed_runs_once(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["seed"])
        assert result.exit_code == 0
        assert "products: 4" in result.output
        assert query_scalar("SELECT COUNT(*) FROM product_categories") == 3

        result = runner.invoke(args=["seed"])
        assert "products: 0" in result.output
        assert query_scalar("SELECT COUNT(*) FROM products") == 4

    def test_create_admin(self, app, client):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["create-admin", "root", "root@example.com", "--password", TEST_PASSWORD])
        assert result.exit_code == 0
        assert query_scalar("SELECT role FROM users WHERE username = 'root'") == "admin"

        login(client, username="root")
        assert client.get("/admin/").status_code == 200

    def test_create_admin_rejects_weak_password(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["create-admin", "root", "root@example.com", "--password", "weak"])
        assert result.exit_code != 0
        assert query_scalar("SELECT COUNT(*) FROM users") == 0

    def test_create_admin_rejects_duplicates(self, app, user):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["create-admin", "alice", "other@example.com", "--password", TEST_PASSWORD])
        assert result.exit_code != 0
        assert "already exists" in result.output
