# Overview: Pytest coverage for the Flask CLI command groups.

from stockbill.models import Notification, SessionToken, User


class TestUserCommands:

    def test_create_and_issue_token(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create", "--name", "Jane", "--email", "jane@example.com", "--subscription-days", "30",
        ])
        assert "PASS Created user" in result.output
        assert db_session.query(User).filter_by(email="jane@example.com").one().subscription_status == "active"

        result = runner.invoke(args=["users", "issue-token", "--email", "jane@example.com"])
        assert "PASS Token for jane@example.com" in result.output
        assert db_session.query(SessionToken).count() == 1

        result = runner.invoke(args=["users", "revoke-tokens", "--email", "jane@example.com"])
        assert "Revoked 1 session(s)" in result.output

    def test_duplicate_user(self, app, db_session, owner):
        result = app.test_cli_runner().invoke(args=["users", "create", "--name", "Dup", "--email", owner.email])
        assert "FAIL" in result.output

    def test_list_users(self, app, db_session, owner):
        result = app.test_cli_runner().invoke(args=["users", "list"])
        assert owner.email in result.output


class TestNotificationCommands:

    def test_check_low_stock(self, app, db_session, owner, make_item):
        make_item(owner.id, name="Bolt", sku="B-1", quantity=1)
        result = app.test_cli_runner().invoke(args=["notifications", "check-low-stock"])
        assert "Created 1 low stock notification(s)" in result.output
        assert db_session.query(Notification).count() == 1

    def test_check_low_stock_disabled(self, app, db_session, owner, make_item):
        make_item(owner.id, name="Bolt", sku="B-1", quantity=1)
        app.config["LOW_STOCK_CHECK_ENABLED"] = False
        try:
            result = app.test_cli_runner().invoke(args=["notifications", "check-low-stock"])
        finally:
            app.config["LOW_STOCK_CHECK_ENABLED"] = True
        assert "SKIP" in result.output
        assert db_session.query(Notification).count() == 0

    def test_check_subscriptions(self, app, db_session, owner):
        result = app.test_cli_runner().invoke(args=["notifications", "check-subscriptions"])
        assert "0 expiring soon, 0 expired" in result.output
