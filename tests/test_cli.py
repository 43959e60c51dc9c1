"""命令行工具测试：通过业务包入口初始化数据库与同步菜单。"""

import json

import pytest
from typer.testing import CliRunner

from app.cli import app as cli_app
from app.packages import get_active_package
from app.packages.rbac.models.menu import Menu

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """命令会按调用时的标准流重建日志处理器，用例结束后恢复到真实的标准流。"""
    yield
    get_active_package().setup_logging()


def test_active_package_exposes_sync_entrypoints():
    package = get_active_package()

    assert package.name == "rbac"
    session = package.open_session()
    try:
        summary = package.sync_menus(session, mode="insert_only")
    finally:
        session.close()
    assert summary["created"] == 0


def test_sync_menus_command_prints_summary(db_session_fixture):
    result = runner.invoke(cli_app, ["sync-menus", "--mode", "patch"])

    assert result.exit_code == 0
    summary = json.loads(result.stdout.strip().splitlines()[-1])
    assert summary["mode"] == "patch"
    assert summary["synced_count"] == db_session_fixture.query(Menu).count()


def test_sync_menus_command_aborts_without_confirmation():
    result = runner.invoke(cli_app, ["sync-menus", "--remove-orphans"], input="n\n")

    assert result.exit_code != 0


def test_init_db_command():
    result = runner.invoke(cli_app, ["init-db", "--no-sync"])

    assert result.exit_code == 0
    assert "Database initialized" in result.stdout
