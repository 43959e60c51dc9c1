"""控制台权限服务的命令行工具（rbacctl），通过业务包注册中心调用当前启用的业务包。"""

import json

import typer

from app.packages.rbac.core.enums import MenuSyncModeEnum

app = typer.Typer(name="rbacctl", help="Console RBAC CLI")


def _package():
    from app.packages import get_active_package

    package = get_active_package()
    package.setup_logging()
    return package


@app.command("init-db")
def init_db_command(
    sync: bool = typer.Option(True, "--sync/--no-sync", help="初始化后是否同步菜单种子"),
):
    """Create tables, seed built-in roles and the administrator, then sync menus."""
    _package().init_db(sync=sync)
    typer.echo("✅ Database initialized")


@app.command("sync-menus")
def sync_menus_command(
    mode: MenuSyncModeEnum = typer.Option(MenuSyncModeEnum.FORCE, "--mode", help="同步模式"),
    remove_orphans: bool = typer.Option(False, "--remove-orphans", help="删除种子之外的菜单（不可恢复）"),
):
    """Reconcile the static menu seed into the menus table."""
    if remove_orphans:
        confirm = typer.confirm("⚠️  Menus not present in the seed will be deleted. Continue?")
        if not confirm:
            raise typer.Abort()

    package = _package()
    db = package.open_session()
    try:
        summary = package.sync_menus(db, mode=mode, remove_orphans=remove_orphans)
    finally:
        db.close()
    typer.echo(json.dumps(summary, ensure_ascii=False))


if __name__ == "__main__":
    app()
