"""业务包契约：主应用与命令行工具只通过这里声明的入口使用业务包。"""

from __future__ import annotations

from dataclasses import dataclass
from logging import Logger
from typing import Any, Callable, Dict

from fastapi import APIRouter
from sqlalchemy.orm import Session


@dataclass(frozen=True)
class AppPackage:
    """一个权限业务包对外暴露的入口。

    - ``init_db(sync=None)``：建表、写入内置角色与管理员，按配置同步菜单种子；
    - ``sync_menus(db, seed=None, *, remove_orphans, mode)``：把菜单种子对齐到数据库，返回统计；
    - ``open_session()``：新建一个数据库会话，调用方负责关闭；
    - 其余字段供 ``app.main`` 装配路由、日志与统一响应结构。
    """

    name: str
    api_router: APIRouter
    get_settings: Callable[[], Any]
    setup_logging: Callable[[], None]
    logger: Logger
    init_db: Callable[..., None]
    sync_menus: Callable[..., Dict[str, Any]]
    open_session: Callable[[], Session]
    create_response: Callable[..., dict]
    http_exception_handler: Callable[..., object]
    generic_exception_handler: Callable[..., object]
