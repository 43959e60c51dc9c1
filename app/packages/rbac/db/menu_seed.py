"""控制台的静态菜单定义，应用启动与 ``sync-menus`` 命令据此同步菜单表。

``name`` 是稳定键，重命名会被视为新菜单；调整结构时优先修改这里再执行同步。
"""

from typing import Any, Dict, List

MENU_TREE: List[Dict[str, Any]] = [
    {
        "name": "dashboard",
        "title": "仪表盘",
        "path": "/dashboard",
        "component": "dashboard",
        "icon": "dashboard",
        "menu_type": "page",
        "is_system": True,
        "sort_order": 10,
        "meta": {"keepAlive": False, "requireAuth": True},
    },
    {
        "name": "user",
        "title": "用户管理",
        "path": "/admin/users",
        "component": "user-manage",
        "icon": "user",
        "menu_type": "menu",
        "sort_order": 40,
        "meta": {"requireAuth": True},
        "permission_code": "user:view",
    },
    {
        "name": "error-management",
        "title": "错误页面管理",
        "path": "/errors",
        "icon": "warning",
        "menu_type": "menu",
        "sort_order": 50,
        "is_system": True,
        "is_hidden": True,
        "children": [
            {
                "name": "errors-403",
                "title": "403 无权限",
                "path": "/errors/403",
                "component": "error-403",
                "menu_type": "page",
                "sort_order": 1,
            },
            {
                "name": "errors-404",
                "title": "404 未找到",
                "path": "/errors/404",
                "component": "error-404",
                "menu_type": "page",
                "sort_order": 2,
            },
            {
                "name": "errors-500",
                "title": "500 服务器错误",
                "path": "/errors/500",
                "component": "error-500",
                "menu_type": "page",
                "sort_order": 3,
            },
        ],
    },
    {
        "name": "admin",
        "title": "系统管理",
        "path": "/admin",
        "icon": "setting",
        "menu_type": "menu",
        "sort_order": 100,
        "meta": {"requireAuth": True},
        "children": [
            {
                "name": "admin-org",
                "title": "组织管理",
                "path": "/orgs",
                "component": "org-manage",
                "menu_type": "page",
                "sort_order": 1,
                "permission_code": "system:orgs",
            },
            {
                "name": "admin-role",
                "title": "角色管理",
                "path": "/admin/roles",
                "component": "role-manage",
                "menu_type": "page",
                "sort_order": 2,
                "permission_code": "system:roles",
            },
            {
                "name": "system-settings",
                "title": "系统设置",
                "path": "/settings",
                "component": "settings",
                "menu_type": "page",
                "sort_order": 3,
                "permission_code": "system:settings",
            },
            {
                "name": "system-logs",
                "title": "系统日志",
                "path": "/logs",
                "component": "logs",
                "menu_type": "page",
                "sort_order": 6,
                "permission_code": "system:logs",
            },
            {
                "name": "system-menus",
                "title": "菜单管理",
                "path": "/admin/menus",
                "component": "menu-manage",
                "menu_type": "page",
                "sort_order": 110,
                "permission_code": "system:menus",
                "children": [
                    {
                        "name": "system-menus-sync",
                        "title": "同步菜单",
                        "menu_type": "button",
                        "sort_order": 1,
                        "permission_code": "system:menus:sync",
                    },
                ],
            },
        ],
    },
    {
        "name": "profile",
        "title": "个人资料",
        "path": "/profile",
        "component": "profile",
        "icon": "idcard",
        "menu_type": "menu",
        "sort_order": 140,
        "meta": {"requireAuth": True},
        "permission_code": "profile:view",
    },
]
