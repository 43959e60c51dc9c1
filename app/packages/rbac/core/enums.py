"""枚举定义：约束菜单类型、个性化授权类型与权限来源的可选值。"""

from enum import Enum


class MenuTypeEnum(str, Enum):
    """菜单节点在控制台中的渲染类型。"""

    MENU = "menu"
    PAGE = "page"
    BUTTON = "button"
    LINK = "link"
    IFRAME = "iframe"
    DIR = "dir"


class OverrideTypeEnum(str, Enum):
    """用户级菜单授权：显式授予或显式拒绝。"""

    GRANT = "grant"
    DENY = "deny"


class PermissionSourceEnum(str, Enum):
    """有效权限的判定来源，按优先级从高到低排列。"""

    ADMIN = "admin"
    DENY = "deny"
    USER_GRANT = "user-grant"
    ROLE = "role"
    NONE = "none"


class BindingScopeEnum(str, Enum):
    """用户与角色的绑定途径。"""

    GLOBAL_FIELD = "global_field"
    GLOBAL_ROLE = "global_role"
    ORG_ROLE = "org_role"


class MenuSyncModeEnum(str, Enum):
    """菜单种子同步模式。

    - force：种子为准，覆盖已有节点的全部字段（含层级与排序）；
    - patch：已有节点保留人工调整过的父级、排序与层级；
    - insert_only：只新增缺失节点，已有节点保持不变。
    """

    FORCE = "force"
    PATCH = "patch"
    INSERT_ONLY = "insert_only"
