"""全局常量：HTTP 状态码、保留角色与默认账号。"""

HTTP_STATUS_OK = 200
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_UNPROCESSABLE = 422

ACCESS_TOKEN_TYPE = "bearer"

# 角色编码为 admin 的角色在其作用域内（全局或组织）拥有全部菜单
ADMIN_ROLE_CODE = "admin"
DEFAULT_USER_ROLE_CODE = "user"

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_NICKNAME = "系统管理员"

# 管理接口所需的权限字符，对应菜单种子中的 permission_code
PERMISSION_MENU_MANAGE = "system:menus"
PERMISSION_ROLE_MANAGE = "system:roles"
PERMISSION_ORG_MANAGE = "system:orgs"
