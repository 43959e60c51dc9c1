"""配置模块：加载环境文件并缓存权限服务的运行设置。

环境文件的加载顺序：

1. ``ENV_FILE`` 指定的文件（存在时独占，覆盖已有环境变量）；
2. 项目根目录下的 ``.env``（不覆盖已有环境变量）；
3. ``ENVIRONMENT`` 对应的 ``.env.<environment>``，``DEBUG`` 为真且未指定时视为 ``development``。
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import MenuSyncModeEnum

TRUTHY_VALUES = {"1", "true", "yes", "on"}


def _find_project_root() -> Path:
    """自当前文件向上查找包含 ``app`` 目录的路径，找不到时使用文件所在目录。"""
    here = Path(__file__).resolve()
    return next((parent for parent in here.parents if (parent / "app").is_dir()), here.parent)


BASE_DIR = _find_project_root()


def _env_files() -> Iterator[Tuple[Path, bool]]:
    """按优先级产出 ``(路径, 是否覆盖)``。"""
    explicit = os.getenv("ENV_FILE")
    if explicit:
        yield BASE_DIR / explicit, True
        return

    yield BASE_DIR / ".env", False

    environment = os.getenv("ENVIRONMENT")
    if environment is None and (os.getenv("DEBUG") or "").strip().lower() in TRUTHY_VALUES:
        environment = "development"
    if environment:
        name = environment if environment.startswith(".env") else f".env.{environment}"
        yield BASE_DIR / name, True


for _path, _override in _env_files():
    if _path.exists():
        load_dotenv(_path, override=_override, encoding="utf-8")


class Settings(BaseSettings):
    """
    权限服务的全部配置项，字段均可通过同名（alias）环境变量重写。
    菜单同步与权限解析的行为开关集中在这里，业务代码只通过 ``get_settings()`` 读取。
    """

    # 应用
    project_name: str = Field(default="Console RBAC API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="Asia/Shanghai", alias="TIMEZONE")

    # 数据库：DATABASE_URL 优先，其次按分项拼接 PostgreSQL 连接串
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    database_host: str = Field(default="localhost", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_user: str = Field(default="postgres", alias="DATABASE_USER")
    database_password: str = Field(default="postgres", alias="DATABASE_PASSWORD")
    database_name: str = Field(default="console_rbac", alias="DATABASE_NAME")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # 令牌校验
    jwt_secret_key: str = Field(default="changeme", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # 日志
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # 权限解析
    global_admin_roles_raw: str = Field(default="admin,super_admin", alias="GLOBAL_ADMIN_ROLES")
    menu_auto_include_ancestors: bool = Field(default=False, alias="MENU_AUTO_INCLUDE_ANCESTORS")
    # 未指定组织时以用户主组织作为作用域
    permission_default_primary_org: bool = Field(default=True, alias="PERMISSION_DEFAULT_PRIMARY_ORG")

    # 菜单种子同步
    menu_sync_on_startup: bool = Field(default=True, alias="MENU_SYNC_ON_STARTUP")
    menu_sync_mode: MenuSyncModeEnum = Field(default=MenuSyncModeEnum.FORCE, alias="MENU_SYNC_MODE")
    menu_sync_remove_orphans: bool = Field(default=False, alias="MENU_SYNC_REMOVE_ORPHANS")

    # 编码生成的最大重试次数（唯一约束冲突时递增后缀）
    code_max_attempts: int = Field(default=5, ge=1, alias="CODE_MAX_ATTEMPTS")

    model_config = SettingsConfigDict(extra="ignore")

    @property
    def sql_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def log_directory(self) -> Path:
        """日志目录的绝对路径；相对路径以项目根目录为基准。"""
        path = Path(self.log_dir)
        return path if path.is_absolute() else BASE_DIR / path

    @property
    def log_file_path(self) -> Path:
        return self.log_directory / self.log_file_name

    @property
    def timezone_info(self) -> ZoneInfo:
        """配置的时区，无法识别时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")

    @property
    def global_admin_roles(self) -> set[str]:
        """用户表 ``role`` 字段命中该集合即视为系统管理员（小写比较）。"""
        return {item.strip().lower() for item in self.global_admin_roles_raw.split(",") if item.strip()}


@lru_cache
def get_settings() -> Settings:
    """返回进程内唯一的配置对象。"""
    return Settings()
