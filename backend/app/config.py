"""
应用配置
从环境变量读取配置；SMTP / Firebase 未配置时对应渠道注册为禁用
"""
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "HMS"
    DEBUG: bool = False

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./hms.db"

    # JWT 配置
    SECRET_KEY: str = "hms-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # 住户/工人注册时的初始密码
    DEFAULT_RESIDENT_PASSWORD: str = "password123"

    # 邮件配置 (SMTP)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_SENDER: Optional[str] = None

    # 推送配置 (Firebase 服务账号)
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CLIENT_EMAIL: Optional[str] = None
    FIREBASE_PRIVATE_KEY: Optional[str] = None

    # 文档输出
    PDF_OUTPUT_DIR: str = "./uploads/pdf"
    CURRENCY: str = "SAR"

    # 编号补零位数
    ORDER_SEQUENCE_PAD: int = 3
    INVOICE_SEQUENCE_PAD: int = 4

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
