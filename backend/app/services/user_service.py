"""
用户服务 - 身份存储
注册按角色区分字段：住户/工人自动生成账号并使用初始密码，管理员自定义账号
"""
from typing import Optional, Union
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.ontology import User, UserType
from app.models.schemas import ResidentRegistration, WorkerRegistration, AdminRegistration
from app.security.auth import get_password_hash, verify_password, create_access_token
from app.housing.errors import UserNotFound, ValidationError

logger = logging.getLogger(__name__)

Registration = Union[ResidentRegistration, WorkerRegistration, AdminRegistration]


def generate_username(name: str, room_number: str) -> str:
    """姓名去空格转小写 + 房间号，如 "John Smith" / "101" -> johnsmith101"""
    return "".join(name.split()).lower() + room_number


class UserService:
    """用户服务"""

    def __init__(self, db: Session):
        self.db = db

    def find_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user(self, user_id: int) -> User:
        user = self.find_user(user_id)
        if not user:
            raise UserNotFound(f"User not found: {user_id}", entity_id=user_id)
        return user

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def register(self, data: Registration) -> User:
        """注册用户"""
        if isinstance(data, AdminRegistration):
            username = data.username
            password = data.password
            room_number = None
            days = None
        else:
            username = generate_username(data.name, data.room_number)
            password = settings.DEFAULT_RESIDENT_PASSWORD
            room_number = data.room_number
            days = getattr(data, "days", None)

        if self.get_by_username(username):
            raise ValidationError(f"Username already exists: {username}")

        user = User(
            username=username,
            password_hash=get_password_hash(password),
            name=data.name,
            type=UserType(data.type),
            room_number=room_number,
            contact_number=data.contact_number,
            email=data.email,
            days=days,
            active=True,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # 并发注册同名账号，由唯一索引兜底
            self.db.rollback()
            raise ValidationError(f"Username already exists: {username}")
        self.db.refresh(user)
        logger.info(f"User registered: {user.username} ({user.type.value})")
        return user

    def authenticate(self, username: str, password: str) -> Optional[dict]:
        """校验账号密码，成功返回令牌和用户；失败返回 None"""
        user = self.get_by_username(username)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for {username}")
            return None
        if not user.active:
            logger.warning(f"Login rejected for disabled account {username}")
            return None
        return {
            "access_token": create_access_token(user.id, user.type),
            "token_type": "bearer",
            "user": user,
        }

    def update_push_token(self, user: User, push_token: str) -> User:
        user.push_token = push_token
        self.db.commit()
        self.db.refresh(user)
        return user
