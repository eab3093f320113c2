"""
认证路由
"""
from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User
from app.models.schemas import LoginRequest, PushTokenUpdate, Token, UserRegistration, UserResponse
from app.services.user_service import UserService
from app.security.auth import get_current_user, require_admin

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: UserRegistration = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """注册用户（管理员）"""
    return UserService(db).register(data)


@router.post("/login", response_model=Token)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """用户登录"""
    result = UserService(db).authenticate(data.username, data.password)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )
    return Token(
        access_token=result["access_token"],
        token_type=result["token_type"],
        user=UserResponse.model_validate(result["user"]),
    )


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return current_user


@router.put("/push-token", response_model=UserResponse)
def update_push_token(
    data: PushTokenUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """保存设备推送令牌"""
    return UserService(db).update_push_token(current_user, data.push_token)
