"""
初始化数据脚本
创建：管理员账号、示例商品

注册接口只对管理员开放，首个管理员由本脚本创建。

默认账号：
  admin          管理员      密码 admin123
"""
import sys
sys.path.insert(0, '.')

from decimal import Decimal
from app.database import SessionLocal, init_db
from app.models.ontology import User, UserType, GroceryItem, ItemCategory, ItemUnit
from app.security.auth import get_password_hash


def init_admin(db):
    """初始化管理员账号"""
    admin = db.query(User).filter(User.username == "admin").first()
    if admin:
        return admin
    admin = User(
        username="admin",
        password_hash=get_password_hash("admin123"),
        name="Administrator",
        type=UserType.ADMIN,
        active=True,
    )
    db.add(admin)
    db.commit()
    return admin


def init_catalog(db):
    """初始化示例商品（已有商品时跳过）"""
    if db.query(GroceryItem).count() > 0:
        return 0

    items = [
        ("Rice", "أرز", ItemCategory.FOOD, "2.50", ItemUnit.KG, 100),
        ("Bread", "خبز", ItemCategory.FOOD, "1.00", ItemUnit.PIECE, 50),
        ("Eggs", "بيض", ItemCategory.FOOD, "6.00", ItemUnit.PACK, 40),
        ("Milk", "حليب", ItemCategory.BEVERAGES, "4.00", ItemUnit.LITER, 60),
        ("Water", "ماء", ItemCategory.BEVERAGES, "1.50", ItemUnit.PACK, 200),
        ("Detergent", "منظف", ItemCategory.CLEANING, "8.75", ItemUnit.PIECE, 30),
    ]
    for name, name_ar, category, price, unit, stock in items:
        db.add(GroceryItem(
            name=name, name_ar=name_ar, category=category,
            price=Decimal(price), unit=unit, stock=stock, is_available=True,
        ))
    db.commit()
    return len(items)


def main():
    """主函数"""
    print("=" * 50)
    print("HMS 初始化数据")
    print("=" * 50)

    init_db()
    print("数据库表创建完成")

    db = SessionLocal()
    try:
        init_admin(db)
        created = init_catalog(db)
        print(f"示例商品: {created}")

        print("=" * 50)
        print("初始化完成！")
        print()
        print("默认账号：")
        print("  管理员:   admin    密码 admin123")
        print("=" * 50)
    finally:
        db.close()


if __name__ == '__main__':
    main()
