"""
app/housing/__init__.py

住房管理领域：订单/账单/报修的状态守卫与错误分类
"""
