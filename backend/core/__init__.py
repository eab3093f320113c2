"""
core - 领域无关的基础框架层

包含：
- engine: 状态转换表（声明式状态守卫）
- notification: 通知渠道抽象（推送、邮件等由 app 层实现）

使用方式:
    >>> from core.engine import TransitionTable
    >>> from core.notification import INotificationChannel, NotificationChannelRegistry
"""
