"""Database models for ArguFight."""

from argufight.models.api_usage import ApiUsage
from argufight.models.competition import Belt
from argufight.models.debate import Debate, Statement
from argufight.models.setting import AdminSetting
from argufight.models.user import User

__all__ = [
    "AdminSetting",
    "ApiUsage",
    "Belt",
    "Debate",
    "Statement",
    "User",
]
