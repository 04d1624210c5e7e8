from enum import Enum
from pydantic import BaseModel


class StatsScope(str, Enum):
    GLOBAL = "global"
    VISIBLE = "visible"
    COMPANY = "company"


class ContainerStats(BaseModel):
    total_containers: int = 0
    total_views: int = 0
    active_users: int = 0
    apps: int = 0
    voices: int = 0
    workflows: int = 0
