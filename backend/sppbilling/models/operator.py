# sppbilling/models/operator.py
#
# Console operators (admin and cashiers). Only the salted hash
# of the password is ever stored.

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class OperatorRole(str, Enum):
    admin  = "admin"
    kasir1 = "kasir1"
    kasir2 = "kasir2"


CASHIER_ROLES = (OperatorRole.kasir1.value, OperatorRole.kasir2.value)
ALL_ROLES = (OperatorRole.admin.value, *CASHIER_ROLES)


class Operator(BaseModel):
    id: str
    username: str
    name: str
    role: OperatorRole
    institution: str = ""
    email: str = ""
    password_hash: str
    is_active: bool = True
    last_login: Optional[datetime] = None
