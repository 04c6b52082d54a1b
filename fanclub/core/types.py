from pydantic import BaseModel, Field
from typing import Literal, Optional, Any, Dict, List

UserPlan = Literal["free", "basic", "pro", "enterprise"]


class Transaction(BaseModel):
    date: str = ""
    amount: int | float = 0
    fee: int | float = 0
    type: str = ""
    target: str = ""
    buyer: str = "不明"


class MonthlyDataRequest(BaseModel):
    modelId: str = Field(min_length=1)
    modelName: str = Field(min_length=1)
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    # raw records; either header set is accepted
    data: List[Dict[str, Any]]


class ModelCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    displayName: Optional[str] = None
    description: Optional[str] = None


class ModelUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    displayName: Optional[str] = None
    description: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None


class UsageCheckRequest(BaseModel):
    dataSize: int = Field(default=0, ge=0)
    apiCalls: Optional[int] = None


class CheckoutRequest(BaseModel):
    plan: str


class AdminUserUpdate(BaseModel):
    plan: Optional[UserPlan] = None
    role: Optional[Literal["admin", "user"]] = None
    status: Optional[Literal["active", "inactive"]] = None
