from pydantic import BaseModel, ConfigDict
from typing import Optional

from app.core.constants import RoleEnum

class TokenPayload(BaseModel):
    """Claims issued by the identity provider."""
    sub: str
    role: RoleEnum = RoleEnum.USER
    exp: Optional[int] = None

class UserContext(BaseModel):
    """The authenticated caller: opaque user id plus role claim."""
    user_id: str
    role: RoleEnum

    model_config = ConfigDict(use_enum_values=False)
