from pydantic import BaseModel


class GroupRole(BaseModel):
    id: int
    name: str
    rank: int = 0
