from pydantic import BaseModel


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class MessageResponse(BaseModel):
    message: str
