from pydantic import BaseModel


class UploadResponse(BaseModel):
    success: bool
    path: str
    name: str
    mime: str
