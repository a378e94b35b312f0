from pydantic import BaseModel


class AdminLoginRequest(BaseModel):
    secret_a: str
    secret_b: str


class AdminResultOut(BaseModel):
    success: bool


class AdminSessionOut(BaseModel):
    trusted: bool
