from datetime import datetime
from sqlmodel import Field, SQLModel


class RevokedToken(SQLModel, table=True):
    """Session credentials invalidated by logout, keyed by their jti claim."""
    jti: str = Field(primary_key=True)
    expires_at: datetime = Field(index=True)
    revoked_at: datetime = Field(default_factory=datetime.utcnow)
