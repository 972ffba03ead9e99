import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# jsonb on postgres, plain json elsewhere (sqlite in tests)
JSONType = sa.JSON().with_variant(JSONB(), "postgresql")

class Base(DeclarativeBase):
    pass
