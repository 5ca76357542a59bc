from sqlalchemy import Column, String, Text

from linkworker.database import Base


class KVEntry(Base):
    """One key in the link namespace: a short key or a dedup digest."""

    __tablename__ = "kv_entries"

    # 128 fits a hex SHA-512 digest used by the dedup index
    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
