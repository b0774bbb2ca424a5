from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from damage_assessor.db.base import Base, TimestampMixin


class Assessment(Base, TimestampMixin):
    __tablename__ = "assessments"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    damage_id: Mapped[str] = mapped_column(Text, nullable=False)
    approval_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    metrics_json: Mapped[str | None] = mapped_column(Text, nullable=True)
