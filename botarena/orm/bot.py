"""
botarena/orm/bot.py
Submitted bot source. Resubmission creates a new row; old rows stay
referenced by historical games.
"""
from sqlalchemy import Column, String, Text, ForeignKey

from botarena.orm.base import BaseModel


class Bot(BaseModel):
    __tablename__ = "bots"

    team_id = Column(
        String(255),
        ForeignKey("teams.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    bot_name = Column(String(255), nullable=False)
    source_path = Column(String(255), nullable=False)
    # Empty string means compiled successfully
    compile_error = Column(Text, nullable=False, default="")

    @property
    def is_compiled(self) -> bool:
        return not self.compile_error

    def __repr__(self):
        return f"<Bot(id={self.id}, name='{self.bot_name}', compiled={self.is_compiled})>"
