# app/models/chart_of_accounts_model.py
from sqlalchemy import Column, String
from app.utils.database import Base


class ChartOfAccount(Base):
    __tablename__ = "chart_of_accounts"

    code = Column(String(20), primary_key=True)
    name = Column(String(150), nullable=False)

    # asset / liability / equity / revenue / expense
    type = Column(String(20), nullable=False)
    category = Column(String(60), nullable=True)

    # customer sub-accounts (1103-0007) point at their control account
    parent_code = Column(String(20), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<ChartOfAccount(code={self.code}, name={self.name})>"
