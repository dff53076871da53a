from sqlalchemy import Column, Integer, String, JSON
from app.data.database import Base

class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, unique=True)
    # kroki checkoutu: adres dostawy i wybrana metoda platnosci
    address = Column(JSON, nullable=True)
    payment_method = Column(String(32), nullable=True)
