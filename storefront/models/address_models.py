from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from storefront.core.db import Base


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    address_line = Column(String(255), nullable=False)
    ward = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    province = Column(String(20), nullable=False)  # province code, e.g. "hn", "hcm"
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="addresses")

    def snapshot(self) -> dict:
        return {
            "full_name": self.full_name,
            "phone": self.phone,
            "address_line": self.address_line,
            "ward": self.ward,
            "district": self.district,
            "province": self.province,
        }
