"""SQLAlchemy table definitions for requests, products and images."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.job import ImageStatus, JobStatus


def _utcnow() -> datetime:
    return datetime.utcnow()


class Request(Base):
    __tablename__ = "requests"

    id = Column(String(64), primary_key=True)
    status = Column(String(16), nullable=False, default=JobStatus.pending.value)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    products = relationship("Product", back_populates="request", order_by="Product.id")

    __table_args__ = (Index("idx_requests_status", "status"),)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(64), ForeignKey("requests.id"), nullable=False)
    serial_number = Column(String(255), nullable=False)
    product_name = Column(Text, nullable=False)

    request = relationship("Request", back_populates="products")
    images = relationship("Image", back_populates="product", order_by="Image.position")

    __table_args__ = (Index("idx_products_request", "request_id"),)


class Image(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    position = Column(Integer, nullable=False)
    input_url = Column(Text, nullable=False)
    processing_status = Column(String(16), nullable=False, default=ImageStatus.pending.value)
    output_url = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    product = relationship("Product", back_populates="images")

    __table_args__ = (
        Index("idx_images_product", "product_id"),
        Index("idx_images_input_url", "input_url"),
    )
