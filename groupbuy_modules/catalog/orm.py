"""
Catalog ORM Models (``groupbuy_modules.catalog.orm``).

SQLAlchemy persistence models for projects and their products.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from groupbuy_kernel.db.base import TrackedBase


class ProjectModel(TrackedBase):
    """ORM model for group-purchase projects.  ``members`` is a JSON list."""

    __tablename__ = "projects"

    __table_args__ = (
        Index("idx_projects_status", "status"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    members: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(50), default="not_started", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from groupbuy_modules.catalog.models import Project, ProjectStatus

        return Project(
            id=self.id,
            name=self.name,
            members=tuple(self.members or ()),
            status=ProjectStatus(self.status),
            notes=self.notes,
        )


class ProductModel(TrackedBase):
    """
    ORM model for catalog products.

    Guarantees:
        - project_id FK to projects.id; products go with their project.
        - price_jpy is the current price only.  Existing procurement lines
          keep the amount frozen when they were created.
    """

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_products_project_id", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_jpy: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    product_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from groupbuy_modules.catalog.models import Product

        return Product(
            id=self.id,
            project_id=self.project_id,
            name=self.name,
            price_jpy=self.price_jpy,
            product_url=self.product_url,
            image_url=self.image_url,
        )
