"""Page catalog: every permission-gated unit of UI/API surface."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from tarl_portal.db.base import Base


class Page(Base):
    """Addressable page. Nesting is a self-reference kept acyclic by the page service."""
    __tablename__ = "pages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    path = Column(String(255), unique=True, nullable=False)
    title = Column(String(255), nullable=True)
    title_kh = Column(String(255), nullable=True)
    icon_name = Column(String(50), nullable=True)
    parent_page_id = Column(Integer, ForeignKey("pages.id"), nullable=True, index=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_parent_menu = Column(Boolean, nullable=False, default=False)
    menu_level = Column(Integer, nullable=False, default=1)
    is_displayed_in_menu = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
