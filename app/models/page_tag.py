from sqlalchemy import Column, Integer, ForeignKey, Table
from app.core.database import Base

# Association table for many-to-many relationship between pages and tags
page_tags = Table(
    'page_tags',
    Base.metadata,
    Column('page_id', Integer, ForeignKey('pages.id', ondelete='CASCADE'), primary_key=True),
    Column('tag_id', Integer, ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True)
)
