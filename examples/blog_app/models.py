"""
Entities for the Aurum blog example.
"""

from __future__ import annotations

from aurum import (
    BooleanField,
    DateTimeField,
    Entity,
    JoinTable,
    ManyToMany,
    ManyToOne,
    OneToMany,
    StringField,
    TextField,
)


class Author(Entity):
    name = StringField(nullable=False, max_length=120)
    email = StringField(nullable=False, max_length=255)
    bio = StringField(default="")
    posts = OneToMany("Post", mapped_by="author")


class Category(Entity):
    class Meta:
        table = "categories"

    name = StringField(nullable=False, max_length=80)
    description = StringField(default="")


class Tag(Entity):
    label = StringField(nullable=False, max_length=40)


class Post(Entity):
    title = StringField(nullable=False, max_length=200)
    body = TextField(nullable=False)
    published = BooleanField()
    published_at = DateTimeField()
    author = ManyToOne(Author, nullable=False)
    category = ManyToOne(Category)
    tags = ManyToMany(Tag, join_table=JoinTable("post_tag", "post_id", "tag_id"))
