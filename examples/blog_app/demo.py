"""
Utility helpers for running the Aurum blog example end-to-end.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from aurum import EntityManager

from .models import Author, Category, Post, Tag

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS author (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(120) NOT NULL,
        email VARCHAR(255) NOT NULL UNIQUE,
        bio VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(80) NOT NULL UNIQUE,
        description VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tag (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        label VARCHAR(40) NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS post (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title VARCHAR(200) NOT NULL,
        body TEXT NOT NULL,
        published INTEGER NOT NULL DEFAULT 0,
        published_at TEXT,
        author_id INTEGER NOT NULL REFERENCES author(id),
        category_id INTEGER REFERENCES categories(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS post_tag (
        post_id INTEGER NOT NULL REFERENCES post(id),
        tag_id INTEGER NOT NULL REFERENCES tag(id),
        PRIMARY KEY (post_id, tag_id)
    )
    """,
)


def bootstrap_manager(dsn: str = "sqlite:///:memory:") -> EntityManager:
    """
    Create a SQLite-backed entity manager and ensure the blog schema exists.
    """

    manager = EntityManager.from_dsn(dsn)
    for statement in SCHEMA:
        manager.connection.execute(statement)
    return manager


def seed_sample_data(manager: EntityManager) -> Dict[str, List[Dict[str, Any]]]:
    """
    Populate authors, categories, tags and posts in one transaction.
    """

    authors = [
        Author(name="Alice Carter", email="alice@example.com", bio="Editor-in-chief."),
        Author(name="Brian Kim", email="brian@example.com", bio="Performance specialist."),
    ]
    categories = [
        Category(name="Announcements", description="Release notes and launch news."),
        Category(name="Guides", description="Deep dives and tutorials."),
    ]
    tags = [Tag(label="release"), Tag(label="sql"), Tag(label="tips")]
    posts = [
        Post(
            title="Introducing Aurum",
            body="This guide walks through entity managers, units of work and repositories.",
            published=True,
            published_at=datetime(2024, 3, 1, 9, 0),
            author=authors[0],
            category=categories[0],
            tags=[tags[0]],
        ),
        Post(
            title="Batching Writes with Savepoints",
            body="Each unit of work flushes inside its own savepoint.",
            published=True,
            published_at=datetime(2024, 3, 8, 9, 0),
            author=authors[1],
            category=categories[1],
            tags=[tags[1], tags[2]],
        ),
        Post(
            title="Draft: Lazy Loading Internals",
            body="Proxies load their row on first field access.",
            author=authors[1],
            category=categories[1],
        ),
    ]

    with manager.transaction():
        for tag in tags:
            manager.persist(tag)
        # Authors and categories are reached through the post associations.
        for post in posts:
            manager.persist(post)

    return {
        "authors": [_summary(manager, author) for author in authors],
        "categories": [_summary(manager, category) for category in categories],
        "tags": [_summary(manager, tag) for tag in tags],
        "posts": [_summary(manager, post) for post in posts],
    }


def fetch_recent_posts(manager: EntityManager, limit: int = 5) -> List[Dict[str, Any]]:
    """
    Retrieve a feed of published posts with author and category names.
    """

    sql = """
    SELECT
        p.id,
        p.title,
        p.published,
        a.name AS author_name,
        c.name AS category_name
    FROM "post" AS p
    JOIN "author" AS a ON p.author_id = a.id
    LEFT JOIN "categories" AS c ON p.category_id = c.id
    WHERE p.published = 1
    ORDER BY p.published_at DESC
    LIMIT :limit
    """
    return manager.native_query(sql, {"limit": limit})


def published_titles(manager: EntityManager) -> List[str]:
    posts = manager.get_repository(Post).find_by({"published": True}, order_by=["-published_at"])
    return [post.title for post in posts]


def author_with_posts(manager: EntityManager) -> List[Dict[str, Any]]:
    """
    Walk authors and their lazily loaded posts and tags.
    """

    result: List[Dict[str, Any]] = []
    for author in manager.get_repository(Author).find_by(order_by=["name"]):
        result.append(
            {
                "author": author.name,
                "posts": [
                    {"title": post.title, "tags": sorted(tag.label for tag in post.tags)}
                    for post in sorted(author.posts, key=lambda post: post.id)
                ],
            }
        )
    return result


def run_demo(dsn: str = "sqlite:///:memory:") -> List[Dict[str, Any]]:
    """
    Bootstrap the database, seed data, and return a rendered feed.
    """

    with bootstrap_manager(dsn=dsn) as manager:
        seed_sample_data(manager)
        return fetch_recent_posts(manager)


def _summary(manager: EntityManager, entity: Any) -> Dict[str, Any]:
    return manager.get_metadata(entity).extract(entity)


if __name__ == "__main__":
    feed = run_demo("sqlite:///blog_demo.db")
    for entry in feed:
        print(f"[{entry['category_name']}] {entry['title']} by {entry['author_name']}")
