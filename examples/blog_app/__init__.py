"""
Blog-style sample application showcasing Aurum capabilities.
"""

from .demo import (
    author_with_posts,
    bootstrap_manager,
    fetch_recent_posts,
    published_titles,
    run_demo,
    seed_sample_data,
)
from .models import Author, Category, Post, Tag

__all__ = [
    "Author",
    "Category",
    "Post",
    "Tag",
    "author_with_posts",
    "bootstrap_manager",
    "fetch_recent_posts",
    "published_titles",
    "run_demo",
    "seed_sample_data",
]
