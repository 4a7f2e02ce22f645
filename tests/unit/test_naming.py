"""
Unit tests for name inflection helpers.
"""

import pytest

from admin_panel.utils.naming import kebab, plural, snake, split_words, strip_suffix, title


class TestSplitWords:
    def test_studly_case(self):
        assert split_words("BlogPost") == ["blog", "post"]

    def test_acronyms_stay_together(self):
        assert split_words("HTTPRequestLog") == ["http", "request", "log"]

    def test_snake_and_kebab(self):
        assert split_words("blog_post-comment") == ["blog", "post", "comment"]


class TestPlural:
    @pytest.mark.parametrize("singular,expected", [
        ("Post", "Posts"),
        ("Category", "Categories"),
        ("Box", "Boxes"),
        ("Day", "Days"),
        ("Person", "People"),
        ("Status", "Statuses"),
        ("Equipment", "Equipment"),
        ("Shelf", "Shelves"),
        ("Knife", "Knives"),
    ])
    def test_plural_words(self, singular, expected):
        assert plural(singular) == expected

    def test_only_last_word_is_inflected(self):
        assert plural("BlogPost") == "BlogPosts"
        assert plural("UserCategory") == "UserCategories"


class TestCaseConversion:
    def test_kebab(self):
        assert kebab("BlogPosts") == "blog-posts"

    def test_snake(self):
        assert snake("BlogPost") == "blog_post"

    def test_title(self):
        assert title("BlogPosts") == "Blog Posts"

    def test_strip_suffix(self):
        assert strip_suffix("PostResource", "Resource") == "Post"
        assert strip_suffix("Resource", "Resource") == "Resource"
        assert strip_suffix("Post", "Resource") == "Post"
