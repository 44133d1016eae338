"""Tests for URL helpers."""

import pytest

from netlify_published_date.utils.url import join_url, path_to_url, preview_url_to_filename


class TestJoinUrl:
    @pytest.mark.parametrize(
        "root, path, expected",
        [
            ("https://d1--site.netlify.app", "index.html", "https://d1--site.netlify.app/index.html"),
            ("https://d1--site.netlify.app/", "/a/b.html", "https://d1--site.netlify.app/a/b.html"),
            ("https://d1--site.netlify.app//", "//a/", "https://d1--site.netlify.app/a/"),
            ("https://d1--site.netlify.app", "", "https://d1--site.netlify.app"),
        ],
    )
    def test_single_slash(self, root, path, expected):
        assert join_url(root, path) == expected


class TestPathToUrl:
    def test_segments_are_percent_encoded(self):
        assert path_to_url("blog/hello world/日本.html") == (
            "blog/hello%20world/%E6%97%A5%E6%9C%AC.html"
        )

    def test_backslashes_are_separators(self):
        assert path_to_url("blog\\post#1.html") == "blog/post%231.html"


class TestPreviewUrlToFilename:
    """Preview URLs map to output files or directory indexes."""

    FILES = ["index.html", "blog/index.html", "blog/post.html", "日本/ページ.html"]

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://d1--site.netlify.app/", "index.html"),
            ("https://d1--site.netlify.app/index.html", "index.html"),
            ("https://d1--site.netlify.app/blog/", "blog/index.html"),
            ("https://d1--site.netlify.app/blog", "blog/index.html"),
            ("https://d1--site.netlify.app/blog/post.html", "blog/post.html"),
            (
                "https://d1--site.netlify.app/%E6%97%A5%E6%9C%AC/%E3%83%9A%E3%83%BC%E3%82%B8.html",
                "日本/ページ.html",
            ),
            ("https://d1--site.netlify.app/blog/./../blog/post.html", "blog/post.html"),
            ("https://d1--site.netlify.app/missing.html", None),
        ],
    )
    def test_lookup(self, url, expected):
        assert preview_url_to_filename(url, self.FILES) == expected

    def test_windows_style_filenames(self):
        assert preview_url_to_filename(
            "https://d1--site.netlify.app/blog/post.html", ["blog\\post.html"]
        ) == "blog\\post.html"
