"""Tests for the build pipeline collaborator."""

import pytest

from netlify_published_date.exceptions import BuildPipelineError
from netlify_published_date.pipeline import BuildPipeline, is_file, match_files


class TestMatchFiles:
    FILES = ["index.html", "blog/post.html", "blog/draft.html", "style.css"]

    def test_glob(self):
        assert match_files(self.FILES, ["**/*.html"]) == [
            "index.html",
            "blog/post.html",
            "blog/draft.html",
        ]

    def test_negation(self):
        assert match_files(self.FILES, ["*.html", "!blog/draft.html"]) == [
            "index.html",
            "blog/post.html",
        ]

    def test_no_patterns_match_everything(self):
        assert match_files(self.FILES, []) == self.FILES


class TestIsFile:
    def test_requires_bytes_contents(self):
        assert is_file({"contents": b""})
        assert not is_file({"contents": "text"})
        assert not is_file(None)


class TestBuildPipeline:
    """Stages run in order; sync and async stages are both accepted."""

    @pytest.mark.asyncio
    async def test_stages_run_in_order(self):
        calls = []

        def mutate(files):
            calls.append("mutate")
            files["a.html"]["contents"] += b"!"

        async def replace(files):
            calls.append("replace")
            return {"b.html": files["a.html"]}

        result = await BuildPipeline([mutate, replace]).run({"a.html": {"contents": b"a"}})

        assert calls == ["mutate", "replace"]
        assert result == {"b.html": {"contents": b"a!"}}

    @pytest.mark.asyncio
    async def test_no_stages_returns_input(self):
        files = {"a.html": {"contents": b"a"}}

        assert await BuildPipeline().run(files) is files

    @pytest.mark.asyncio
    async def test_failing_stage_is_wrapped(self):
        def broken(files):
            raise KeyError("contents")

        with pytest.raises(BuildPipelineError) as exc_info:
            await BuildPipeline([broken]).run({})

        assert exc_info.value.stage.endswith("broken")
        assert isinstance(exc_info.value.__cause__, KeyError)

    @pytest.mark.asyncio
    async def test_non_mapping_result_is_an_error(self):
        with pytest.raises(BuildPipelineError, match="instead of a file map"):
            await BuildPipeline([lambda files: ["a.html"]]).run({})
