"""Tests for directory change filtering."""

from __future__ import annotations

import pytest

from templatesreload.watching.filters import FilterPolicy, in_dependency_dir, is_hidden, is_temporary


class TestRules:
    @pytest.mark.parametrize("name", [".index.html.swp", "partials/.draft.html", ".git/HEAD"])
    def test_hidden(self, name: str) -> None:
        assert is_hidden(name)

    def test_not_hidden(self) -> None:
        assert not is_hidden("partials/header.html")

    @pytest.mark.parametrize("name", ["index.html~", "index.html.tmp", "index.html.tmp.4123"])
    def test_temporary(self, name: str) -> None:
        assert is_temporary(name)

    @pytest.mark.parametrize("name", ["template.html", "page.tmpl", "x.tmpl.html", "tmp/page.html"])
    def test_not_temporary(self, name: str) -> None:
        assert not is_temporary(name)

    def test_dependency_dir(self) -> None:
        assert in_dependency_dir("node_modules/pkg/index.html")
        assert in_dependency_dir("widgets/node_modules/x.js")
        assert not in_dependency_dir("node_modules.html")


class TestFilterPolicy:
    """Decisions for names relative to a directory target."""

    @pytest.fixture
    def policy(self) -> FilterPolicy:
        return FilterPolicy({".html", ".css"})

    @pytest.mark.parametrize(
        "name",
        ["index.html", "partials/header.html", "css/site.css", "deep/a/b/c.html"],
    )
    def test_accepts_matching_extensions(self, policy: FilterPolicy, name: str) -> None:
        assert policy.accepts(name)

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "notes.txt",
            "index.htm",
            ".hidden.html",
            "index.html~",
            "index.html.tmp",
            "node_modules/lib/index.html",
            "dir/.cache/page.html",
        ],
    )
    def test_rejects(self, policy: FilterPolicy, name: str) -> None:
        assert not policy.accepts(name)

    def test_extensions_sorted(self, policy: FilterPolicy) -> None:
        assert policy.extensions == (".css", ".html")

    def test_no_extensions_accepts_nothing(self) -> None:
        assert not FilterPolicy(None).accepts("index.html")

    @pytest.mark.parametrize("name", ["page.tmpl", "x.tmpl.html", "mail/welcome.tmpl"])
    def test_tmpl_templates_accepted(self, name: str) -> None:
        assert FilterPolicy({".tmpl", ".html"}).accepts(name)

    def test_tmpl_temp_copy_rejected(self) -> None:
        assert not FilterPolicy({".tmpl"}).accepts("page.tmpl.tmp")
