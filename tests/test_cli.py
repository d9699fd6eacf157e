"""Tests for the command-line interface."""
from typer.testing import CliRunner

from typedash.chat import TableResult
from typedash.cli.app import app, render_table

runner = CliRunner()


class TestRenderTable:
    """Tests for render_table."""

    def test_title_and_columns(self):
        """Test the title shows the total and cells are stringified."""
        table = render_table(TableResult(
            columns=["id", "title"],
            rows=[{"id": "1", "title": "x" * 80}, {"id": "2"}],
            collection_name="products",
            total_found=57,
        ))

        assert table.title == "products (57 found)"
        assert [c.header for c in table.columns] == ["id", "title"]
        assert table.row_count == 2


class TestCommands:
    """Tests for CLI commands."""

    def test_collections_with_memory_backend(self, monkeypatch):
        """Test listing collections on an empty in-memory backend."""
        monkeypatch.setenv("SEARCH_BACKEND", "memory")

        result = runner.invoke(app, ["collections"])

        assert result.exit_code == 0
        assert "No collections found" in result.output

    def test_typesense_requires_api_key(self, monkeypatch):
        """Test that a missing Typesense key exits with an error."""
        monkeypatch.setenv("SEARCH_BACKEND", "typesense")
        monkeypatch.delenv("TYPESENSE_API_KEY", raising=False)

        result = runner.invoke(app, ["collections"])

        assert result.exit_code == 1

    def test_chat_requires_gemini_key(self, monkeypatch):
        """Test that chat refuses to start without a Gemini key."""
        monkeypatch.setenv("SEARCH_BACKEND", "memory")
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        result = runner.invoke(app, ["chat"])

        assert result.exit_code == 1
