"""Tests for the command-line entry point."""

import pytest

from superscraper import cli
from superscraper.models import RawProductRecord, RecordStatus
from superscraper.storage import load_api_keys, load_records, load_sources, save_records


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep CLI runs from writing log files."""
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


def run(db_path, *argv):
    return cli.main(["--db", db_path, *argv])


class TestParseArgs:
    def test_store_search_needs_area(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--search-stores", "x"])

    def test_defaults(self):
        args = cli.parse_args([])
        assert args.type == "all"
        assert args.url == []
        assert not args.crawl


class TestMain:
    """Test state-only commands end to end."""

    def test_set_source(self, db_path, tmp_path):
        html = tmp_path / "page.html"
        html.write_text("<div>sản phẩm</div>", encoding="utf-8")

        code = run(
            db_path,
            "--set-source", "2",
            "--name", "tiktok shop",
            "--voucher", "15",
            "--url", "https://www.tiktok.com/@brand",
            "--html-file", str(html),
        )

        assert code == cli.EXIT_OK
        sources = load_sources(db_path)
        assert len(sources) == 5
        assert sources[1].name == "TIKTOK SHOP"
        assert sources[1].marketplace.value == "TIKTOK"
        assert sources[1].voucher_percent == 15
        assert sources[1].urls == ["https://www.tiktok.com/@brand"]
        assert sources[1].html_hint == "<div>sản phẩm</div>"

    def test_set_source_out_of_range(self, db_path, capsys):
        assert run(db_path, "--set-source", "9", "--name", "X") == cli.EXIT_ERROR
        assert "between 1 and 5" in capsys.readouterr().out

    def test_set_keys(self, db_path, capsys):
        assert run(db_path, "--set-keys", "sk-one-aaaaaaaa,short,sk-two-bbbbbbbb") == cli.EXIT_OK
        assert "Saved 2 API key(s)" in capsys.readouterr().out
        assert load_api_keys(db_path) == "sk-one-aaaaaaaa,short,sk-two-bbbbbbbb"

    def test_optimize_code_and_report(self, db_path, capsys):
        save_records(
            [
                RawProductRecord(raw_name="Dầu xả bưởi 310ml", price=100000, source_index=1),
                RawProductRecord(raw_name="DẦU XẢ BƯỞI 310ML", price=120000, source_index=4),
            ],
            db_path,
        )

        code = run(db_path, "--optimize", "code", "--report", "--duplicates-only")

        assert code == cli.EXIT_OK
        records = load_records(db_path)
        assert all(r.status == RecordStatus.SUCCESS for r in records)
        out = capsys.readouterr().out
        assert "Dầu xả bưởi 310ml" in out
        assert "gap 20%" in out

    def test_crawl_without_input(self, db_path, capsys):
        assert run(db_path, "--crawl") == cli.EXIT_OK
        assert load_records(db_path) == []

    def test_export_and_stats(self, db_path, tmp_path, capsys):
        save_records([RawProductRecord(raw_name="A", price=1000, source_index=1)], db_path)
        target = tmp_path / "out.csv"
        assert run(db_path, "--export", str(target), "--stats") == cli.EXIT_OK
        assert target.exists()
        out = capsys.readouterr().out
        assert "Raw records:      1" in out

    def test_clear(self, db_path):
        save_records([RawProductRecord(raw_name="A", price=1, source_index=1)], db_path)
        assert run(db_path, "--clear") == cli.EXIT_OK
        assert load_records(db_path) == []
