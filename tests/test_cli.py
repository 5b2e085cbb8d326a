"""Tests for the command-line interface.

HOW: DefaultServices.from_config is patched to return FakeServices, so
the CLI runs end to end (argument parsing, file I/O, batch enrichment,
rendering) without network access.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from conftest import RECORD_ID, FakeServices, make_record, make_thai_record
from subtitle_enricher.cli import build_parser, main
from subtitle_enricher.services.base import Cue


@pytest.fixture
def services():
    return FakeServices(cues={(RECORD_ID, "eng"): Cue("The car", 1.0, 2.5)})


def write_json(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["records.json"])
        assert args.output is None
        assert args.no_normalize is False
        assert args.workmap is False
        assert args.concurrency >= 1

    def test_verbose_and_quiet_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["records.json", "-v", "-q"])


class TestMain:
    def test_single_record_to_output_file(self, tmp_path, services):
        source = write_json(tmp_path / "record.json", make_record())
        target = tmp_path / "out.json"

        with patch("subtitle_enricher.cli.DefaultServices.from_config", return_value=services):
            code = main([str(source), "-o", str(target), "--media-id", "media1"])

        assert code == 0
        results = json.loads(target.read_text(encoding="utf-8"))
        assert len(results) == 1
        assert results[0]["id"] == RECORD_ID
        assert results[0]["record"]["english"] == "The car"
        assert results[0]["record"]["subtitle_refs"] == ["media1-7-0"]
        assert results[0]["calls"]["fetch_cue"] == 1
        assert "workmap" not in results[0]

    def test_stdout_and_workmap(self, tmp_path, services, capsys):
        source = write_json(tmp_path / "record.json", [make_record()])

        with patch("subtitle_enricher.cli.DefaultServices.from_config", return_value=services):
            code = main([str(source), "--workmap", "-q"])

        assert code == 0
        results = json.loads(capsys.readouterr().out)
        workmap = results[0]["workmap"]
        assert workmap["id"] is False
        # No media id, so subtitle_refs is still outstanding.
        assert workmap["subtitle_refs"] is True

    def test_failed_record_sets_exit_status(self, tmp_path, services, capsys):
        records = [make_thai_record(["รถ"], record_id="media1-1"), make_record(record_id="")]
        source = write_json(tmp_path / "records.json", records)

        with patch("subtitle_enricher.cli.DefaultServices.from_config", return_value=services):
            code = main([str(source), "-q"])

        assert code == 1
        results = json.loads(capsys.readouterr().out)
        assert "record" in results[0]
        assert results[1]["error_type"] == "ValidationError"
        assert "id must be a non-empty string" in results[1]["error"]

    def test_no_normalize_stops_after_lookup(self, tmp_path, services):
        # No cue for this id, so the structure never grows and one pass runs.
        source = write_json(tmp_path / "record.json", make_thai_record(["รถ"], record_id="media1-1"))
        target = tmp_path / "out.json"

        with patch("subtitle_enricher.cli.DefaultServices.from_config", return_value=services):
            main([str(source), "-o", str(target), "--no-normalize"])

        senses = json.loads(target.read_text(encoding="utf-8"))[0]["record"]["tokens"]["senses_thai"][0]["senses"]
        assert senses and not any(s["normalized"] for s in senses)
        assert services.calls["normalize_senses"] == 0

    def test_cache_dir_is_written(self, tmp_path, services):
        source = write_json(tmp_path / "record.json", make_thai_record(["รถ"]))
        cache_dir = tmp_path / "cache"

        with patch("subtitle_enricher.cli.DefaultServices.from_config", return_value=services):
            main([str(source), "-o", str(tmp_path / "out.json"), "--cache-dir", str(cache_dir)])

        cached = json.loads((cache_dir / "words_thai.json").read_text(encoding="utf-8"))
        assert cached["รถ"]["g2p"] == "rot1"

    def test_missing_input_file(self, tmp_path):
        assert main([str(tmp_path / "nope.json"), "-q"]) == 1

    def test_malformed_input_file(self, tmp_path):
        source = tmp_path / "bad.json"
        source.write_text("{not json", encoding="utf-8")
        assert main([str(source), "-q"]) == 1
