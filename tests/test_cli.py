import json
import sys

import pytest

from scripts import siphon_cli
from tests.fixtures import PACKED_PAGE, STREAM_URL, packed_script


def run_cli(monkeypatch, capsys, tmp_path, argv, text):
    src = tmp_path / "input.txt"
    src.write_text(text, encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["siphon_cli.py", argv[0], str(src)] + argv[1:])
    with pytest.raises(SystemExit) as exc:
        siphon_cli.main()
    return exc.value.code, capsys.readouterr().out


def test_decode_command(monkeypatch, capsys, tmp_path):
    code, out = run_cli(monkeypatch, capsys, tmp_path, ["decode", "--chain", "reverse"], "8u3m.a/moc.elpmaxe//:sptth\n")
    assert code == 0
    assert json.loads(out)["output"] == "https://example.com/a.m3u8"


def test_unpack_raw(monkeypatch, capsys, tmp_path):
    code, out = run_cli(monkeypatch, capsys, tmp_path, ["unpack", "--raw"], packed_script("0 1 2", 36, 3, "foo|bar|baz"))
    assert code == 0
    assert out.strip() == "foo bar baz"


def test_harvest_command(monkeypatch, capsys, tmp_path):
    code, out = run_cli(monkeypatch, capsys, tmp_path, ["harvest"], PACKED_PAGE)
    data = json.loads(out)
    assert code == 0
    assert data["streamUrls"] == [STREAM_URL]
    assert "unpackedScripts" not in data


def test_nothing_found_exits_nonzero(monkeypatch, capsys, tmp_path):
    code, _ = run_cli(monkeypatch, capsys, tmp_path, ["harvest"], "<html></html>")
    assert code == 1
