"""End-to-end tests for the iloc command line, run in a temp working dir."""

import json

import pytest

from iloc.cli import main, parse_args
from iloc.storage.dao import FingerprintDAO, site_db_path


def _write_scan(path, pairs, age_ms=0):
    path.write_text(json.dumps([
        {"bssid": b, "ssid": None, "rssi": r, "frequency": 2412, "ageMs": age_ms} for b, r in pairs
    ]))
    return str(path)


@pytest.fixture
def site_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def scan_file(site_dir):
    return _write_scan(site_dir / "scan.json", [("AA:01", -50), ("AA:02", -60), ("AA:03", -70)])


def _stored(site="hq"):
    dao = FingerprintDAO(site_db_path(site))
    try:
        return dao.list_all()
    finally:
        dao.close()


class TestParseArgs:

    def test_locate_defaults(self):
        args = parse_args(["locate", "hq", "scan.json"])
        assert args.algorithm == "EUCLIDEAN"
        assert args.fresh_ms is None
        assert args.preset == "default"

    def test_track_defaults(self):
        args = parse_args(["track", "hq", "scan.json"])
        assert args.interval is None
        assert args.iterations is None
        assert args.stride == "default"

    def test_unknown_preset_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["--preset", "turbo", "list", "hq"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestFingerprintCommands:

    def test_save_list_delete_clear(self, site_dir, scan_file, capsys):
        main(["save", "hq", "Lobby", scan_file, "--x", "1", "--y", "2"])
        main(["save", "hq", "Hall", scan_file])
        stored = _stored()
        assert [fp.location_name for fp in stored] == ["Hall", "Lobby"]
        assert stored[1].x_meters == 1.0

        main(["list", "hq"])
        out = capsys.readouterr().out
        assert "Lobby" in out and "Hall" in out

        main(["delete", "hq", str(stored[0].id)])
        assert [fp.location_name for fp in _stored()] == ["Lobby"]

        main(["clear", "hq"])
        assert _stored() == []

    def test_delete_unknown_exits(self, site_dir):
        with pytest.raises(SystemExit) as exc:
            main(["delete", "hq", "99"])
        assert exc.value.code == 1

    def test_save_stale_scan_exits(self, site_dir):
        stale = _write_scan(site_dir / "stale.json", [("AA:01", -50)], age_ms=60_000)
        with pytest.raises(SystemExit) as exc:
            main(["save", "hq", "Lobby", stale])
        assert exc.value.code == 1
        assert _stored() == []

    def test_save_needs_both_coordinates(self, site_dir, scan_file):
        with pytest.raises(SystemExit):
            main(["save", "hq", "Lobby", scan_file, "--x", "1"])

    def test_missing_scan_file_exits(self, site_dir):
        with pytest.raises(SystemExit) as exc:
            main(["predict", "hq", "nope.json"])
        assert exc.value.code == 1


class TestPositioningCommands:

    def test_predict(self, site_dir, scan_file, capsys):
        main(["save", "hq", "Lobby", scan_file, "--x", "1", "--y", "2"])
        main(["predict", "hq", scan_file])
        assert "Prediction: Lobby" in capsys.readouterr().out

    def test_predict_unknown(self, site_dir, scan_file, capsys):
        main(["predict", "hq", scan_file])
        assert "unknown" in capsys.readouterr().out

    @pytest.mark.parametrize("algorithm", ["euclidean", "WKNN", "cosine"])
    def test_locate(self, site_dir, scan_file, capsys, algorithm):
        main(["save", "hq", "Lobby", scan_file, "--x", "1", "--y", "2"])
        main(["locate", "hq", scan_file, "--algorithm", algorithm])
        out = capsys.readouterr().out
        assert algorithm.upper() in out
        assert "(1.00, 2.00)" in out

    def test_track_with_pdr(self, site_dir, scan_file, capsys):
        main(["save", "hq", "Lobby", scan_file, "--x", "1", "--y", "2"])
        events = site_dir / "events.jsonl"
        events.write_text('{"type": "step"}\n{"type": "step"}\n')
        main(["track", "hq", scan_file, "--interval", "0", "--iterations", "2", "--pdr", str(events)])


def test_replay(site_dir, capsys):
    events = site_dir / "events.jsonl"
    events.write_text('{"type": "heading", "azimuth": 0.0}\n{"type": "step"}\n{"type": "step"}\n')
    main(["replay", str(events), "--step-length", "1.0"])
    out = capsys.readouterr().out
    assert "Replayed 3 events" in out
    assert "(2.00, 0.00)" in out


def test_replay_short_stride(site_dir, capsys):
    events = site_dir / "events.jsonl"
    events.write_text('{"type": "heading", "azimuth": 0.0}\n{"type": "step"}\n{"type": "step"}\n')
    main(["replay", str(events), "--stride", "short"])
    assert "(1.10, 0.00)" in capsys.readouterr().out


class TestFreshnessPresets:
    """The freshness threshold comes from the selected preset unless overridden."""

    @pytest.fixture
    def aging_scan(self, site_dir):
        # fresh under the default 7 s threshold, stale under the responsive 4 s one
        return _write_scan(site_dir / "aging.json", [("AA:01", -50), ("AA:02", -60)], age_ms=5_000)

    def test_default_preset_accepts(self, site_dir, aging_scan):
        main(["save", "hq", "Lobby", aging_scan])
        assert len(_stored()) == 1

    def test_responsive_preset_rejects(self, site_dir, aging_scan):
        with pytest.raises(SystemExit) as exc:
            main(["--preset", "responsive", "save", "hq", "Lobby", aging_scan])
        assert exc.value.code == 1
        assert _stored() == []

    def test_explicit_threshold_overrides_preset(self, site_dir, aging_scan):
        main(["--preset", "responsive", "save", "hq", "Lobby", aging_scan, "--fresh-ms", "6000"])
        assert len(_stored()) == 1

    def test_predict_uses_preset(self, site_dir, scan_file, aging_scan, capsys):
        main(["save", "hq", "Lobby", scan_file])
        main(["--preset", "responsive", "predict", "hq", aging_scan])
        assert "no fresh Wi-Fi scan" in capsys.readouterr().out
