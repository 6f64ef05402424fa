import pytest

from cosmos import SimulationSettings
from cosmos_main import format_time, main, parse_number, run


@pytest.mark.parametrize("text, expected", [
    ("1500", 1500),
    ("20k", 20_000),
    ("2.5K", 2_500),
    ("1m", 1_000_000),
    (" 3M ", 3_000_000),
])
def test_parse_number(text, expected):
    assert parse_number(text) == expected


def test_parse_number_rejects_garbage():
    with pytest.raises(ValueError):
        parse_number("lots")


def test_format_time():
    assert format_time(0.25) == "250ms"
    assert format_time(12.34) == "12.3s"
    assert format_time(180) == "3.0m"
    assert format_time(7200) == "2.0h"


def test_run_summary():
    settings = SimulationSettings(mode="interactions", particle_count=100, collisions=True)
    summary = run(settings, steps=5, report_every=0)
    assert summary["steps"] == 5
    assert summary["particles"] == 100
    assert summary["rebuilds"] == 4
    assert summary["energy_drift"] is not None
    assert summary["momentum"].shape == (3,)


def test_main_runs_small_scenario(capsys):
    code = main(["--mode", "supernova", "--bodies", "200", "--steps", "3",
                 "--report-every", "1", "--no-warmup"])
    assert code == 0
    out = capsys.readouterr().out
    assert "Frame     3/3" in out
    assert "supernova" in out


def test_main_rejects_invalid_settings(capsys):
    assert main(["--bodies", "10", "--rebuild-every", "0", "--no-warmup"]) == 2
    assert "Invalid settings" in capsys.readouterr().out


def test_main_rejects_unparseable_bodies():
    with pytest.raises(SystemExit):
        main(["--bodies", "many", "--no-warmup"])
