from __future__ import annotations

from datetime import timedelta

from blockcheck.output import _detected_by, _flag_text, _status_text, fmt_td, summarize


def test_fmt_td_formats_hhmmss():
    assert fmt_td(timedelta(hours=1, minutes=2, seconds=3)) == "01:02:03"
    assert fmt_td(None) == "-"


def test_flag_and_status_text():
    assert _flag_text(True) == "[red]yes[/red]"
    assert _flag_text(False) == "[green]no[/green]"
    assert _flag_text(None) == "-"
    assert _status_text("Blocked") == "[bold red]Blocked[/bold red]"
    assert _status_text("Clean") == "[green]Clean[/green]"


def test_detected_by_lists_firing_methods():
    assert _detected_by({"dns_blocked": True, "official_blocked": True}) == "dns, official"
    assert _detected_by({"dns_blocked": False}) == "-"


def test_summarize_counts_each_method():
    rows = [
        {"status": "Blocked", "dns_blocked": True, "sni_blocked": True},
        {"status": "Blocked", "official_blocked": True},
        {"status": "Clean"},
    ]
    assert summarize(rows) == {"total": 3, "blocked": 2, "clean": 1, "dns": 1, "sni": 1, "official": 1}
