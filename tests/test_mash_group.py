import pytest

from clermontyping.scripts.mash_group import add_mash_group, best_hit
from clermontyping.scripts.results import NA, ResultRow, append_rows, read_table

from conftest import SCREEN_LINES


@pytest.fixture
def screen(tmp_path):
    p = tmp_path / "s_mash_screen.tab"
    p.write_text(SCREEN_LINES)
    return p


def test_best_hit_picks_highest_identity(screen):
    assert best_hit(screen, 0.95) == "B2_ref_007"


def test_best_hit_below_cutoff(screen):
    assert best_hit(screen, 0.995) == NA


def test_best_hit_missing_or_empty(tmp_path):
    assert best_hit(tmp_path / "nope.tab") == NA
    empty = tmp_path / "empty.tab"
    empty.write_text("")
    assert best_hit(empty) == NA


def test_add_mash_group_appends_one_field(tmp_path, screen, logger):
    table = tmp_path / "run_phylogroups.txt"
    append_rows(table, [
        ResultRow("s", ("m", "q", "ce", "B2"), screen.name),
        ResultRow.failure("gone", "gone_mash_screen.tab"),
    ])
    assert add_mash_group(table, 0.95, logger) == 1
    rows = read_table(table)
    assert [r.extra for r in rows] == [("B2_ref_007",), (NA,)]

    # a second pass replaces rather than stacks the annotation
    add_mash_group(table, 0.95, logger)
    assert [len(r.fields()) for r in read_table(table)] == [7, 7]


def test_add_mash_group_resolves_relative_references(tmp_path, screen, logger):
    summary = tmp_path / "Summary"
    summary.mkdir()
    run_a = tmp_path / "A"
    run_a.mkdir()
    screen.rename(run_a / "s_mash_screen.tab")
    table = summary / "Summary_phylogroups.txt"
    table.write_text("s\tm\tq\tce\tB2\t../A/s_mash_screen.tab\n")
    add_mash_group(table, logger=logger)
    assert table.read_text() == "s\tm\tq\tce\tB2\t../A/s_mash_screen.tab\tB2_ref_007\n"
