import pytest

from clermontyping.scripts.config import ConfigError
from clermontyping.scripts.inputs import (
    FRESH,
    SUMMARY,
    InputError,
    existing_samples,
    read_path_list,
    resolve_inputs,
    sample_name,
    split_inline,
)


def test_split_inline_ignores_empty_entries():
    assert split_inline("a.fasta@@b.fasta@") == ["a.fasta", "b.fasta"]
    assert split_inline("@") == []


def test_no_selector_is_an_error():
    with pytest.raises(InputError, match="Missing the contigs file"):
        resolve_inputs()


def test_fasta_and_fastafile_conflict(tmp_path):
    lst = tmp_path / "list.txt"
    lst.write_text("a.fasta\n")
    with pytest.raises(InputError, match="Too many parameters"):
        resolve_inputs(fasta="a.fasta", fastafile=lst)


@pytest.mark.parametrize("kwargs", [{"fasta": "a.fasta"}, {"fastafile": "LIST"}])
def test_summary_conflicts_with_other_selectors(tmp_path, kwargs):
    manifest = tmp_path / "manifest.txt"
    manifest.write_text("A/A_phylogroups.txt\n")
    lst = tmp_path / "list.txt"
    lst.write_text("a.fasta\n")
    kwargs = {k: (lst if v == "LIST" else v) for k, v in kwargs.items()}
    with pytest.raises(InputError, match="--summary"):
        resolve_inputs(summary=manifest, **kwargs)


def test_input_error_is_a_config_error():
    assert issubclass(InputError, ConfigError)


def test_inline_mode():
    sel = resolve_inputs(fasta="x/a.fasta@y/b.fasta")
    assert sel.mode == FRESH
    assert not sel.is_summary
    assert sel.entries == ("x/a.fasta", "y/b.fasta")


def test_file_of_paths_keeps_lines_in_order(tmp_path):
    lst = tmp_path / "list.txt"
    lst.write_text("one.fasta\ntwo.fasta\r\n\nthree.fasta\\n\n")
    sel = resolve_inputs(fastafile=lst)
    assert sel.mode == FRESH
    # blank lines are kept; they are reported as missing later
    assert sel.entries == ("one.fasta", "two.fasta", "", "three.fasta")


def test_missing_file_of_paths(tmp_path):
    with pytest.raises(InputError):
        read_path_list(tmp_path / "nope.txt")


def test_summary_mode(tmp_path):
    manifest = tmp_path / "manifest.txt"
    manifest.write_text("A/A_phylogroups.txt\n\nB/B_phylogroups.txt\n")
    sel = resolve_inputs(summary=manifest)
    assert sel.mode == SUMMARY
    assert sel.entries == ("A/A_phylogroups.txt", "B/B_phylogroups.txt")


def test_existing_samples_skips_and_reports_missing(tmp_path, logger, caplog):
    present = tmp_path / "a.fasta"
    present.write_text(">c\nACGT\n")
    missing = tmp_path / "missing.fasta"
    with caplog.at_level("WARNING", logger=logger.name):
        found = existing_samples([str(missing), str(present), ""], logger)
    assert found == [present]
    assert f"{missing} doesn't exist" in caplog.text


def test_sample_name_strips_suffix(tmp_path):
    assert sample_name(tmp_path / "ecoli_1.fasta") == "ecoli_1.fasta"
    assert sample_name(tmp_path / "ecoli_1.fasta£galaxy42") == "ecoli_1.fasta"
    assert sample_name("dir/x£y£z") == "x£y"
