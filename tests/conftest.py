import logging
from pathlib import Path

import pytest

from clermontyping.scripts import runner
from clermontyping.scripts.config import build_run_config

B2_OUTPUT = "['trpA', 'chuA', 'yjaA', 'TspE4.C2']\t['-', '+', '+', '+']\t['-', '-']\tB2\n"

SCREEN_LINES = (
    "0.97\t880/1000\t1\t0\tB2_ref_001\t[12 seqs] reference B2\n"
    "0.99\t950/1000\t1\t0\tB2_ref_007\t[9 seqs] reference B2\n"
    "0.80\t100/1000\t1\t1e-10\tA_ref_003\t[3 seqs] reference A\n"
)


def write_fasta(path: Path, contigs) -> Path:
    with path.open("w") as fh:
        for i, seq in enumerate(contigs, start=1):
            fh.write(f">contig{i}\n{seq}\n")
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("CLERMONT_DATA_DIR", "CLERMONT_BIN_DIR", "CLERMONT_TOOLS_ENV"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_fasta(tmp_path):
    def _make(name, contigs=("ACGT" * 50,), subdir="inputs"):
        d = tmp_path / subdir
        d.mkdir(parents=True, exist_ok=True)
        return write_fasta(d / name, contigs)
    return _make


@pytest.fixture
def logger():
    log = logging.getLogger("clermontyping_tests")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    (d / "mash").mkdir(parents=True)
    write_fasta(d / "primers.fasta", ["ACGTACGTACGTACGTACGT"])
    (d / "mash" / "mash_reference.msh").write_bytes(b"\x00sketch")
    return d


@pytest.fixture
def run_config(tmp_path, data_dir):
    cfg = build_run_config(name="run1", data_dir=data_dir, base_dir=tmp_path)
    cfg.working_dir.mkdir(parents=True, exist_ok=True)
    return cfg


class FakeTools:
    """Stands in for mash / makeblastdb / blastn / clermont.py."""

    def __init__(self):
        self.calls = []
        self.fail = {}            # tool -> set of sample names (or "*") that fail
        self.classifier_output = B2_OUTPUT
        self.classifier_stderr = ""
        self.screen = SCREEN_LINES

    def failing(self, tool, sample="*"):
        self.fail.setdefault(tool, set()).add(sample)

    def _fails(self, tool, cmd):
        names = self.fail.get(tool, set())
        return "*" in names or any(Path(str(c)).name.startswith(n) for c in cmd for n in names)

    def __call__(self, cmd, cwd, log, env_name=None, timeout=None, stdout_path=None,
                 merge_stderr=True):
        cmd = [str(c) for c in cmd]
        tool = Path(cmd[0]).name
        self.calls.append((tool, cmd, timeout))
        if self._fails(tool, cmd):
            if stdout_path is not None:
                Path(stdout_path).write_text("")
            return 1, f"{tool}: simulated failure"
        if tool == "mash":
            Path(stdout_path).write_text(self.screen)
            return 0, ""
        if tool == "makeblastdb":
            out = Path(cmd[cmd.index("-out") + 1])
            out.with_suffix(".nsq").write_text("")
            return 0, "Adding sequences from FASTA; added 1 sequence"
        if tool == "blastn":
            Path(cmd[cmd.index("-out") + 1]).write_text("<?xml version=\"1.0\"?>\n<BlastOutput></BlastOutput>\n")
            return 0, ""
        if tool == "clermont.py":
            # stderr arrives after the result line when streams are merged
            if merge_stderr:
                return 0, self.classifier_output + self.classifier_stderr
            return 0, self.classifier_output
        return 127, f"[runner] Failed to execute: {tool}"

    def tools_called(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_tools(monkeypatch):
    tools = FakeTools()
    monkeypatch.setattr(runner, "run", tools)
    return tools
