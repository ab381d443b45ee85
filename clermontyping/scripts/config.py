import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

VERSION_LABEL = "Clermont Typing v1.0.0 (May 2025)"

# Fallback to the "data" folder inside the package
PACKAGE_DIR      = os.path.dirname(__file__)            # .../clermontyping/scripts
DEFAULT_DATA_DIR = os.path.normpath(os.path.join(PACKAGE_DIR, "..", "data"))

DATA_DIR_ENV  = "CLERMONT_DATA_DIR"
BIN_DIR_ENV   = "CLERMONT_BIN_DIR"
TOOLS_ENV_ENV = "CLERMONT_TOOLS_ENV"

PRIMERS_FILE = "primers.fasta"
MASH_DB_FILE = os.path.join("mash", "mash_reference.msh")

# BLAST settings
PERC_IDENTITY = 90
BLAST_TASK = "blastn"
BLAST_WORD_SIZE = 6
BLAST_OUTFMT = 5

# Mash group annotation cutoff
MASH_GROUP_IDENTITY = 0.95

DEFAULT_THRESHOLD = 0
SUMMARY_NAME = "Summary"
# Everything after the last occurrence is dropped from sample base names
SAMPLE_SUFFIX_DELIM = "£"


class ConfigError(Exception):
    """Fatal configuration problem; reported with usage and exit status 1."""


@dataclass(frozen=True)
class RunConfig:
    name: str
    working_dir: Path
    primers: Path
    mash_db: Path
    threshold: int = DEFAULT_THRESHOLD
    minimal: bool = False
    bin_dir: Optional[Path] = None
    tools_env: Optional[str] = None
    timeout: Optional[float] = None

    @property
    def table_path(self) -> Path:
        return self.working_dir / f"{self.name}_phylogroups.txt"

    @property
    def report_path(self) -> Path:
        return self.working_dir / f"{self.name}_phylogroups.pdf"

    def tool(self, name: str) -> str:
        """Executable for `name`, preferring the configured tool directory."""
        if self.bin_dir:
            candidate = self.bin_dir / name
            if candidate.exists():
                return str(candidate)
        return name


def default_run_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"analysis_{now.strftime('%Y-%m-%d_%H%M%S')}"


def resolve_data_dir(cli_value: Optional[Path] = None) -> Path:
    if cli_value:
        return Path(cli_value)
    return Path(os.environ.get(DATA_DIR_ENV, DEFAULT_DATA_DIR))


def check_reference_data(data_dir: Path) -> tuple:
    """Return (primers, mash_db) or raise ConfigError if either is missing."""
    primers = data_dir / PRIMERS_FILE
    mash_db = data_dir / MASH_DB_FILE
    if not primers.is_file():
        raise ConfigError(f"Error: {PRIMERS_FILE} not found in {data_dir}")
    if not mash_db.is_file():
        raise ConfigError(f"Error: mash_reference.msh not found in {mash_db.parent}")
    return primers, mash_db


def build_run_config(
    name: str,
    data_dir: Path,
    threshold: int = DEFAULT_THRESHOLD,
    minimal: bool = False,
    base_dir: Optional[Path] = None,
    tools_env: Optional[str] = None,
    timeout: Optional[float] = None,
) -> RunConfig:
    if threshold < 0:
        raise ConfigError(f"--threshold must be a non-negative integer (got {threshold})")
    if timeout is not None and timeout <= 0:
        raise ConfigError(f"--timeout must be positive (got {timeout})")
    primers, mash_db = check_reference_data(data_dir)
    bin_env = os.environ.get(BIN_DIR_ENV)
    base = Path(base_dir) if base_dir else Path.cwd()
    return RunConfig(
        name=name,
        working_dir=(base / name).resolve(),
        primers=primers.resolve(),
        mash_db=mash_db.resolve(),
        threshold=threshold,
        minimal=minimal,
        bin_dir=Path(bin_env) if bin_env else None,
        tools_env=tools_env or os.environ.get(TOOLS_ENV_ENV) or None,
        timeout=timeout,
    )
