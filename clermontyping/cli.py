#!/usr/bin/env python3

import sys

from clermontyping.__version__ import __version__
from clermontyping.scripts import run_typing


def main():
    # From a set of contigs in FASTA format:
    #   1] Mash screen against the reference sketch
    #   2] BLAST database per sample
    #   3] BLAST of the primer set
    #   4] in silico PCR (clermont.py) for the phylogroup
    #   5] report + mash group annotation
    if len(sys.argv) > 1 and sys.argv[1] == "--version":
        print(f"clermontyping {__version__}")
        sys.exit(0)

    sys.exit(run_typing.main(sys.argv[1:]))


if __name__ == "__main__":
    main()
