# main.py
"""
Command line entry point: print the original name and deletion time
stored in one or more $I files.
"""

import argparse
import logging
import sys

import core_logic


def setup_logging():
    # stdout carries the decoded lines; diagnostics go to stderr
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv=None):
    p = argparse.ArgumentParser(prog="infotrash", description="Displays information from $IXXXXXX files")
    p.add_argument("--version", action="version", version=f"%(prog)s {core_logic.TOOL_VERSION}")
    p.add_argument("file", nargs="+", help="Input file(s)")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging()
    core_logic.process_files(args.file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
