# core_logic.py
import os
import csv
import datetime
import getpass
import logging
import platform
import socket
import tempfile
import shutil
from typing import List, Dict, Any, Iterable, Callable

from exceptions import FileAccessError, InsufficientData
from parsers import recycle_parser
from utils import read_file

logger = logging.getLogger(__name__)

TOOL_VERSION = "0.1"
I_FILE_PREFIX = "$i"


def process_files(paths: Iterable[str], echo: Callable[[str], Any] = print) -> list:
    """
    Decode each path in order and echo one line per file.
    A failing file is reported and skipped; it never stops the remaining ones.
    Returns (path, record or None, line) tuples.
    """
    results = []
    for path in paths:
        try:
            record = recycle_parser.decode(read_file(path))
        except FileAccessError as e:
            line = f"Could not read file {path}: {e.reason}"
            record = None
        except InsufficientData as e:
            line = f"Could not decode file {path}: {e}"
            record = None
        else:
            line = recycle_parser.format_record(record)
        if record is None:
            logger.debug(line)
        echo(line)
        results.append((path, record, line))
    return results


def is_i_file(name: str) -> bool:
    return name.lower().startswith(I_FILE_PREFIX)


def parse_folder_core(folder_path: str) -> dict:
    """
    Walk a $Recycle.Bin tree and decode every $I file found.
    Returns a dictionary with status, message, records and errors.
    """
    if not os.path.isdir(folder_path):
        return {"status": "error", "message": f"Folder not found: {folder_path}"}

    logger.info(f"Starting to parse folder: {folder_path}")
    records = []
    errors = []
    for root, _, files in os.walk(folder_path):
        for f in sorted(files):
            if not is_i_file(f):
                continue
            path = os.path.join(root, f)
            try:
                record = recycle_parser.decode(read_file(path))
            except (FileAccessError, InsufficientData) as e:
                logger.error(f"[!] Failed to parse {path}: {e}")
                errors.append({"path": path, "message": str(e)})
                continue
            records.append(recycle_parser.record_to_row(path, record))

    logger.info(f"Decoded {len(records)} $I files from {folder_path} ({len(errors)} failed).")
    return {
        "status": "success",
        "message": f"Finished parsing folder: {folder_path}. "
                   f"Decoded {len(records)} records.",
        "records": records,
        "errors": errors,
    }


def build_metadata(report_details: Dict[str, Any] = None) -> dict:
    meta = {}
    try:
        meta["Examiner"] = getpass.getuser()
    except (KeyError, OSError):
        meta["Examiner"] = ""
    meta["Source"] = socket.gethostname()
    meta["OS"] = f"{platform.system()} {platform.release()} ({platform.version()})"
    meta["Tool Version"] = TOOL_VERSION
    for key, value in (report_details or {}).items():
        if value:
            meta[key] = value
    return meta


def make_timeline_histogram(rows: List[Dict[str, Any]], outpath: str):
    import matplotlib
    # use a non-interactive backend safe for background threads / servers
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    import matplotlib.dates as mdates

    times = []
    for r in rows:
        ts = r.get("timestamp")
        if not ts:
            continue
        try:
            times.append(datetime.datetime.fromisoformat(ts.rstrip("Z")))
        except ValueError:
            # years beyond datetime's range
            continue

    fig, ax = plt.subplots(figsize=(6.5, 2.6), dpi=150)
    if not times:
        ax.text(0.5, 0.5, "No deletion times available for timeline", ha="center", va="center", fontsize=10)
        ax.axis("off")
    else:
        ax.hist(mdates.date2num(times), bins=24, color="#C62828", edgecolor="white")
        ax.xaxis_date()
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m-%d\n%H:%M"))
        ax.set_title("Deletions over time (histogram)")
        ax.set_xlabel("UTC")
        ax.set_ylabel("Files")
        ax.grid(axis="y", linestyle="--", alpha=0.3)
        plt.setp(ax.get_xticklabels(), rotation=45, ha="right", fontsize=7)
    plt.tight_layout()
    fig.savefig(outpath, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Generated timeline chart: {outpath}")


def generate_csv_report(file_path: str, rows: List[Dict[str, Any]]) -> dict:
    """Exports decoded rows to CSV."""
    logger.info(f"Generating CSV report at: {file_path}")
    if not rows:
        return {"status": "info", "message": "No records to export."}

    try:
        headers = list(rows[0].keys())
        with open(file_path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=headers)
            writer.writeheader()
            writer.writerows(rows)
    except OSError as e:
        logger.error(f"CSV generation failed: {e}")
        return {"status": "error", "message": f"CSV generation failed: {e}"}
    logger.info(f"CSV saved: {file_path}")
    return {"status": "success", "message": f"CSV saved: {file_path}"}


def generate_pdf_report_core(file_path: str, rows: List[Dict[str, Any]], report_details: Dict[str, Any] = None) -> dict:
    """Generates the PDF deletion report, including the timeline chart."""
    from parsers import report_gen

    details = dict(report_details or {})
    title = details.pop("title", None) or f"Recycle Bin Report ({socket.gethostname()})"
    metadata = build_metadata(details)

    tmp_dir = tempfile.mkdtemp(prefix="infotrash_")
    try:
        chart = os.path.join(tmp_dir, "timeline.png")
        make_timeline_histogram(rows, chart)
        metadata["chart_timeline"] = chart
        report_gen.generate_pdf_report(rows, file_path, title=title, metadata=metadata)
    except OSError as e:
        logger.error(f"PDF generation failed: {e}")
        return {"status": "error", "message": f"PDF generation failed: {e}"}
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)
    logger.info(f"PDF report saved: {file_path}")
    return {"status": "success", "message": f"PDF saved: {file_path}"}
