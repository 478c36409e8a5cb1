# src/ingest_tle.py
"""
Starlink TLE catalog loading.

The dashboard reads a JSON catalog (list of {name, noradId, line1, line2})
plus a small meta.json. Both can live on disk or behind a URL. Raw
CelesTrak TLE text is accepted as well and can be turned into a catalog
with `python src/ingest_tle.py`.
"""

import argparse
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone

import requests

import config
from terminal_log import setup_logging, tagged

log = tagged(logging.getLogger(__name__), "DATA")
err = tagged(logging.getLogger(__name__), "ERROR")


class CatalogError(Exception):
    pass


@dataclass(frozen=True)
class TleRecord:
    name: str
    norad_id: int
    line1: str
    line2: str


@dataclass
class CatalogMeta:
    count: int
    source: str
    updated_at: str


def _is_url(source):
    return str(source).startswith(("http://", "https://"))


def _read_source(source):
    if _is_url(source):
        try:
            resp = requests.get(source, timeout=config.HTTP_TIMEOUT)
        except requests.RequestException as e:
            raise CatalogError(f"Failed to fetch {source}: {e}") from e
        if resp.status_code != 200:
            raise CatalogError(f"Failed to fetch {source}: HTTP {resp.status_code}")
        return resp.text

    try:
        with open(source) as f:
            return f.read()
    except OSError as e:
        raise CatalogError(f"Failed to read {source}: {e}") from e


def _norad_from_line1(line1):
    try:
        return int(line1[2:7])
    except ValueError:
        return 0


def parse_tle_text(text):
    """Parse three-line TLE blocks, skipping malformed ones."""
    # Remove empty lines and strip spaces
    lines = [line.strip() for line in text.splitlines() if line.strip()]

    records = []
    i = 0
    while i + 2 < len(lines):
        name = lines[i]
        line1 = lines[i+1]
        line2 = lines[i+2]

        # LINE1 should start with '1', LINE2 with '2'
        if line1.startswith('1') and line2.startswith('2'):
            records.append(TleRecord(name, _norad_from_line1(line1), line1, line2))
        else:
            log.warning(f"Skipping malformed TLE block starting with: {name}")
        i += 3

    return records


def records_from_json(items):
    """Build records from catalog JSON entries, sorted by NORAD id."""
    records = []
    for obj in items:
        line1 = (obj.get("line1") or "").strip()
        line2 = (obj.get("line2") or "").strip()
        if not line1 or not line2:
            continue
        try:
            norad_id = int(obj.get("noradId") or 0)
        except (TypeError, ValueError):
            norad_id = 0
        name = obj.get("name") or f"STARLINK-{norad_id or ''}"
        records.append(TleRecord(name, norad_id, line1, line2))

    records.sort(key=lambda r: r.norad_id or 0)
    return records


def load_catalog(source=config.CATALOG_FILE):
    log.info(f"Fetching orbital elements from {source}")
    text = _read_source(source)

    if str(source).split("?")[0].endswith(".json"):
        try:
            items = json.loads(text)
        except ValueError as e:
            raise CatalogError(f"Invalid catalog JSON in {source}: {e}") from e
        if not isinstance(items, list):
            raise CatalogError(f"Catalog {source} is not a list")
        records = records_from_json(items)
    else:
        records = parse_tle_text(text)

    log.info(f"{len(records)} TLEs acquired")
    return records


def meta_source_for(catalog_source):
    """meta.json next to a catalog file or URL."""
    base = str(catalog_source).split("?")[0]
    if "/" not in base:
        return "meta.json"
    return base.rsplit("/", 1)[0] + "/meta.json"


def load_meta(source=config.META_FILE):
    """Catalog metadata, or None when it cannot be read."""
    try:
        raw = json.loads(_read_source(source))
        meta = CatalogMeta(
            count=int(raw["count"]),
            source=raw.get("source", ""),
            updated_at=raw.get("updatedAt", ""),
        )
    except (CatalogError, ValueError, KeyError, TypeError) as e:
        err.error(f"Metadata failure: {e}")
        return None

    log.info(f"Metadata loaded: {meta.count} satellites")
    return meta


def write_catalog(records, out_dir=config.DATA_DIR, source="CelesTrak (starlink)"):
    os.makedirs(out_dir, exist_ok=True)

    catalog = [
        {"name": r.name, "noradId": r.norad_id, "line1": r.line1, "line2": r.line2}
        for r in records
    ]
    meta = {
        "count": len(catalog),
        "source": source,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
    }

    out_file = os.path.join(out_dir, os.path.basename(config.CATALOG_FILE))
    meta_file = os.path.join(out_dir, os.path.basename(config.META_FILE))
    with open(out_file, "w") as f:
        json.dump(catalog, f, indent=2)
    with open(meta_file, "w") as f:
        json.dump(meta, f, indent=2)

    return out_file, meta_file


def download_tle(url=config.CELESTRAK_STARLINK_URL, out_dir=config.DATA_DIR):
    log.info("Downloading Starlink TLEs...")
    records = sorted(parse_tle_text(_read_source(url)), key=lambda r: r.norad_id)
    out_file, _ = write_catalog(records, out_dir)
    log.info(f"Cleaned Starlink TLEs saved to {out_file} ({len(records)} satellites)")
    return records


def main(argv=None):
    parser = argparse.ArgumentParser(description="Download Starlink TLEs into a dashboard catalog")
    parser.add_argument("--url", default=config.CELESTRAK_STARLINK_URL)
    parser.add_argument("--out", default=config.DATA_DIR, help="output directory")
    args = parser.parse_args(argv)

    setup_logging()
    download_tle(args.url, args.out)


if __name__ == "__main__":
    main()
