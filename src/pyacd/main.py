"""
Command line driver for PyACD.

Grows every stand listed in a stand file for a number of years:

    pyacd 10 stands.csv --output grown.csv

The stand file has one row per stand with columns

    region, stand_id, units, year, csi, elev, cdef, use_sbw, use_hw,
    use_thin, use_ingrowth, cut_point, min_dbh

and each stand's tree list is read from ``<stand_id>.csv`` next to the
stand file, with columns

    stand_id, plot_id, tree_id, species, dbh, ht, expf, cr, form, risk

Units are 0 (metric: cm, m, trees/ha) or 1 (imperial: in, ft, trees/acre).
Grown tree lists are written in the input units with the tree file columns.
A stand that fails is reported and skipped.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd
from rich.console import Console
from rich.table import Table

from . import __version__
from .exceptions import ACDError, FileNotFoundError as ACDFileNotFoundError, InvalidDataError
from .logging_config import get_logger, setup_logging
from .stand import Stand, StandConfig
from .units import UnitConversion, get_unit_conversion

STAND_COLUMNS = ['region', 'stand_id', 'units', 'year', 'csi', 'elev', 'cdef',
                 'use_sbw', 'use_hw', 'use_thin', 'use_ingrowth', 'cut_point', 'min_dbh']
TREE_COLUMNS = ['stand_id', 'plot_id', 'tree_id', 'species', 'dbh', 'ht', 'expf', 'cr', 'form', 'risk']

EXIT_OK = 0
EXIT_STAND_FAILED = 1
EXIT_BAD_INPUT = 2

logger = get_logger(__name__)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 't', 'yes', 'y')
    return bool(value)


def read_csv(path: Path, description: str) -> pd.DataFrame:
    """Read a CSV file with a string stand_id column.

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidDataError: If the file cannot be parsed
    """
    if not path.exists():
        raise ACDFileNotFoundError(str(path), description)
    try:
        df = pd.read_csv(path, skipinitialspace=True, dtype={'stand_id': str, 'region': str})
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InvalidDataError(description, f"{path.name}: {e}") from e
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _require_columns(df: pd.DataFrame, columns: List[str], description: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise InvalidDataError(description, f"missing columns {missing}")


def stand_config_from_row(row: pd.Series) -> Tuple[StandConfig, UnitConversion]:
    """Build the stand settings for a stand file row, converted to metric."""
    try:
        units = get_unit_conversion(int(row['units']))
    except ValueError as e:
        raise InvalidDataError(f"stand {row['stand_id']}", str(e)) from e

    config = StandConfig(
        region=str(row['region']).strip(),
        year=int(row['year']),
        csi=units.length_to_metric(float(row['csi'])),
        elevation=units.length_to_metric(float(row['elev'])),
        cdef=float(row['cdef']),
        use_defoliation=_as_bool(row['use_sbw']),
        use_form_risk=_as_bool(row['use_hw']),
        use_thinning=_as_bool(row['use_thin']),
        use_ingrowth=_as_bool(row['use_ingrowth']),
        cut_point=float(row['cut_point']),
        min_dbh=units.diameter_to_metric(float(row['min_dbh'])),
    )
    return config, units


def tree_frame_to_metric(trees: pd.DataFrame, stand_id: str, units: UnitConversion) -> pd.DataFrame:
    """Convert a tree file to the engine's column names and metric units."""
    _require_columns(trees, TREE_COLUMNS, f"tree list for stand {stand_id}")
    mismatched = trees.loc[trees['stand_id'].astype(str).str.strip() != stand_id, 'stand_id']
    if not mismatched.empty:
        raise InvalidDataError(f"tree list for stand {stand_id}",
                               f"contains records of stand {mismatched.iloc[0]!r}")
    return pd.DataFrame({
        'plot_id': trees['plot_id'],
        'tree_id': trees['tree_id'],
        'species': trees['species'],
        'dbh': trees['dbh'] * units.diameter,
        'height': trees['ht'].fillna(0.0) * units.length,
        'tph': trees['expf'] * units.density,
        'crown_ratio': trees['cr'].fillna(0.0),
        'form': trees['form'].fillna(0).astype(int),
        'risk': trees['risk'].fillna(0).astype(int),
    })


def tree_frame_from_metric(grown: pd.DataFrame, stand_id: str, units: UnitConversion) -> pd.DataFrame:
    """Convert a grown tree list back to the tree file columns and units."""
    return pd.DataFrame({
        'stand_id': stand_id,
        'plot_id': grown['plot_id'],
        'tree_id': grown['tree_id'],
        'species': grown['species'],
        'dbh': grown['dbh'] / units.diameter,
        'ht': grown['height'] / units.length,
        'expf': grown['tph'] / units.density,
        'cr': grown['crown_ratio'],
        'form': grown['form'],
        'risk': grown['risk'],
    }, columns=TREE_COLUMNS)


def grow_stand(row: pd.Series, stand_dir: Path, years: int, seed: Optional[int] = None) -> Tuple[pd.DataFrame, dict]:
    """Read, grow and convert back one stand.

    Returns:
        Grown tree list in the input units, and the stand metrics

    Raises:
        ACDError: If the stand cannot be read or grown
    """
    stand_id = str(row['stand_id']).strip()
    try:
        config, units = stand_config_from_row(row)
        trees = read_csv(stand_dir / f"{stand_id}.csv", f"tree list for stand {stand_id}")
        stand = Stand.from_dataframe(config, tree_frame_to_metric(trees, stand_id, units), seed=seed)
    except (ValueError, TypeError) as e:
        raise InvalidDataError(f"input for stand {stand_id}", str(e)) from e
    stand.grow(years)

    logger.info(f"Grew stand {stand_id} for {years} years: {len(stand.trees)} records")
    return tree_frame_from_metric(stand.to_dataframe(), stand_id, units), stand.get_metrics()


def print_summary(console: Console, results: List[Tuple[str, Optional[dict]]]) -> None:
    """Print one row per stand: trees, basal area and QMD, or the failure."""
    table = Table(title="Grown Stands", show_header=True)
    table.add_column("Stand", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("TPH", justify="right")
    table.add_column("BA (m2/ha)", justify="right")
    table.add_column("QMD (cm)", justify="right")

    for stand_id, metrics in results:
        if metrics is None:
            table.add_row(stand_id, "[red]failed[/red]", "", "", "")
        else:
            table.add_row(
                stand_id,
                str(metrics['records']),
                f"{metrics['tph']:.1f}",
                f"{metrics['ba']:.2f}",
                f"{metrics['qmd']:.2f}",
            )
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyacd",
        description="Grow tree lists with the Acadian Variant growth model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pyacd 10 stands.csv                      # Grow for 10 years, write to stdout
  pyacd 10 stands.csv --output grown.csv   # Write grown tree lists to a file
  pyacd 5 stands.csv --seed 42 -v          # Reproducible run with debug logging
        """
    )
    parser.add_argument("years", type=int, help="Number of years to grow each stand")
    parser.add_argument("stand_file", type=Path, help="CSV file with one row per stand")
    parser.add_argument("--output", type=Path, help="Output CSV file (default: stdout)")
    parser.add_argument("--seed", type=int, help="Seed for the tree list expansion jitter")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING")
    console = Console(stderr=True)

    if args.years < 0:
        logger.error(f"Number of years must not be negative, got {args.years}")
        return EXIT_BAD_INPUT

    try:
        stands = read_csv(args.stand_file, "stand file")
        _require_columns(stands, STAND_COLUMNS, "stand file")
    except ACDError as e:
        logger.error(str(e))
        return EXIT_BAD_INPUT

    stand_dir = args.stand_file.parent
    grown_frames = []
    results = []
    for _, row in stands.iterrows():
        stand_id = str(row['stand_id']).strip()
        try:
            frame, metrics = grow_stand(row, stand_dir, args.years, seed=args.seed)
        except ACDError as e:
            logger.error(f"Stand {stand_id} failed: {e}")
            results.append((stand_id, None))
            continue
        grown_frames.append(frame)
        results.append((stand_id, metrics))

    output = pd.concat(grown_frames, ignore_index=True) if grown_frames else pd.DataFrame(columns=TREE_COLUMNS)
    if args.output is not None:
        output.to_csv(args.output, index=False)
    else:
        output.to_csv(sys.stdout, index=False)

    print_summary(console, results)

    failed = sum(1 for _, metrics in results if metrics is None)
    return EXIT_STAND_FAILED if failed else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
