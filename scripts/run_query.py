import argparse
import logging
import sys

from arrests.catalogue import list_named_queries, run_named_query, top_charges
from arrests.data_loader import load_arrest_data
from arrests.query import InvalidSpec

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run catalogued arrest queries")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--list", action="store_true", help="List the named queries and exit")
    mode.add_argument("--name", help="Named query to run")
    mode.add_argument(
        "--top-charges",
        nargs=2,
        metavar=("AREA", "YEAR"),
        help="Most frequent charges for an area and year",
    )
    parser.add_argument("--limit", type=int, default=5, help="Row limit for --top-charges")
    parser.add_argument("--data", help="CSV or parquet file (defaults to data/arrests.parquet)")
    parser.add_argument("--output", help="Write the result to this CSV file instead of stdout")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.list:
        for query in list_named_queries():
            print(f"{query.name:32} {query.description}")
        return 0

    try:
        dataset = load_arrest_data(args.data)
        if args.top_charges:
            area, year = args.top_charges
            result = top_charges(dataset, area, int(year), limit=args.limit)
        else:
            result = run_named_query(dataset, args.name)
    except (InvalidSpec, FileNotFoundError, ValueError) as e:
        logger.error(f"Query failed: {e}")
        return 1

    if args.output:
        result.to_csv(args.output, index=False)
        logger.info(f"Wrote {len(result)} rows to {args.output}")
    else:
        print(result.to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
