#!/usr/bin/env python3
"""Command-line interface for rarefaction of microbiome count tables."""

import argparse
import logging
import sys
from pathlib import Path
import json
from typing import List, Optional

from rarefaction.count_table import load_count_table
from rarefaction.config import RarefactionConfig
from rarefaction.engine import RarefactionEngine


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Rarefy a taxon count table and average richness or Bray-Curtis dissimilarity',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mean richness at the smallest library size, 100 draws
  %(prog)s -i counts.tsv -o results/

  # Bray-Curtis at a fixed depth with a fixed seed on 4 processes
  %(prog)s -i counts.tsv -o results/ -d 5000 --metric bray_curtis -s 7 --n-processes 4

  # Samples stored as rows, also write a 20-step rarefaction curve
  %(prog)s -i counts.csv -o results/ --samples-as-rows --curve-steps 20
        """
    )

    # Input/output
    parser.add_argument('-i', '--input', required=True, type=Path,
                       help='Count table (CSV, or TSV/TXT for tab-separated); taxa as rows by default')
    parser.add_argument('-o', '--output', required=True, type=Path,
                       help='Output directory for results')
    parser.add_argument('--samples-as-rows', action='store_true',
                       help='Samples are rows and taxa are columns in the input table')
    parser.add_argument('--taxon-column',
                       help='Column holding row identifiers (default: first column)')

    # Rarefaction options
    parser.add_argument('-d', '--depth', type=int,
                       help='Target depth (default: smallest library size)')
    parser.add_argument('-n', '--iterations', type=int, default=100,
                       help='Number of subsampling draws to average (default: 100)')
    parser.add_argument('-s', '--seed', type=int, default=0,
                       help='Base random seed (default: 0)')
    parser.add_argument('--metric', choices=['richness', 'bray_curtis'], default='richness',
                       help='Metric to average across draws (default: richness)')
    parser.add_argument('--with-replacement', action='store_true',
                       help='Draw reads with replacement (not classic rarefaction)')
    parser.add_argument('--approximate', action='store_true',
                       help='Scale and round counts instead of drawing reads')
    parser.add_argument('--keep-all-samples', action='store_true',
                       help='Fail instead of excluding samples below the target depth')
    parser.add_argument('--curve-steps', type=int,
                       help='Also compute a richness rarefaction curve with this many depths')

    # Other options
    parser.add_argument('--n-processes', type=int, default=1,
                       help='Number of processes for parallel draws (default: 1, 0 for all CPUs)')
    parser.add_argument('-v', '--verbose', action='store_true',
                       help='Enable verbose logging')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Set up logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        # Step 1: Load the count table
        logger.info("Loading count table...")
        table = load_count_table(args.input, samples_as_rows=args.samples_as_rows,
                                 taxon_column=args.taxon_column)

        config = RarefactionConfig(
            target_depth=args.depth,
            iterations=args.iterations,
            seed=args.seed,
            metric=args.metric,
            with_replacement=args.with_replacement,
            approximate=args.approximate,
            exclude_shallow_samples=not args.keep_all_samples,
        ).validate()

        # Step 2: Rarefy
        engine = RarefactionEngine(n_processes=args.n_processes)
        result = engine.rarefy(table, config)

        # Step 3: Save results
        args.output.mkdir(parents=True, exist_ok=True)

        effective = config.with_overrides(target_depth=result.target_depth, seed=result.seed)
        with open(args.output / 'config.json', 'w') as f:
            json.dump(effective.to_dict(), f, indent=2)

        result_path = args.output / f'{result.metric}.csv'
        result.to_frame().to_csv(result_path)
        logger.info(f"Saved {result.metric} to {result_path}")

        with open(args.output / 'excluded_samples.txt', 'w') as f:
            for sample_id in result.excluded_samples:
                f.write(f"{sample_id}\n")

        if result.excluded_samples:
            logger.info(f"{len(result.excluded_samples)} sample(s) excluded, "
                       f"listed in {args.output / 'excluded_samples.txt'}")

        # Step 4: Optional rarefaction curve
        if args.curve_steps:
            curve = engine.rarefaction_curve(table, depths=args.curve_steps,
                                             iterations=min(args.iterations, 10), seed=result.seed)
            curve.to_csv(args.output / 'rarefaction_curve.csv')
            logger.info(f"Saved rarefaction curve to {args.output / 'rarefaction_curve.csv'}")

        logger.info(f"\nAnalysis complete! Results saved to {args.output}")

    except Exception as e:
        logger.error(f"Analysis failed: {e}", exc_info=True)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
