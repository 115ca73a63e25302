"""Run a hierarchical cluster analysis from the command line."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from mvstats.analysis.hclus import (
    Distance,
    HclusFailure,
    HclusRequest,
    Linkage,
    cluster,
    figure_to_png,
    plot,
    store_membership,
    summarize,
)
from mvstats.analysis.hclus.plots import PLOT_KINDS
from mvstats.config import get_analysis_settings, get_data_dir
from mvstats.data.datasets import build_store, fix_names
from mvstats.logging_utils import setup_logging

logger = logging.getLogger("run_hclus")


def parse_args(argv=None) -> argparse.Namespace:
    settings = get_analysis_settings()
    parser = argparse.ArgumentParser(description="Hierarchical cluster analysis on a CSV/parquet dataset.")
    parser.add_argument("--data-dir", type=Path, default=get_data_dir(), help="Directory containing datasets")
    parser.add_argument("--dataset", required=True, help="Dataset name (file stem in --data-dir)")
    parser.add_argument("--vars", nargs="+", required=True, help="Variables, ranges like v1:v6 allowed")
    parser.add_argument("--labels", default="none", help="Column with case labels (default: none)")
    parser.add_argument("--distance", default=Distance.SQ_EUCLIDEAN.value, choices=[d.value for d in Distance])
    parser.add_argument("--method", default=Linkage.WARD_D.value, choices=[m.value for m in Linkage])
    parser.add_argument("--max-cases", type=int, default=settings.max_cases)
    parser.add_argument("--no-standardize", action="store_true", help="Use the variables as they are")
    parser.add_argument("--filter", default="", help="Row filter, e.g. \"price > 10000\"")
    parser.add_argument("--plots", nargs="*", default=[], choices=PLOT_KINDS)
    parser.add_argument("--cutoff", type=float, default=0.05, help="Hide merges below this share of the max height")
    parser.add_argument("--nr-clusters", type=int, default=3, help="Clusters shown in the pairwise plot")
    parser.add_argument("--png", type=Path, default=None, help="Write the plots to this PNG file")
    parser.add_argument("--store", default=None, help="Name of the cluster membership column to add")
    parser.add_argument("--nr-clus", type=int, default=2, help="Number of clusters to store")
    parser.add_argument("--output", type=Path, default=None, help="CSV path for the dataset with membership")
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(quiet=args.quiet)

    store = build_store(args.data_dir)
    if args.dataset not in store:
        logger.error("Dataset '%s' not found in %s", args.dataset, args.data_dir)
        return 2

    if args.png and not args.plots:
        logger.warning("--png given without --plots; no image will be written")

    try:
        request = HclusRequest(
            dataset=args.dataset,
            vars=tuple(args.vars),
            labels=args.labels,
            distance=args.distance,
            method=args.method,
            max_cases=args.max_cases,
            standardize=not args.no_standardize,
            data_filter=args.filter,
        )
        result = cluster(request, store)
    except (KeyError, ValueError) as exc:
        logger.error("Cannot run analysis: %s", exc.args[0] if exc.args else exc)
        return 2
    print(summarize(result))
    if isinstance(result, HclusFailure):
        return 1

    if args.plots:
        fig = plot(result, plots=args.plots, cutoff=args.cutoff, nr_clusters=args.nr_clusters)
        if fig is not None:
            png_path = args.png or Path(f"{args.dataset}_hclus.png")
            png_path.write_bytes(figure_to_png(fig, dpi=get_analysis_settings().plot_dpi))
            logger.info("Saved plots to %s", png_path)

    if args.store:
        name = fix_names(args.store)
        updated = store_membership(store.get(args.dataset), result, nr_clus=args.nr_clus, name=name)
        output = args.output or Path(f"{args.dataset}_hclus.csv")
        updated.to_csv(output, index=False)
        logger.info("Saved dataset with '%s' to %s", name, output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
