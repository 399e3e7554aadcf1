import argparse
import logging
import pathlib
import sys
from datetime import datetime

import pandas as pd
from dotenv import load_dotenv

load_dotenv()

from src.binned_effects import (  # noqa: E402
    BinnedEffectsError,
    pooled_sd,
    quantile_counts,
    quantile_effect_sizes,
    quantile_mean_diffs,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(log_level: str):
    """Configure logging with the specified level."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    return logging.getLogger(__name__)


def _load_table(csv_path: str, group: str) -> pd.DataFrame:
    """Read a CSV file, keeping group labels as strings so they match --ref-group."""
    path = pathlib.Path(csv_path)
    if not path.is_file():
        raise SystemExit(f"Path does not exist: {path}")
    return pd.read_csv(path, dtype={group: str})


def _emit(df: pd.DataFrame, output: str | None):
    """Write a result table to CSV, or print it when no output path is given."""
    if output:
        output_path = pathlib.Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(output_path, index=False)
        logger.info(f"Wrote {len(df)} row(s) to {output_path}")
    else:
        print(df.to_string(index=False))


def _run(compute, args):
    """Run a library call, turning pipeline errors into a non-zero exit."""
    configure_logging(args.log_level)
    table = _load_table(args.csv, args.group)
    try:
        return compute(table)
    except BinnedEffectsError as e:
        logger.error(f"Analysis failed: {e}")
        raise SystemExit(1) from e


def cmd_pooled_sd(args):
    """Print pooled standard deviations for every pair of groups."""
    df = _run(lambda table: pooled_sd(args.outcome, args.group, table), args)
    _emit(df, args.output)


def cmd_counts(args):
    """Print per-group quantile bin counts."""
    df = _run(
        lambda table: quantile_counts(args.outcome, args.group, table, quantile_spec=args.quantiles),
        args,
    )
    _emit(df, args.output)


def cmd_mean_diffs(args):
    """Print mean differences by matched quantile bin."""
    df = _run(
        lambda table: quantile_mean_diffs(
            args.outcome, args.group, table, quantile_spec=args.quantiles
        ),
        args,
    )
    _emit(df, args.output)


def cmd_effects(args):
    """Compute quantile-binned effect sizes, optionally plotting and reporting them."""
    effects = _run(
        lambda table: quantile_effect_sizes(
            args.outcome,
            args.group,
            table,
            reference_group=args.ref_group,
            quantile_spec=args.quantiles,
            detailed=args.detailed,
        ),
        args,
    )
    _emit(effects, args.output)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    report_path = None
    if args.report:
        if args.report is True:
            report_path = pathlib.Path(f"reports/effect_size_report_{timestamp}.md")
        else:
            report_path = pathlib.Path(args.report)

    plot_path = None
    if args.plot:
        from src.reporting.plotting import binned_plot

        if args.plot is not True:
            plot_path = pathlib.Path(args.plot)
        elif report_path is not None:
            plot_path = report_path.parent / "figures" / f"binned_plot_{timestamp}.png"

        title = f"{args.outcome} ~ {args.group}"
        if plot_path is None:
            import matplotlib.pyplot as plt

            binned_plot(effects, theme=args.theme, title=title)
            plt.show()
        else:
            plot_path.parent.mkdir(parents=True, exist_ok=True)
            binned_plot(effects, theme=args.theme, title=title, save_path=str(plot_path))

    if report_path is not None:
        from src.reporting.report import generate_markdown_report

        generate_markdown_report(
            effects,
            str(report_path),
            outcome=args.outcome,
            group=args.group,
            plot_path=str(plot_path) if plot_path else None,
        )


def _add_common_args(parser, quantiles=True):
    parser.add_argument("--csv", required=True, help="Path to a CSV file of observations")
    parser.add_argument("--outcome", required=True, help="Name of the numeric outcome column")
    parser.add_argument("--group", required=True, help="Name of the grouping column")
    if quantiles:
        parser.add_argument(
            "--quantiles",
            default=None,
            metavar="FRACTIONS",
            help="Comma-separated cut fractions, e.g. 0,0.2,0.4,0.6,0.8,1 (default: thirds)",
        )
    parser.add_argument(
        "--output",
        default=None,
        metavar="PATH",
        help="Write the result table to this CSV file instead of printing it",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        help="Set logging level (default: INFO)",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Binned ES - Effect sizes by matched quantile bins",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Effects command
    effects_parser = subparsers.add_parser(
        "effects", help="Compute effect sizes (Cohen's d) by quantile bins"
    )
    _add_common_args(effects_parser)
    effects_parser.add_argument(
        "--ref-group",
        default=None,
        help="Reference group label (default: group with the highest mean)",
    )
    effects_parser.add_argument(
        "--detailed",
        action="store_true",
        help="Include mean differences, pooled SDs and bin counts in the output",
    )
    effects_parser.add_argument(
        "--plot",
        nargs="?",
        const=True,
        default=False,
        metavar="PATH",
        help="Plot the effect sizes. Optionally specify an image path to save to",
    )
    effects_parser.add_argument(
        "--theme",
        choices=["dark"],
        default=None,
        help="Plot theme (default: standard white background)",
    )
    effects_parser.add_argument(
        "--report",
        nargs="?",
        const=True,
        default=False,
        metavar="PATH",
        help="Generate a Markdown report. Optionally specify output path (default: reports/effect_size_report_<timestamp>.md)",
    )
    effects_parser.set_defaults(func=cmd_effects)

    # Mean differences command
    diffs_parser = subparsers.add_parser(
        "mean-diffs", help="Compute mean differences by matched quantile bins"
    )
    _add_common_args(diffs_parser)
    diffs_parser.set_defaults(func=cmd_mean_diffs)

    # Counts command
    counts_parser = subparsers.add_parser("counts", help="Count observations per quantile bin")
    _add_common_args(counts_parser)
    counts_parser.set_defaults(func=cmd_counts)

    # Pooled SD command
    pooled_parser = subparsers.add_parser(
        "pooled-sd", help="Compute pooled standard deviations between groups"
    )
    _add_common_args(pooled_parser, quantiles=False)
    pooled_parser.set_defaults(func=cmd_pooled_sd)

    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    if args.command is None:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
