"""Main CLI entry point for scmint.

Provides subcommands:
    scmint integrate    Run MINT sPLS-DA on an .h5ad file
    scmint generate     Generate synthetic data for testing
    scmint info         Inspect an .h5ad file
    scmint list-models  Show available model backends
    scmint run          Run integration from a YAML config file
"""

import argparse
import logging
import sys
from pathlib import Path

from ..config import MintConfig, run_from_config
from ..data import (
    generate_synthetic_data,
    get_running_time,
    load_data,
    detect_batch_key,
    detect_label_key,
    class_batch_table,
)
from ..integration import integrate, MARKER_KEY, BATCH_KEY_PREFIX
from ..models import AVAILABLE_MODELS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    """Set up logging based on --verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )


def _parse_int_list(raw, flag):
    """Parse '10,20,50' into [10, 20, 50]."""
    if not raw:
        return None
    try:
        return [int(v) for v in raw.split(",") if v.strip()]
    except ValueError:
        sys.exit(f"Error: {flag} expects comma-separated integers, got '{raw}'")


def _parse_model_params(raw):
    """Parse 'key=val,key=val' into a dict, casting numbers automatically."""
    if not raw:
        return {}
    params = {}
    for pair in raw.split(","):
        if "=" not in pair:
            sys.exit(f"Error: bad --model-params entry '{pair}' (expected key=value)")
        key, val = pair.split("=", 1)
        # Try int, then float, then leave as string
        try:
            val = int(val)
        except ValueError:
            try:
                val = float(val)
            except ValueError:
                pass
        params[key.strip()] = val
    return params


def _print_summary(adata):
    """Print what integrate() stored in the AnnData."""
    print()
    print("=" * 40)
    print("MINT RESULTS")
    print("=" * 40)
    print(f"  {'markers':20s}  {int(adata.var[MARKER_KEY].sum()):>8d}")
    for key in adata.obsm.keys():
        if key.startswith(BATCH_KEY_PREFIX):
            print(f"  {key:20s}  {str(adata.obsm[key].shape):>8s}")
    log = get_running_time(adata)
    if len(log):
        print(f"  {'running time (s)':20s}  {float(log['time'].iloc[-1]):>8.2f}")
    print("=" * 40)


def _write_output(adata, output):
    out = Path(output)
    out.parent.mkdir(parents=True, exist_ok=True)
    adata.write_h5ad(out)
    print(f"Saved integrated data to {out}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_integrate(args):
    """Run MINT sPLS-DA and save the annotated AnnData."""
    adata = load_data(args.data)
    genes = [g.strip() for g in args.genes.split(",")] if args.genes else None

    print(f"Running MINT on {adata.n_obs} cells x {adata.n_vars} genes...")
    adata, mint = integrate(
        adata,
        batch_key=args.batch_key,
        class_key=args.class_key,
        genes=genes,
        gene_key=args.gene_key,
        ncomp=args.ncomp,
        keepX=_parse_int_list(args.keepx, "--keepx") or [50] * args.ncomp,
        tune_keepX=_parse_int_list(args.tune_keepx, "--tune-keepx"),
        verbose=True,
        model=args.model,
        model_params=_parse_model_params(args.model_params),
        layer=args.layer,
        log_file=args.log_file,
        output="both",
    )

    if mint is None:
        print("Error: MINT integration failed (see log above)", file=sys.stderr)
        sys.exit(1)

    _print_summary(adata)

    if args.output:
        _write_output(adata, args.output)


def cmd_generate(args):
    """Generate synthetic data for testing."""
    adata = generate_synthetic_data(
        n_cells=args.n_cells,
        n_genes=args.n_genes,
        n_cell_types=args.n_cell_types,
        n_batches=args.n_batches,
        seed=args.seed,
    )

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    adata.write_h5ad(output)

    print(f"Saved synthetic data to {output}")
    print(f"  {adata.n_obs} cells x {adata.n_vars} genes")
    print(f"  {args.n_cell_types} cell types, {args.n_batches} batches")


def cmd_info(args):
    """Inspect an .h5ad dataset."""
    adata = load_data(args.data)

    print(f"File:       {args.data}")
    print(f"Cells:      {adata.n_obs:,}")
    print(f"Genes:      {adata.n_vars:,}")
    print(f"Columns:    {list(adata.obs.columns)}")

    label_col = detect_label_key(adata)
    batch_col = detect_batch_key(adata)

    if label_col:
        n_types = adata.obs[label_col].nunique()
        print(f"\nClass column (auto-detected): '{label_col}' ({n_types} classes)")
        for ct, n in adata.obs[label_col].value_counts().head(10).items():
            print(f"  {str(ct):30s}  {n:>6d}")
        if n_types > 10:
            print(f"  ... and {n_types - 10} more")
    else:
        print("\nNo class column detected.")

    if batch_col:
        n_batches = adata.obs[batch_col].nunique()
        print(f"\nBatch column (auto-detected): '{batch_col}' ({n_batches} batches)")
        for b, n in adata.obs[batch_col].value_counts().items():
            print(f"  {str(b):30s}  {n:>6d}")
    else:
        print("\nNo batch column detected.")

    if label_col and batch_col:
        print("\nCells per class and batch:")
        print(class_batch_table(adata, batch_col, label_col).to_string())
        if adata.obs[label_col].nunique() < 2 or adata.obs[batch_col].nunique() < 2:
            print("MINT needs at least 2 classes and 2 batches.")

    if MARKER_KEY in adata.var:
        print(f"\nMINT markers: {int(adata.var[MARKER_KEY].sum())}")
        embeddings = [k for k in adata.obsm.keys() if k.startswith(BATCH_KEY_PREFIX)]
        print(f"MINT embeddings: {embeddings}")

    log = get_running_time(adata)
    if len(log):
        print("\nRunning time:")
        print(log.to_string(index=False))


def cmd_list_models(_args):
    """List available model backends."""
    print("Available models:\n")
    for name in sorted(AVAILABLE_MODELS):
        cls = AVAILABLE_MODELS[name]
        doc = (cls.__doc__ or "").strip().split("\n")[0]
        print(f"  {name:25s}  {doc}")
    print()
    print("The mixomics backend needs R, mixOmics and rpy2:")
    print("  pip install -e '.[r]'")


def cmd_run(args):
    """Run integration from a YAML config file."""
    config = MintConfig.from_yaml(args.config)
    if args.output:
        config.output_path = args.output

    config.output = "both"
    adata, mint = run_from_config(config)

    if mint is None:
        print("Error: MINT integration failed (run with -v for details)", file=sys.stderr)
        sys.exit(1)

    _print_summary(adata)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="scmint",
        description="scmint: MINT sPLS-DA integration for single cell data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  scmint generate -o synthetic.h5ad
  scmint info --data synthetic.h5ad
  scmint integrate --data synthetic.h5ad --ncomp 2 --keepx 20,20 -o mint.h5ad
  scmint integrate --data synthetic.h5ad --ncomp 2 --tune-keepx 10,20,50 -o mint.h5ad
  scmint run --config mint_config.yaml
""",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Show debug-level logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- integrate -----------------------------------------------------------
    p = subparsers.add_parser(
        "integrate",
        help="Run MINT sPLS-DA on an .h5ad file",
    )
    p.add_argument("--data", required=True, help="Path to .h5ad file")
    p.add_argument("--batch-key", default="batch",
                   help="Batch/protocol column (default: batch)")
    p.add_argument("--class-key", default="mix",
                   help="Class/cell type column (default: mix)")
    p.add_argument("--genes",
                   help="Comma-separated genes to use (default: all)")
    p.add_argument("--gene-key",
                   help="Boolean var column selecting genes (e.g. highly_variable)")
    p.add_argument("--ncomp", type=int, default=3,
                   help="Number of components (default: 3)")
    p.add_argument("--keepx",
                   help="Genes to select per component, e.g. 50,50,50 "
                        "(default: 50 per component)")
    p.add_argument("--tune-keepx",
                   help="Grid of gene counts to tune over, e.g. 10,20,50,100")
    p.add_argument("--model", default="splsda", choices=sorted(AVAILABLE_MODELS),
                   help="Model backend (default: splsda)")
    p.add_argument("--model-params",
                   help="Extra model params as key=value,key=value (e.g. n_jobs=4)")
    p.add_argument("--layer", help="Use this layer instead of .X")
    p.add_argument("--log-file", help="Append errors to this file")
    p.add_argument("-o", "--output", help="Save integrated data to .h5ad")
    p.set_defaults(func=cmd_integrate)

    # --- generate ------------------------------------------------------------
    p = subparsers.add_parser(
        "generate",
        help="Generate synthetic data for testing",
    )
    p.add_argument("-o", "--output", required=True, help="Output .h5ad file")
    p.add_argument("--n-cells", type=int, default=1000,
                   help="Number of cells (default: 1000)")
    p.add_argument("--n-genes", type=int, default=2000,
                   help="Number of genes (default: 2000)")
    p.add_argument("--n-cell-types", type=int, default=3,
                   help="Cell types (default: 3)")
    p.add_argument("--n-batches", type=int, default=2,
                   help="Batches (default: 2)")
    p.add_argument("--seed", type=int, default=42,
                   help="Random seed (default: 42)")
    p.set_defaults(func=cmd_generate)

    # --- info ----------------------------------------------------------------
    p = subparsers.add_parser(
        "info",
        help="Inspect an .h5ad dataset",
    )
    p.add_argument("--data", required=True, help="Path to .h5ad file")
    p.set_defaults(func=cmd_info)

    # --- list-models ---------------------------------------------------------
    p = subparsers.add_parser(
        "list-models",
        help="List available model backends",
    )
    p.set_defaults(func=cmd_list_models)

    # --- run (config) --------------------------------------------------------
    p = subparsers.add_parser(
        "run",
        help="Run integration from YAML config file",
    )
    p.add_argument("--config", required=True, help="Path to YAML config")
    p.add_argument("-o", "--output", help="Save integrated data to .h5ad")
    p.set_defaults(func=cmd_run)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _configure_logging(args.verbose)

    try:
        args.func(args)
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
