import argparse
from .experiment_manager import (
    run_experiment_from_config,
    list_experiments,
    show_experiment,
    compare_experiments,
)


def main():
    parser = argparse.ArgumentParser(description="forever-sim retirement plan runner")
    sub = parser.add_subparsers(dest="cmd")

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------
    p_run = sub.add_parser("run", help="Run an experiment from a YAML config")
    p_run.add_argument("config", type=str, help="Path to .yaml config file")
    p_run.add_argument("--root", type=str, default="results", help="Results directory")

    # ------------------------------------------------------------------
    # list
    # ------------------------------------------------------------------
    p_list = sub.add_parser("list", help="List previous experiment runs")
    p_list.add_argument("--root", type=str, default="results")

    # ------------------------------------------------------------------
    # show
    # ------------------------------------------------------------------
    p_show = sub.add_parser("show", help="Print the stored plan of a run")
    p_show.add_argument("run_dir", type=str, help="Path to run output directory")

    # ------------------------------------------------------------------
    # compare
    # ------------------------------------------------------------------
    p_cmp = sub.add_parser("compare", help="Compare plan outcomes across runs")
    p_cmp.add_argument(
        "runs", nargs="+", help="Run IDs (directory names under results/)"
    )
    p_cmp.add_argument("--root", type=str, default="results")

    args = parser.parse_args()

    if args.cmd == "run":
        run_experiment_from_config(args.config, root=args.root)

    elif args.cmd == "list":
        list_experiments(args.root)

    elif args.cmd == "show":
        show_experiment(args.run_dir)

    elif args.cmd == "compare":
        compare_experiments(args.runs, root=args.root)

    else:
        parser.print_help()


if __name__ == "__main__":
    main()
