"""
EqCalc - equilibrium solver driver

Entry point for command line use.

Usage:
    python main.py Al-Si-O.dat --basis SiO2 Al2O3 --composition 0.1 0.9 -T 2200
    python main.py Al-Si-O.dat --target-phase 3 --interval 1000 3000 --composition 0.1 0.9
    python main.py Al-Si-O.dat -T 2200 --composition 0.1 0.9 --export phases.csv
"""

import argparse
import logging
import sys

logger = logging.getLogger("eqcalc")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run equilibrium calculations through the native solver library"
    )
    parser.add_argument("datafile", help="Thermodynamic datafile (.dat, .cst, .bin)")
    parser.add_argument("--library", help="Solver library (default from settings)")
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument("--basis", nargs="+", help="Formulas of the composition basis")
    parser.add_argument("--composition", nargs="+", type=float,
                        help="Amounts in the composition basis")
    parser.add_argument("-T", "--temperature", type=float, default=None,
                        help="Temperature (K) of an isothermal calculation")
    parser.add_argument("--target-phase", type=int, default=None,
                        help="Phase index for a temperature-target calculation")
    parser.add_argument("--interval", nargs=2, type=float, default=None,
                        metavar=("LOW", "HIGH"), help="Target temperature bracket (K)")
    parser.add_argument("--export", help="Write the phase table to this CSV file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def run(args: argparse.Namespace) -> int:
    from src.core import Calculator, CalculatorConfig, ChemAppError, constituents
    from src.utils.export import export_phase_table_csv

    try:
        config = CalculatorConfig.load(args.config) if args.config else CalculatorConfig()
        with Calculator.from_library(args.library, args.datafile, config) as calc:
            if args.basis:
                calc.set_transform(args.basis)

            print("Components:")
            for idx, name in zip(calc.components(), calc.components().names()):
                print(f"  {idx:3d}  {name}")

            if args.composition is None:
                return 0

            if args.target_phase is not None:
                interval = tuple(args.interval) if args.interval else config.isothermal_interval
                calc.calculate_target_t(args.composition, args.target_phase, interval)
            elif args.temperature is not None:
                calc.calculate_isothermal(args.composition, args.temperature)
            else:
                print("ERROR: give --temperature or --target-phase with --composition")
                return 2

            print(f"\nT = {calc.system_temperature():.2f} K, P = {calc.system_pressure():.4f} bar")

            print("\nStable phases:")
            for idx in calc.phases().stable():
                x = ", ".join(f"{v:.4f}" for v in calc.phase_composition(idx))
                print(f"  {calc.engine.tqgnp(idx):24s} [{x}]")

            print("\nEliminated phases:")
            for name in calc.phases().eliminated().names():
                print(f"  {name}")

            print("\nConstituent molar enthalpies (J/mol):")
            keys = list(calc.phases().stable().constituents())
            for (phase, constituent), hm in zip(
                constituents(calc, keys).names(),
                constituents(calc, keys).molar_enthalpies(),
            ):
                print(f"  {phase:24s} {constituent:24s} {hm:14.2f}")

            if args.export:
                export_phase_table_csv(calc, args.export)
                print(f"\n✓ Phase table written to {args.export}")

    except ChemAppError as e:
        logger.error("%s", e)
        return 1
    return 0


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
