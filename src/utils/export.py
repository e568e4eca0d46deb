"""
Data Export Utilities.

Write the current equilibrium of a Calculator to files for external analysis.
"""

import csv
import logging
import os
from datetime import datetime

logger = logging.getLogger(__name__)


def export_phase_table_csv(calculator, filepath: str) -> str:
    """
    Export one row per phase of the current equilibrium to CSV.

    Columns:
    - Index
    - Phase
    - Status
    - Model
    - Stable (1/0)
    - Activity
    - Amount (mol)
    - one fraction column per basis formula

    Args:
        calculator: Equilibrated Calculator
        filepath: Output file path

    Returns:
        The path written

    Raises:
        CalculatorStateError: If the calculator holds no equilibrium
        OSError: If the file cannot be written
    """
    # Fails early when no equilibrium exists
    calculator.system_temperature()

    threshold = calculator.config.stability_threshold
    basis = calculator.transform.formula_names
    engine = calculator.engine

    os.makedirs(os.path.dirname(filepath) if os.path.dirname(filepath) else '.', exist_ok=True)

    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)

        writer.writerow(
            ['Index', 'Phase', 'Status', 'Model', 'Stable', 'Activity', 'Amount (mol)']
            + [f"x({name})" for name in basis]
        )

        rows = 0
        for indexp in calculator.phases():
            activity = engine.tqgetr("AC", indexp, 0)
            amount = engine.tqgetr("A", indexp, 0)
            if amount > 0.0:
                fractions = [f"{x:.6f}" for x in calculator.phase_composition(indexp)]
            else:
                fractions = [""] * len(basis)
            writer.writerow([
                indexp,
                engine.tqgnp(indexp),
                engine.tqgsp(indexp).strip(),
                engine.tqmodl(indexp).strip(),
                1 if activity > threshold else 0,
                f"{activity:.6f}",
                f"{amount:.6e}",
            ] + fractions)
            rows += 1

    logger.info("Exported %d phases to %s", rows, filepath)
    return filepath


def export_summary_txt(calculator, filepath: str) -> str:
    """
    Export an equilibrium summary as a text report.

    Args:
        calculator: Equilibrated Calculator
        filepath: Output file path

    Returns:
        The path written
    """
    lines = []
    lines.append("=" * 50)
    lines.append("Equilibrium Summary Report")
    lines.append("=" * 50)
    lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"Datafile: {calculator.file}")
    lines.append("")

    lines.append("SYSTEM")
    lines.append("-" * 30)
    lines.append(f"Temperature: {calculator.system_temperature():.2f} K")
    lines.append(f"Pressure: {calculator.system_pressure():.4f} bar")
    lines.append(f"Basis: {', '.join(calculator.transform.formula_names)}")
    lines.append(f"Isothermal calculations: {calculator.number_isothermal}")
    lines.append(f"Target calculations: {calculator.number_target_t}")
    lines.append("")

    lines.append("STABLE PHASES")
    lines.append("-" * 30)
    for indexp in calculator.phases().stable():
        x = ", ".join(f"{v:.4f}" for v in calculator.phase_composition(indexp))
        lines.append(f"{calculator.engine.tqgnp(indexp)}: [{x}]")
    lines.append("")

    lines.append("=" * 50)

    with open(filepath, 'w', encoding='utf-8') as f:
        f.write("\n".join(lines))

    logger.info("Exported summary to %s", filepath)
    return filepath
