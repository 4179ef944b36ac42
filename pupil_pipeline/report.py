# pupil_pipeline/report.py
import csv
import statistics as stats
from pathlib import Path

from pupil_ops import settings as S
from .batch import accuracy


def ms(x):
    return 1000.0 * float(x)


def _mean(lst):
    return stats.mean(lst) if lst else 0.0


def write_csv(outcomes, path=None):
    """Filename,Type,BIoU for scored items only (skipped items are not rows)."""
    path = Path(S.RESULTS_CSV if path is None else path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["Filename", "Type", "BIoU"])
        for o in outcomes:
            if o.scored:
                w.writerow([o.filename, o.category, f"{o.biou:.6f}"])
    return path


def print_results_table(outcomes):
    print(f"{'Filename':30s}{'Type':17s}{'BIoU':10s}{'Correct':12s}")
    print("-" * 64)
    for o in outcomes:
        if not o.scored:
            continue
        print(f"{o.filename:30s}{o.category + '|' + o.mode:17s}{o.biou:<10.3f}{'YES' if o.correct else 'NO':12s}")


def print_summary(outcomes, total_runtime: float | None = None):
    total, correct, acc = accuracy(outcomes)
    skipped = [o for o in outcomes if not o.scored]

    print("\n========================================")
    print(f"TOTAL FILES  : {total}")
    print(f"CORRECT      : {correct}")
    print(f"SKIPPED      : {len(skipped)}")
    print(f"FINAL ACCURACY = {acc:.4f}")
    print("========================================")

    if total_runtime is not None:
        per_item = [o.seconds for o in outcomes]
        print(f"Total runtime (batch wall): {total_runtime:.4f} sec")
        print(f"Avg per item: {ms(_mean(per_item)):.2f} ms")

    if skipped:
        print("\n--- Skipped (excluded from accuracy) ---")
        for o in skipped:
            print(f"{o.category}/{o.mode}/{o.filename}: {o.reason}")
