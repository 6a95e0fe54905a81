"""
employee_demo.py – One-shot showcase of an SCD Type 2 employee dimension.

Replays the classic walkthrough:
  • 2023-01-15  Jane Doe hired into Sales          (employee 101)
  • 2023-03-01  John Smith hired into Engineering  (employee 102)
  • 2024-05-20  Jane moves to Marketing
  • 2025-09-01  Jane becomes Jane Smith, Senior Marketing

Dates are closed intervals (the old row ends the day before the new one
starts) and every row carries a pointer to the current version.

Run with an optional SQLAlchemy URL (defaults to an in-memory SQLite):

    python src/examples/employee_demo.py "postgresql://user:pw@localhost/dw"
"""

import sys
from datetime import date
from pprint import pprint

from dimversion import AttributesBase, Dimensions, on


# ────────────────────────────────── 1. Tracked attributes ──────────────────────────────
class Employee(AttributesBase):
    employee_name: str
    department: str


# ────────────────────────────────── 2. Event handlers ──────────────────────────────────
@on.create("employee")
def log_hire(version):
    print(f"🆕 {version.attributes['employee_name']} hired (sk={version.surrogate_id})")


@on.update("employee")
def log_change(version):
    print(
        f"🔁 {version.natural_key} now {version.attributes['department']} "
        f"from {version.valid_from} (sk={version.surrogate_id})"
    )


# ────────────────────────────────── 3. Workflow that drives everything ────────────────
def run(db_url: str = "sqlite://") -> dict:
    runtime = Dimensions.init(
        database_url=db_url,
        dimensions={
            "employee": {
                "attributes_model": Employee,
                "closed_end": True,
                "track_current_pointer": True,
            }
        },
    )
    employees = runtime.manager("employee")

    employees.load_initial(
        [
            (101, {"employee_name": "Jane Doe", "department": "Sales"}, date(2023, 1, 15)),
            (102, {"employee_name": "John Smith", "department": "Engineering"}, date(2023, 3, 1)),
        ]
    )
    employees.record_new_version(
        101, {"employee_name": "Jane Doe", "department": "Marketing"}, date(2024, 5, 20)
    )
    employees.record_new_version(
        101,
        {"employee_name": "Jane Smith", "department": "Senior Marketing"},
        date(2025, 9, 1),
    )

    jane_then = employees.version_as_of(101, date(2024, 5, 20))
    return {
        "history": [v.model_dump(mode="json") for v in employees.history(101)],
        "current": [v.model_dump(mode="json") for v in employees.current_versions()],
        "as_of_2024_05_20": jane_then.attributes if jane_then else None,
        "problems": employees.verify(101),
    }


def main():
    result = run(sys.argv[1] if len(sys.argv) > 1 else "sqlite://")
    print("\nHistory of employee 101:")
    pprint(result["history"], width=100)
    print("\nCurrent employees:")
    pprint(result["current"], width=100)
    print(f"\nJane on 2024-05-20: {result['as_of_2024_05_20']}")
    print(f"Invariant problems: {result['problems'] or 'none'}")


if __name__ == "__main__":
    main()
