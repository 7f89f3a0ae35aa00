#!/usr/bin/env python3
"""
Roster forecaster command-line shim.

Usage
-----
    python forecaster_roster.py --help
    python forecaster_roster.py --series-csv data/sales.csv --periodicity month
    python forecaster_roster.py --batch-csvs a.csv,b.csv --output-dir outputs

The implementation lives in roster_forecaster_src/main.py.
"""

from roster_forecaster_src.main import cli

if __name__ == "__main__":
    cli()
