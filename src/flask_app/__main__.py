from __future__ import annotations

from eve_industry_planner.cli import main


if __name__ == "__main__":
    raise SystemExit(main(["serve"]))
