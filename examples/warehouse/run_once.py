"""
Run one delivery tick for the warehouse demo project.
"""

from __future__ import annotations

from pathlib import Path

from dropship.bootstrap import initialize


def main() -> None:
    project_dir = Path(__file__).parent
    application = initialize(project_dir)

    for record in application.source.fetch_pending()[:3]:
        print(f"{record.record_id}: '{application.encoder.encode(record)}'")

    try:
        summary = application.coordinator.run_cycle()
    finally:
        application.session.disconnect()
    print(summary)


if __name__ == "__main__":
    main()
