"""Main entry point for the PSPF GRC tracker"""

import logging
import sys

from pspf_grc.config import config
from pspf_grc.grc_manager import GRCManager
from pspf_grc.storage import create_storage
from pspf_grc.version import __version__, __application__, __description__


def main():
    """Load the tracker and print a dashboard summary"""
    logging.basicConfig(level=config.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print(f"{__application__} v{__version__}")
    print(f"{__description__}")
    print("=" * 60)
    print()

    grc = GRCManager(storage=create_storage()).load()

    if grc.unsaved:
        print(f"⚠ Running unsaved: {grc.last_save_error}")

    print("📊 Domain Health")
    print("-" * 60)
    for domain in grc.catalogue.domains():
        health = grc.domain_health(domain.id)
        print(f"  - {domain.title:<24} {health.met:>3}/{health.total:<3} "
              f"{health.status.value.upper()} ({health.text})")

    compliance_status = grc.get_compliance_status()
    print("\n✅ Compliance Status:")
    print(f"  - Total Requirements: {compliance_status['total']}")
    print(f"  - Met or N/A: {compliance_status['compliant']}")
    print(f"  - Outstanding: {compliance_status['non_compliant']}")
    print(f"  - Compliance Rate (Met): {compliance_status['compliance_rate']}%")

    summary = grc.essential_eight_summary()
    print(f"\n🛡️ Essential Eight ({summary.met}/{summary.total} fully met, {summary.percentage}%):")
    for control in summary.controls:
        print(f"  {control.order:02d}. [{control.code}] {control.label} - {control.status.label}")

    stats = grc.dashboard_stats()
    print(f"\n📁 Projects: {stats['total_projects']}  "
          f"Tasks: {stats['completed_tasks']}/{stats['total_tasks']}  "
          f"Risks: {stats['total_risks']}")
    print("\n" + "=" * 60)

    return 0


if __name__ == "__main__":
    sys.exit(main())
