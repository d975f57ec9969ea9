#!/usr/bin/env python3
"""
Audit member balances and monthly rollups.

Checks available + pending + withdrawn == total_earned for every member and
compares each member's rollups with a ledger scan. With --rebuild, rollups
that disagree are recomputed from the ledger.
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from refnet.config.database import create_engine, create_session_maker
from refnet.config.logging import setup_logging
from refnet.config.settings import settings
from refnet.repositories.member_repository import MemberRepository
from refnet.services.network_service import ReferralNetworkService
from refnet.utils.exceptions import RollupMismatch
from refnet.utils.retry import retry_transient

setup_logging(settings)

PAGE_SIZE = 500


async def audit_ledger(rebuild: bool = False) -> int:
    """Run the audit, returning the number of problems found."""
    logger.info("Starting ledger audit...")
    engine = create_engine(settings)
    service = ReferralNetworkService(create_session_maker(engine))
    problems = 0

    try:
        report = await service.audit_balances()
        logger.info(f"Balances checked: {report.checked}")
        for member_id in report.violations:
            problems += 1
            logger.error(f"Balance invariant broken for member {member_id}")

        after_id = None
        while True:
            async with service.session_maker() as session:
                page = await MemberRepository(session).list_page(
                    after_id=after_id, limit=PAGE_SIZE
                )
            if not page:
                break
            after_id = page[-1].id

            for member in page:
                try:
                    await service.verify_rollups(member.id)
                except RollupMismatch as e:
                    problems += 1
                    logger.warning(f"Rollup mismatch for {member.id}: {e.message}")
                    if rebuild:
                        await retry_transient(
                            lambda: service.rebuild_rollups(member.id),
                            operation_name=f"rebuild_rollups({member.id})",
                        )
                        logger.info(f"Rollups rebuilt for {member.id}")
    finally:
        await engine.dispose()

    if problems:
        logger.warning(f"Audit finished with {problems} problem(s)")
    else:
        logger.success("Audit finished, ledger is consistent")
    return problems


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--rebuild", action="store_true", help="Rebuild mismatched rollups"
    )
    args = parser.parse_args()
    sys.exit(1 if asyncio.run(audit_ledger(args.rebuild)) else 0)
