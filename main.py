import argparse
import asyncio
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

from anonymous_voting_system import AnonymousVotingSystem, MemberIdentity
from config.config import SystemConfig, load_config, save_config
from dao.errors import DAOError
from utils.utils import create_performance_report, save_results, setup_logging
from zk.exceptions import ZKError
from zk.poseidon import SNARK_SCALAR_FIELD

logger = logging.getLogger(__name__)

DEMO_PROPOSALS = [
    (1, "Fund protocol audit", "Allocate treasury funds for an external audit", "ipfs://audit"),
    (2, "Raise quorum to 20%", "Increase the quorum for treasury proposals", "ipfs://quorum"),
]


def _rejection(scenario: str, error: Exception) -> Dict[str, Any]:
    code = getattr(error, 'code', type(error).__name__)
    logger.info(f"Expected rejection ({scenario}): {code}")
    return {'scenario': scenario, 'code': code, 'message': str(error)}


async def run_demo(config: SystemConfig, num_members: int = 5) -> bool:
    print("=" * 80)
    print("ZKVOX - ANONYMOUS DAO VOTING DEMONSTRATION")
    print("   Poseidon Merkle membership + nullifiers + soulbound badges")
    print("=" * 80)

    system = AnonymousVotingSystem(config)
    rejections: List[Dict[str, Any]] = []

    print(f"\nRegistering {num_members} members (tree depth {system.registry.depth})...")
    members = [system.register_member() for _ in range(num_members)]
    print(f"   Current root: {system.dao.root()}")

    for proposal_id, title, description, metadata_ref in DEMO_PROPOSALS:
        system.create_proposal(proposal_id, title, description, metadata_ref)
        print(f"   Proposal #{proposal_id}: {title}")

    print("\nGenerating vote proofs...")
    ballots = [(member, 1, 1 if i % 3 else 0) for i, member in enumerate(members)]
    ballots += [(member, 2, i % 2) for i, member in enumerate(members[:3])]
    try:
        artifacts = await system.prove_votes(ballots)
    except ZKError as e:
        print(f"\n Proof generation failed: {e}")
        return False

    print("\nSubmitting votes (every other vote through the relayer)...")
    for i, artifact in enumerate(artifacts):
        receipt = system.cast_vote(artifact, beneficiary=f"member_{i % num_members:03d}",
                                   relayed=i % 2 == 1)
        print(f"   Proposal #{receipt.proposal_id}: badge #{receipt.badge_token_id} "
              f"to {receipt.beneficiary}{' (relayed)' if receipt.submitter == system.relayer.address else ''}")

    print("\nReplaying attack scenarios...")
    try:
        system.cast_vote(artifacts[0], beneficiary="attacker")
    except DAOError as e:
        rejections.append(_rejection("replayed proof", e))

    calldata = artifacts[0].calldata()
    try:
        system.dao.submit_vote(
            calldata.a, calldata.b, calldata.c, SNARK_SCALAR_FIELD + 1,
            calldata.proposal_id, calldata.root, calldata.vote, beneficiary="attacker")
    except DAOError as e:
        rejections.append(_rejection("aliased nullifier", e))

    try:
        system.prove_vote(members[-1], 2, 10)
    except ZKError as e:
        rejections.append(_rejection("non-binary vote", e))

    outsider = MemberIdentity.generate()
    try:
        system.vote(members[0], 3, 1, beneficiary="member_000")
    except DAOError as e:
        rejections.append(_rejection("unknown proposal", e))
    try:
        system.prove_vote(outsider, 1, 1)
    except LookupError as e:
        rejections.append(_rejection("unregistered member", e))

    for scenario in rejections:
        print(f"   {scenario['scenario']}: rejected ({scenario['code']})")

    print("\n" + "=" * 40)
    print("PROPOSAL TALLIES")
    print("=" * 40)
    proposals = system.proposals()
    for proposal in proposals:
        print(f"  #{proposal.id} {proposal.title}: "
              f"{proposal.yes_count} yes / {proposal.no_count} no")

    metrics = system.get_system_metrics()
    print(f"\n Badges minted: {metrics['badges_minted']}, "
          f"relayed votes: {metrics['relayed_votes']}")

    results = {
        'system_metrics': metrics,
        'proposals': [asdict(p) for p in proposals],
        'rejections': rejections,
        'performance': system.performance_monitor.get_summary(),
    }

    report_path = config.results_dir / "demo_report.json"
    save_results(results, report_path)

    perf_path = config.results_dir / "performance_report.txt"
    perf_path.write_text(create_performance_report(system.performance_monitor))

    print(f"\n Full results saved to: {report_path}")
    print(f" Performance report: {perf_path}")
    return True


def main():
    parser = argparse.ArgumentParser(
        description='Anonymous DAO voting with zero-knowledge membership proofs')
    parser.add_argument('--config', type=str, default='config.yaml',
                        help='Config file path')
    parser.add_argument('--members', type=int, default=5,
                        help='Number of members registered in the demo')
    parser.add_argument('--mode', choices=['demo', 'init-config'], default='demo')

    args = parser.parse_args()
    config_path = Path(args.config)

    if args.mode == 'init-config':
        save_config(SystemConfig(), config_path)
        print(f"Default configuration written to {config_path}")
        sys.exit(0)

    config = load_config(config_path)
    config.ensure_directories()
    setup_logging(config.log_level, log_dir=config.log_dir)

    if args.members < 1:
        parser.error("--members must be positive")

    success = asyncio.run(run_demo(config, args.members))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
