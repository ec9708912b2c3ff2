"""
Command line interface for the Campaign Intelligence Vault.

Loads API keys from environment variables (via `.env`), restores the saved
campaign state, and enters an interactive loop for running research probes
and managing the threat matrix.
"""

import logging
import os
import shlex
from pathlib import Path

from dotenv import load_dotenv

from agents import InferenceGateway, ProbeOrchestrator, ProbeTopic
from agents.probe_prompts import PRIORITY_GROUPS, TOPIC_LABELS
from campaign_state_manager import (
    CampaignStore,
    active_snapshot,
    demo_profile,
    find_snapshot,
    load_profile,
    missing_profile_fields,
)
from domain.persistence import JsonFileStore, PersistenceBridge
from domain.rivals import opponent_from_form

# --- Logging configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  topics                 list probe topics
  probe <TOPIC>          run a research probe
  vault                  list research snapshots (newest first)
  show [id]              print a snapshot (active one by default)
  select <id>            make a snapshot active
  extract [--auto]       extract rivals from the active snapshot
  pending                list rivals awaiting review
  register <name>        confirm a pending rival
  opponents              list tracked opponents
  add                    register an opponent manually
  remove <name>          delete an opponent
  demo                   load the demo campaign profile
  log                    print the activity log
  quit                   exit"""


def build_orchestrator() -> ProbeOrchestrator:
    store_dir = Path(os.getenv("CAMPAIGN_STORE_DIR", ".campaign_vault"))
    log_dir = os.getenv("CAMPAIGN_LOG_DIR")
    bridge = PersistenceBridge(JsonFileStore(store_dir))
    store = CampaignStore.restored(bridge)
    gateway = InferenceGateway()
    if not gateway.is_configured:
        logger.warning("OPENAI_API_KEY is not configured; probes will be refused until it is set.")
    return ProbeOrchestrator(store, gateway, log_dir=Path(log_dir) if log_dir else None)


def _print_vault(orchestrator: ProbeOrchestrator) -> None:
    state = orchestrator.store.state
    if not state.vault:
        print("Vault is empty. Run a probe first.")
        return
    for snapshot in state.vault:
        marker = "*" if snapshot.id == state.active_snapshot_id else " "
        status = f"ERROR {snapshot.error}" if snapshot.error else f"signal {snapshot.signal_strength}%"
        print(f"{marker} {snapshot.id}  {snapshot.topic:<12} {snapshot.created_at}  {status}")


def _print_snapshot(orchestrator: ProbeOrchestrator, snapshot_id: str = "") -> None:
    text = orchestrator.export_snapshot_text(snapshot_id or None)
    if text is None:
        print("No such snapshot.")
        return
    print(text)
    state = orchestrator.store.state
    snapshot = find_snapshot(state, snapshot_id) if snapshot_id else active_snapshot(state)
    if snapshot and snapshot.parsed_summary:
        print(f"\nSIGNAL: {snapshot.parsed_summary.signal}")
        print(f"THREAT: {snapshot.parsed_summary.threat}")
        print(f"ACTION: {snapshot.parsed_summary.action}")


def _print_opponents(opponents) -> None:
    if not opponents:
        print("No rivals identified.")
        return
    for opponent in opponents:
        role = "Incumbent" if opponent.incumbent else "Challenger"
        print(f"- {opponent.name} ({opponent.party or '?'}, {role})")
        if opponent.strengths:
            print(f"    strengths: {', '.join(opponent.strengths)}")
        if opponent.weaknesses:
            print(f"    weaknesses: {', '.join(opponent.weaknesses)}")


def _add_opponent(orchestrator: ProbeOrchestrator) -> None:
    name = input("  name: ").strip()
    party = input("  party: ").strip()
    incumbent = input("  incumbent? [y/N]: ").strip().lower() in {"y", "yes"}
    strengths = input("  strengths (comma separated): ")
    weaknesses = input("  weaknesses (comma separated): ")
    try:
        opponent = opponent_from_form(name, party, incumbent, strengths, weaknesses)
    except ValueError as exc:
        print(exc)
        return
    orchestrator.register_opponent(opponent)


def handle_command(orchestrator: ProbeOrchestrator, line: str) -> None:
    parts = shlex.split(line)
    command, args = parts[0].lower(), parts[1:]
    state = orchestrator.store.state

    if command == "help":
        print(HELP_TEXT)
    elif command == "topics":
        for group, topics in PRIORITY_GROUPS.items():
            print(f"{group}: " + ", ".join(f"{t.value} ({TOPIC_LABELS[t]})" for t in topics))
    elif command == "probe":
        if not args:
            print("Usage: probe <TOPIC>")
            return
        missing = missing_profile_fields(state.profile)
        if missing:
            print(f"Profile incomplete ({', '.join(missing)}); results will be generic. Try 'demo'.")
        try:
            topic = ProbeTopic.parse(args[0])
        except ValueError as exc:
            print(exc)
            return
        snapshot = orchestrator.run_probe_sync(topic)
        if snapshot is not None:
            _print_snapshot(orchestrator)
    elif command == "vault":
        _print_vault(orchestrator)
    elif command == "show":
        _print_snapshot(orchestrator, args[0] if args else "")
    elif command == "select":
        if not args or not orchestrator.select_snapshot(args[0]):
            print("No such snapshot.")
    elif command == "extract":
        result = orchestrator.extract_rivals_sync(auto_merge="--auto" in args)
        _print_opponents(result.merged or result.candidates)
    elif command == "pending":
        _print_opponents(state.pending_rivals)
    elif command == "register":
        if not args or not orchestrator.register_pending_rival(" ".join(args)):
            print("Rival not registered.")
    elif command == "opponents":
        _print_opponents(state.profile.opponents)
    elif command == "add":
        _add_opponent(orchestrator)
    elif command == "remove":
        if not args or not orchestrator.remove_opponent(" ".join(args)):
            print("No such opponent.")
    elif command == "demo":
        orchestrator.store.dispatch(load_profile, demo_profile())
        orchestrator.activity_log.post("intel_ops", "Demo campaign profile loaded.")
    elif command == "log":
        print(orchestrator.activity_log.transcript() or "No activity yet.")
    else:
        print(f"Unknown command '{command}'. Type 'help' for the list.")
        return

    latest = orchestrator.activity_log.latest()
    if latest is not None and command in {"probe", "extract", "register", "add", "demo"}:
        print(f"[{latest.channel}] {latest.message}")


def main() -> None:
    """Run the command line loop for the intelligence vault."""
    logger.info("Loading environment variables from .env file...")
    load_dotenv()

    try:
        orchestrator = build_orchestrator()
    except Exception as exc:
        logger.exception("Failed to initialize the intelligence vault: %s", exc)
        return

    print(
        "\nWelcome to the Campaign Intelligence Vault!\n"
        "Type 'help' for commands.  Type 'quit' to exit.\n"
    )

    while True:
        try:
            line = input("> ").strip()
        except EOFError:
            logger.info("EOF received; exiting.")
            break

        if not line:
            continue
        if line.lower() in {"quit", "exit", "q"}:
            logger.info("User requested exit.")
            break

        try:
            handle_command(orchestrator, line)
        except Exception as exc:
            logger.exception("Error while processing command: %s", exc)
            print(f"An error occurred: {exc}\n")

    logger.info("Session ended. Goodbye!")
    print("Goodbye!")


if __name__ == "__main__":
    main()
