"""
Decision Core - replay runner.

Feeds parsed game-state JSON files through the full decision pipeline
(GTO solver + external reasoners + strategy engine + risk guard) and
prints the resulting decisions.

Usage:
    decision-core --state data/states/btn_open_ako.json
    decision-core --state data/states/ --session replay-1 --offline
"""
import argparse
import asyncio
import json
import signal
import uuid
from pathlib import Path

from decision_core.config import ConfigStore, Settings
from decision_core.domain.agent.coordinator import AgentCoordinator
from decision_core.domain.agent.reasoner import build_reasoners
from decision_core.domain.agent.weights import AgentWeights
from decision_core.domain.game.models import GameState
from decision_core.domain.monitoring.alerts import HealthMonitor
from decision_core.domain.monitoring.recorder import DecisionRecorder
from decision_core.domain.risk.guard import RiskGuard
from decision_core.domain.solver.gto_solver import GTOSolver
from decision_core.domain.strategy.engine import StrategyEngine
from decision_core.domain.strategy.models import StrategyDecision
from decision_core.exceptions import DecisionCoreError, GameStateError
from decision_core.logging_config import get_logger, log_collector, setup_logging

logger = get_logger(__name__)

# Global state for graceful shutdown
_shutdown_requested = False


def _handle_sigint(signum, frame):
    """Handle SIGINT (Ctrl+C): finish the current decision, then stop."""
    global _shutdown_requested
    if _shutdown_requested:
        print("\n⚠️ Force quit - exiting immediately")
        raise SystemExit(1)
    _shutdown_requested = True
    print("\n⚠️ Shutdown requested - stopping after the current decision...")


def load_states(path: str | Path) -> list[GameState]:
    """
    Load game states from a JSON file or a directory of JSON files.

    A file may hold one state object or a list of them.

    Raises:
        GameStateError: a file is unreadable or a state is malformed
    """
    path = Path(path)
    files = sorted(path.glob("*.json")) if path.is_dir() else [path]
    states = []
    for file in files:
        try:
            with open(file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise GameStateError("unreadable_state", f"Cannot read {file}: {e}") from e
        payloads = data if isinstance(data, list) else [data]
        states.extend(GameState.from_dict(p) for p in payloads)
    return states


def build_engine(
    settings: Settings,
    session_id: str,
    offline: bool = False,
) -> StrategyEngine:
    """Wire solver, reasoners, risk guard and recorder for one session."""
    config_store = ConfigStore(path=settings.decision_config_path or None)
    config = config_store.current()
    monitor = HealthMonitor()

    coordinator = None
    if not offline:
        settings.configure_openai_client()
        reasoners = build_reasoners(settings, config.agent_names)
        weights = AgentWeights.load(settings.weights_path, names=config.agent_names)
        coordinator = AgentCoordinator(reasoners, weights=weights, monitor=monitor, session_id=session_id)

    return StrategyEngine(
        solver=GTOSolver(),
        coordinator=coordinator,
        risk_guard=RiskGuard(limits=config.risk, monitor=monitor, session_id=session_id),
        config_store=config_store,
        recorder=DecisionRecorder(settings.traces_dir),
        session_id=session_id,
        weights_path=None if offline else settings.weights_path,
    )


async def run_replay(engine: StrategyEngine, states: list[GameState]) -> list[StrategyDecision]:
    """Decide every state in order."""
    decisions = []
    for state in states:
        if _shutdown_requested:
            break
        decisions.append(await engine.decide(state))
    return decisions


def export_logs(output_dir: str | Path, session_id: str) -> Path:
    """Write the session's collected structured log entries to JSON."""
    path = Path(output_dir) / f"logs_{session_id}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(log_collector.to_dict(session_id), f, indent=2, default=str)
    return path


def print_decisions(decisions: list[StrategyDecision]) -> None:
    """Print decisions in a readable table."""
    print("\n" + "=" * 70)
    print("🃏 DECISIONS")
    print("=" * 70)
    for d in decisions:
        amount = f" {d.amount:g}" if d.amount is not None else ""
        line = f"{d.decision_id:<24} {d.action.value}{amount:<10} alpha={d.alpha:.2f} tv={d.divergence:.2f}"
        if d.fallback:
            line += f"  [fallback: {d.fallback_reason}]"
        print(line)
        print(f"{'':<24} seed={d.seed} total={d.timings.get('total', 0):.1f}ms")

    fallbacks = sum(1 for d in decisions if d.fallback)
    print("=" * 70)
    print(f"Decisions: {len(decisions)}  Fallbacks: {fallbacks}")
    print("=" * 70)


def main():
    """Main entry point."""
    signal.signal(signal.SIGINT, _handle_sigint)

    parser = argparse.ArgumentParser(
        description="Decision Core - replay game states through the decision pipeline"
    )
    parser.add_argument(
        "-s", "--state",
        required=True,
        help="Game-state JSON file, or a directory of them",
    )
    parser.add_argument(
        "--session",
        default=None,
        help="Session identifier (default: random)",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="GTO-only: do not query external reasoners",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines on the console",
    )
    parser.add_argument(
        "--save-logs",
        action="store_true",
        help="Also export the session's structured log entries next to the traces",
    )

    args = parser.parse_args()

    try:
        settings = Settings()
    except Exception as e:
        print(f"Error loading settings: {e}")
        print("Check your .env file.")
        return 1

    log_level = "DEBUG" if args.verbose else settings.log_level
    setup_logging(log_level, collect_logs=args.save_logs, json_console=args.json_logs)

    session_id = args.session or uuid.uuid4().hex[:12]
    try:
        states = load_states(args.state)
        engine = build_engine(settings, session_id, offline=args.offline)
    except DecisionCoreError as e:
        print(f"❌ {e.code}: {e.message}")
        return 1

    print(f"\n🎲 Replaying {len(states)} state(s) in session {session_id}"
          f"{' (offline, GTO-only)' if args.offline else ''}...\n")

    try:
        decisions = asyncio.run(run_replay(engine, states))
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted")
        return 1
    finally:
        trace_file = engine.flush()
        if trace_file:
            print(f"\n📊 Decision traces saved to: {trace_file}")
        if args.save_logs:
            print(f"📝 Logs saved to: {export_logs(settings.traces_dir, session_id)}")

    print_decisions(decisions)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
