"""
Replay a recorded frame stream through a gesture session.

Usage:
    python -m gesture_pipeline.main FRAMES.jsonl [--config PATH] [--profile NAME]
                                   [--arbitrate] [--high-performance]

Each line of the recording is a JSON object ``{"t": seconds, "landmarks":
[[x, y, z], ...] or null, "scores": {gesture: score}}``.
"""
import asyncio
import json
import logging
import sys
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from .arbitration import ArbitrationGateway, HttpArbitrator
from .config import Cfg, load_config
from .consumer_mock import MockConsumer
from .session import GestureSession
from .stats import SessionStats
from .types import FrameSample, LandmarkFrame

logger = logging.getLogger(__name__)


def build_gateway(cfg: Cfg) -> ArbitrationGateway:
    """Create the arbitration gateway for the configured backend."""
    if not cfg.arbitration.enabled:
        return ArbitrationGateway(cfg.arbitration)

    if cfg.arbitration.backend == "gemini":
        from .llm_arbitrator import GeminiArbitrator
        arbitrator = GeminiArbitrator(model_name=cfg.arbitration.model)
    else:
        arbitrator = HttpArbitrator(cfg.arbitration.url, timeout_s=cfg.arbitration.timeout_ms / 1000.0)
    logger.info(f"Arbitration backend: {cfg.arbitration.backend}")
    return ArbitrationGateway(cfg.arbitration, arbitrator)


def parse_sample(line: str) -> FrameSample:
    """Parse one JSON-lines record into a frame sample."""
    record = json.loads(line)
    t = float(record["t"])
    points = record.get("landmarks")
    landmarks = LandmarkFrame(points=points, timestamp=t) if points else None
    scores = {name: float(score) for name, score in (record.get("scores") or {}).items()}
    return FrameSample(timestamp=t, landmarks=landmarks, scores=scores)


def load_samples(path: str) -> List[FrameSample]:
    """Read every non-blank line of a recording."""
    samples = []
    with open(path, 'r') as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                samples.append(parse_sample(line))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"{path}:{lineno}: invalid frame record ({e})") from e
    return samples


async def replay(samples: Sequence[FrameSample], session: GestureSession) -> Optional[SessionStats]:
    """
    Feed samples one at a time so none are dropped by the frame queue.

    Returns:
        The session statistics, captured before the session state is discarded
    """
    await session.start()
    try:
        for sample in samples:
            session.submit(sample)
            await session.drain()
        return session.stats
    finally:
        await session.stop()


def _option(argv: Sequence[str], name: str) -> Optional[str]:
    if name in argv:
        index = list(argv).index(name)
        if index + 1 < len(argv):
            return argv[index + 1]
    return None


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the replay tool."""
    argv = list(sys.argv[1:] if argv is None else argv)
    load_dotenv()

    paths = [arg for i, arg in enumerate(argv)
             if not arg.startswith("--") and (i == 0 or argv[i - 1] not in ("--config", "--profile"))]
    if not paths:
        print(__doc__)
        return 2

    try:
        cfg = load_config(_option(argv, "--config"), profile=_option(argv, "--profile"))
        cfg.arbitration.enabled = cfg.arbitration.enabled or "--arbitrate" in argv
        cfg.debounce.high_performance = cfg.debounce.high_performance or "--high-performance" in argv
        samples = load_samples(paths[0])
        gateway = build_gateway(cfg)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    consumer = MockConsumer()
    session = GestureSession(cfg, gateway=gateway, consumers=[consumer])
    print(f"▶️  Replaying {len(samples)} frames from {paths[0]}")
    stats = await replay(samples, session)

    print()
    print(f"Events: {len(consumer.events)}  Combos: {len(consumer.combos)}")
    if stats is not None:
        for name, count in stats.frequency.most_common():
            print(f"  {name}: {count}")
    print(f"Arbitration: calls={gateway.calls} adjudicated={gateway.adjudicated} "
          f"fallbacks={gateway.fallbacks} rejected={gateway.rejected}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(main()))
