"""
Arbitration of ambiguous gesture ties by an external service.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from .config import ArbitrationConfig
from .errors import ArbitrationError
from .types import Candidate, ResolvedGesture, ranked

logger = logging.getLogger(__name__)


# Request/Response models
class ArbitrationCandidate(BaseModel):
    name: str
    confidence: float


class ArbitrationContext(BaseModel):
    current_screen: str = "unknown"
    recent_gestures: List[str] = Field(default_factory=list)
    hand_position: Optional[Dict[str, float]] = None


class ArbitrationRequest(BaseModel):
    candidates: List[ArbitrationCandidate]
    context: ArbitrationContext = Field(default_factory=ArbitrationContext)


class ArbitrationResponse(BaseModel):
    gesture: str
    confidence: float
    explanation: Optional[str] = None


@runtime_checkable
class ArbitratorProto(Protocol):
    """External service that picks one gesture out of a near-tie."""

    async def arbitrate(self, request: ArbitrationRequest) -> ArbitrationResponse:
        """Return the service's choice among ``request.candidates``."""
        ...


class ArbitrationGateway:
    """
    Bounded-latency front door to the arbitration service.

    The service is untrusted: a timeout, an error, a malformed answer or a
    gesture that was not among the submitted candidates all fall back to the
    highest raw score. A fallback decision is always available synchronously.
    """

    def __init__(self, cfg: ArbitrationConfig, arbitrator: Optional[ArbitratorProto] = None):
        """
        Initialize the gateway.

        Args:
            cfg: Arbitration configuration
            arbitrator: Service client; without one every tie uses the fallback
        """
        self.cfg = cfg
        self.arbitrator = arbitrator
        self.calls = 0
        self.adjudicated = 0
        self.fallbacks = 0
        self.rejected = 0

    @property
    def active(self) -> bool:
        return self.cfg.enabled and self.arbitrator is not None

    @staticmethod
    def fallback(candidates: Sequence[Candidate]) -> ResolvedGesture:
        """Highest raw score wins; equal scores go to the first by name."""
        if not candidates:
            raise ValueError("fallback needs at least one candidate")
        best = ranked(candidates)[0]
        return ResolvedGesture(name=best.name, confidence=best.confidence)

    async def arbitrate(self, candidates: Sequence[Candidate],
                        context: Optional[ArbitrationContext] = None) -> ResolvedGesture:
        """
        Resolve a near-tie, preferring the service's answer when it is usable.

        Args:
            candidates: The tied candidates
            context: Session context forwarded to the service

        Returns:
            The adjudicated candidate or the deterministic fallback
        """
        if not self.active:
            self.fallbacks += 1
            return self.fallback(candidates)

        self.calls += 1
        request = ArbitrationRequest(
            candidates=[ArbitrationCandidate(name=c.name, confidence=c.confidence) for c in candidates],
            context=context or ArbitrationContext(),
        )

        try:
            response = await asyncio.wait_for(
                self.arbitrator.arbitrate(request),
                timeout=self.cfg.timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Arbitration timed out after {self.cfg.timeout_ms}ms, using fallback")
            self.fallbacks += 1
            return self.fallback(candidates)
        except Exception as e:
            logger.warning(f"Arbitration failed ({type(e).__name__}: {e}), using fallback")
            self.fallbacks += 1
            return self.fallback(candidates)

        chosen = response.gesture.strip().lower()
        for candidate in candidates:
            if candidate.name.lower() == chosen:
                self.adjudicated += 1
                logger.info(f"Arbitration chose {candidate.name} ({response.explanation or 'no explanation'})")
                return ResolvedGesture(
                    name=candidate.name,
                    confidence=response.confidence,
                    adjudicated=True,
                    explanation=response.explanation,
                )

        self.rejected += 1
        self.fallbacks += 1
        logger.info(
            f"Arbitration returned unknown gesture '{response.gesture}' "
            f"(submitted {[c.name for c in candidates]}), using fallback"
        )
        return self.fallback(candidates)


class HttpArbitrator:
    """
    Arbitrator backed by an HTTP endpoint.

    Posts the request as JSON and accepts either the flat response
    ``{gesture, confidence, explanation}`` or the service envelope
    ``{success, gesture: {name, confidence, explanation}}``.
    """

    def __init__(self, url: str, timeout_s: float = 1.0):
        self.url = url
        self.timeout_s = timeout_s

    async def arbitrate(self, request: ArbitrationRequest) -> ArbitrationResponse:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.url,
                json=request.model_dump(),
                timeout=aiohttp.ClientTimeout(total=self.timeout_s)
            ) as response:
                if response.status != 200:
                    raise ArbitrationError(f"Arbitration service returned HTTP {response.status}")
                data = await response.json()
        return parse_response(data)


def parse_response(data: Any) -> ArbitrationResponse:
    """
    Turn a service payload into an ArbitrationResponse.

    Raises:
        ArbitrationError: if the payload reports failure or is malformed
    """
    if not isinstance(data, dict):
        raise ArbitrationError(f"Unexpected arbitration payload: {data!r}")
    if data.get("success") is False:
        raise ArbitrationError(data.get("error", "Arbitration service reported failure"))

    gesture = data.get("gesture")
    if isinstance(gesture, dict):
        data = {
            "gesture": gesture.get("name"),
            "confidence": gesture.get("confidence"),
            "explanation": gesture.get("explanation"),
        }
    try:
        return ArbitrationResponse.model_validate(data)
    except ValidationError as e:
        raise ArbitrationError(f"Malformed arbitration response: {e}") from e
