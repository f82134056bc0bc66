from __future__ import annotations

from typing import Callable, Protocol

from cryptodash.analysis.parsing import parse_recommendation
from cryptodash.analysis.prompt import build_prompt, payload_from_detail
from cryptodash.core.events import StateBus
from cryptodash.core.logging import get_logger, safe_json
from cryptodash.core.state import DashboardState
from cryptodash.core.utils import now_ms
from cryptodash.data.models import CoinDetail, Recommendation
from cryptodash.providers.errors import ProviderError


class DetailSource(Protocol):
    async def fetch_coin_details(self, coin_id: str) -> CoinDetail: ...


class Completion(Protocol):
    async def complete(self, prompt: str) -> str: ...


class RecommendationService:
    def __init__(
        self,
        details: DetailSource,
        completion: Completion,
        state: DashboardState,
        bus: StateBus | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.details = details
        self.completion = completion
        self.state = state
        self.bus = bus
        self._clock = clock
        self._log = get_logger(__name__)

    async def request(self, coin_id: str) -> Recommendation | None:
        seq = self.state.begin_recommendation(coin_id)
        try:
            detail = await self.details.fetch_coin_details(coin_id)
            prompt = build_prompt(payload_from_detail(detail))
            reply = await self.completion.complete(prompt)
            if not reply or not reply.strip():
                raise ProviderError("No response from completion endpoint")
        except ProviderError as exc:
            self.state.fail_recommendation(coin_id, seq, str(exc))
            return None
        except Exception as exc:
            self._log.error("recommendation failed %s", safe_json({"coin_id": coin_id, "error": str(exc)}))
            self.state.fail_recommendation(coin_id, seq, str(exc) or "Failed to get AI recommendation")
            return None

        parsed = parse_recommendation(reply)
        recommendation = Recommendation(
            coin_id=coin_id,
            decision=parsed.decision,
            confidence=parsed.confidence,
            explanation=parsed.explanation,
            timestamp=self._clock(),
        )
        if self.state.put_recommendation(recommendation, seq) and self.bus is not None:
            await self.bus.publish(category="RECOMMENDATION", message="recommendation updated", key=coin_id, payload=recommendation.to_dict())
        return recommendation
