"""
Generation orchestrator: fan out the three itinerary generation tasks, fan in their results.

Each task (city data, general POIs, personalized itinerary) runs as its own asyncio task:
build prompt -> model call -> ledger -> parse, then puts exactly one ModelCallResult on a
shared queue and counts down a join barrier. Task errors are captured as TaskFailure, never
raised across task boundaries. After the barrier opens the queue is drained; any failure
fails the whole run with IncompleteResult and every partial result is discarded.
"""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.orm import Session

from tripplanner.core.constants import POI_DETAIL_TEMPERATURE
from tripplanner.core.errors import Cancelled, IncompleteResult, MalformedModelOutput
from tripplanner.schemas import (
    POI,
    RESULT_TYPES,
    CityData,
    EventType,
    GeneralPOIs,
    GenerationRequest,
    GeoPoint,
    Itinerary,
    ModelCallResult,
    PersonalizedItinerary,
    TaskFailure,
    TaskKind,
    TaskState,
)
from tripplanner.services import prompt_builder
from tripplanner.services.city_poi_service import reconcile
from tripplanner.services.geo_ranker import rank_by_distance
from tripplanner.services.llm_interaction_service import record_interaction
from tripplanner.services.model_gateway import GenerationConfig, ModelGateway, default_config, generate_text
from tripplanner.services.response_parser import parse

logger = logging.getLogger(__name__)

# on_event(type, payload): progress and partial-data notifications
EventCallback = Callable[[str, Any], Awaitable[None]]

POI_NOT_AVAILABLE = "Detailed data not available."


class JoinBarrier:
    """Count-down synchronizer: wait() returns once count_down() was called `count` times."""

    def __init__(self, count: int) -> None:
        self._remaining = count
        self._done = asyncio.Event()
        if count <= 0:
            self._done.set()

    @property
    def remaining(self) -> int:
        return self._remaining

    def count_down(self) -> None:
        self._remaining -= 1
        if self._remaining <= 0:
            self._done.set()

    async def wait(self) -> None:
        await self._done.wait()


class GenerationOrchestrator:
    def __init__(
        self,
        db: Session,
        gateway: ModelGateway,
        *,
        config: GenerationConfig | None = None,
    ) -> None:
        self.db = db
        self.gateway = gateway
        self.config = config or default_config()

    async def _notify(self, on_event: EventCallback | None, event_type: EventType, payload: Any) -> None:
        if on_event is None:
            return
        await on_event(event_type.value, payload)

    async def _transition(
        self, on_event: EventCallback | None, kind: TaskKind, state: TaskState, **extra: Any
    ) -> None:
        logger.debug("task %s -> %s", kind.value, state.value)
        await self._notify(on_event, EventType.PROGRESS, {"task": kind.value, "state": state.value, **extra})

    async def _report_partial(self, on_event: EventCallback | None, result: ModelCallResult) -> None:
        if on_event is None:
            return
        if result.kind == TaskKind.CITY_DATA:
            await self._notify(on_event, EventType.CITY_DATA, result.payload.model_dump(mode="json", by_alias=True))
        elif result.kind == TaskKind.GENERAL_POIS:
            for poi in result.payload.points_of_interest:
                await self._notify(on_event, EventType.GENERAL_POI, poi.model_dump(mode="json", by_alias=True))
        elif result.kind == TaskKind.PERSONALIZED_ITINERARY:
            for poi in result.payload.points_of_interest:
                await self._notify(on_event, EventType.PERSONALIZED_POI, poi.model_dump(mode="json", by_alias=True))

    async def _call_model(self, prompt: str, user_id: str, config: GenerationConfig) -> tuple[str, int]:
        """One model call plus its ledger row. Returns (raw text, interaction id)."""
        started = time.monotonic()
        raw = await generate_text(self.gateway, prompt, config)
        latency_ms = int((time.monotonic() - started) * 1000)
        row = record_interaction(
            self.db,
            user_id=user_id,
            prompt=prompt,
            response_text=raw,
            model_used=self.gateway.model_name,
            latency_ms=latency_ms,
        )
        return raw, row.id

    async def _run_task(
        self,
        kind: TaskKind,
        prompt: str,
        user_id: str,
        results: asyncio.Queue,
        barrier: JoinBarrier,
        on_event: EventCallback | None,
    ) -> None:
        result: ModelCallResult | None = None
        try:
            await self._transition(on_event, kind, TaskState.CALLING)
            raw, interaction_id = await self._call_model(prompt, user_id, self.config)
            await self._transition(on_event, kind, TaskState.PARSING)
            payload = parse(kind, raw)
            result = RESULT_TYPES[kind](payload=payload, interaction_id=interaction_id)
            await self._transition(on_event, kind, TaskState.SUCCEEDED)
            await self._report_partial(on_event, result)
        except Exception as e:
            logger.warning("Generation task %s failed: %s", kind.value, e)
            result = TaskFailure(kind=kind, error=e)
            try:
                await self._transition(on_event, kind, TaskState.FAILED)
            except Exception:
                logger.debug("Could not report failure of %s", kind.value, exc_info=True)
        finally:
            if result is None:
                result = TaskFailure(kind=kind, error=Cancelled(f"{kind.value} cancelled"))
            results.put_nowait(result)
            barrier.count_down()

    async def run(self, request: GenerationRequest, *, on_event: EventCallback | None = None) -> Itinerary:
        """
        Generate a fully-populated itinerary or raise IncompleteResult.
        On success the city and POIs are reconciled and the personalized POIs ranked by
        distance from request.origin (unchanged order without one).
        """
        city_name = request.city_name.strip()
        prompts = {
            TaskKind.CITY_DATA: prompt_builder.city_data_prompt(city_name),
            TaskKind.GENERAL_POIS: prompt_builder.general_pois_prompt(city_name),
            TaskKind.PERSONALIZED_ITINERARY: prompt_builder.personalized_itinerary_prompt(
                city_name, request.preferences
            ),
        }
        for kind in prompts:
            await self._transition(on_event, kind, TaskState.PENDING)

        results: asyncio.Queue = asyncio.Queue()
        barrier = JoinBarrier(len(prompts))
        tasks = [
            asyncio.create_task(
                self._run_task(kind, prompt, request.user_id, results, barrier, on_event),
                name=f"generate-{kind.value}",
            )
            for kind, prompt in prompts.items()
        ]
        try:
            await barrier.wait()
        except asyncio.CancelledError:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        collected: dict[TaskKind, ModelCallResult] = {}
        failures: list[TaskFailure] = []
        while not results.empty():
            item = results.get_nowait()
            if isinstance(item, TaskFailure):
                failures.append(item)
            else:
                collected[item.kind] = item

        if failures:
            for f in failures:
                logger.error("Task %s failed: %s", f.kind.value, f.error)
            raise IncompleteResult(sorted(f.kind.value for f in failures))

        return self._assemble(request, collected)

    def _assemble(self, request: GenerationRequest, collected: dict[TaskKind, ModelCallResult]) -> Itinerary:
        city: CityData = collected[TaskKind.CITY_DATA].payload
        general: GeneralPOIs = collected[TaskKind.GENERAL_POIS].payload
        personalized_result = collected[TaskKind.PERSONALIZED_ITINERARY]
        personalized: PersonalizedItinerary = personalized_result.payload

        general_pois = [
            p.model_copy(update={"llm_interaction_id": collected[TaskKind.GENERAL_POIS].interaction_id})
            for p in general.points_of_interest
        ]
        personal_pois = [
            p.model_copy(update={"llm_interaction_id": personalized_result.interaction_id})
            for p in personalized.points_of_interest
        ]
        city_id = reconcile(self.db, city, general_pois + personal_pois)
        ranked = rank_by_distance(
            self.db, personal_pois, request.origin, city_id=city_id, user_id=request.user_id
        )
        logger.info(
            "Generated itinerary %r for %s: %s personalized, %s general POIs",
            personalized.itinerary_name, city.city_name, len(ranked), len(general_pois),
        )
        return Itinerary(
            name=personalized.itinerary_name,
            description=personalized.overall_description,
            points_of_interest=ranked,
            city_id=city_id,
            city=city,
            general_points_of_interest=general_pois,
        )

    async def generate_poi_detail(
        self,
        poi_name: str,
        city_name: str,
        user_id: str,
        *,
        origin: GeoPoint | None = None,
        city_id: int | None = None,
    ) -> POI:
        """
        Details for one named POI (temperature 0.7). An unusable or "not found" reply gives a
        placeholder POI; ModelCallFailed and PersistenceFailed propagate.
        """
        prompt = prompt_builder.poi_detail_prompt(poi_name, city_name)
        config = GenerationConfig(temperature=POI_DETAIL_TEMPERATURE, max_tokens=self.config.max_tokens)
        raw, interaction_id = await self._call_model(prompt, user_id, config)
        try:
            poi = parse(TaskKind.POI_DETAIL, raw)
        except MalformedModelOutput as e:
            logger.warning("POI detail for %r unusable: %s", poi_name, e)
            poi = None
        if poi is None or not poi.name.strip():
            poi = POI(name=poi_name, description=POI_NOT_AVAILABLE)
        poi = poi.model_copy(update={"llm_interaction_id": interaction_id})
        if origin is not None:
            ranked = rank_by_distance(self.db, [poi], origin, city_id=city_id, user_id=user_id)
            poi = ranked[0]
        return poi
