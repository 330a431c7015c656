"""
API routes for trip generation and recommended trips
"""
import logging
from typing import Callable, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from backend.agents.batch import BatchScheduler, ProgressCallback
from backend.agents.generator import TripGenerator
from backend.memory.trip_store import InMemoryTripStore
from backend.schemas import BatchProgress, BatchState, GenerateTripRequest, RecommendTripsRequest
from backend.utils.config import settings
from backend.utils.exceptions import BatchExhaustionError, BatchInProgressError
from backend.utils.logger import bind_job_context, clear_job_context
from backend.utils.retry import RetryConfig, RetryOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["trips"])

GENERATE_ERROR = "Unable to generate valid trips. Please try again in a few moments."
LOAD_ERROR = "Failed to load trips"


def partial_success_message(succeeded: int, total: int) -> str:
    return f"Generated {succeeded} out of {total} trips successfully."


class RecommendationJob:
    """Latest progress and outcome of one user's recommended-trips batch"""

    def __init__(self, user_id: str, count: int):
        self.user_id = user_id
        self.count = count
        self.progress = BatchProgress.initial(count)
        self.message: Optional[str] = None
        self.running = True

    def update(self, progress: BatchProgress) -> None:
        self.progress = progress

    def snapshot(self) -> dict:
        return {
            "userId": self.user_id,
            "running": self.running,
            "message": self.message,
            "progress": self.progress.model_dump(mode="json"),
        }


class JobRegistry:
    """In-memory registry of recommendation jobs, one per user"""

    def __init__(self):
        self._jobs: Dict[str, RecommendationJob] = {}

    def get(self, user_id: str) -> Optional[RecommendationJob]:
        return self._jobs.get(user_id)

    def start(self, user_id: str, count: int) -> RecommendationJob:
        current = self._jobs.get(user_id)
        if current is not None and current.running:
            raise BatchInProgressError(
                "Recommended trips are already being generated",
                context={"user_id": user_id}
            )
        job = RecommendationJob(user_id, count)
        self._jobs[user_id] = job
        return job


SchedulerFactory = Callable[[ProgressCallback], BatchScheduler]

# Process-wide collaborators, created on first use
_trip_generator: Optional[TripGenerator] = None
trip_store = InMemoryTripStore()
job_registry = JobRegistry()


def get_trip_generator() -> TripGenerator:
    global _trip_generator
    if _trip_generator is None:
        _trip_generator = TripGenerator()
    return _trip_generator


def get_trip_store() -> InMemoryTripStore:
    return trip_store


def get_job_registry() -> JobRegistry:
    return job_registry


def get_retry_orchestrator() -> RetryOrchestrator:
    return RetryOrchestrator(RetryConfig.from_settings())


def get_scheduler_factory(
    generator: TripGenerator = Depends(get_trip_generator)
) -> SchedulerFactory:
    return lambda on_progress: BatchScheduler.from_settings(generator, on_progress=on_progress)


async def run_recommendation_job(
    job: RecommendationJob,
    scheduler: BatchScheduler,
    store: InMemoryTripStore
):
    """
    Generate a user's recommended trips and save the valid ones.

    This function is called in the background after the API returns.
    """
    bind_job_context(user_id=job.user_id, batch_size=job.count)
    try:
        logger.info(f"Generating {job.count} recommended trips for {job.user_id}")
        results = await scheduler.generate_batch(None, job.count)
        trips = [trip for trip in results if trip is not None]
        await store.save_trips(job.user_id, trips)
        job.message = partial_success_message(len(trips), job.count)
        logger.info(job.message)
    except BatchExhaustionError as e:
        logger.error(f"Recommended trips failed for {job.user_id}: {e.message}")
        job.message = GENERATE_ERROR
    except Exception as e:
        logger.error(f"Recommendation job crashed for {job.user_id}: {e}", exc_info=True)
        job.message = GENERATE_ERROR
        if job.progress.state is not BatchState.ERROR:
            job.update(job.progress.model_copy(
                update={"state": BatchState.ERROR, "version": job.progress.version + 1}
            ))
    finally:
        job.running = False
        clear_job_context()


@router.post("/trips/generate")
async def generate_trip(
    request: GenerateTripRequest,
    generator: TripGenerator = Depends(get_trip_generator),
    retry: RetryOrchestrator = Depends(get_retry_orchestrator),
    store: InMemoryTripStore = Depends(get_trip_store)
):
    """
    Generate one trip for a user and save it to their trips.

    Returns:
        docId of the saved trip and the trip document
    """
    generation_request = request.to_generation_request()
    trip = await retry.run(
        lambda: generator.attempt(generation_request),
        label=f"user_trip:{request.user_id}"
    )
    if trip is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=GENERATE_ERROR)

    doc_id = await store.add_user_trip(
        request.user_id,
        trip,
        start_date=request.start_date,
        end_date=request.end_date
    )
    return {"docId": doc_id, "trip": trip.to_document()}


@router.post("/trips/recommended", status_code=status.HTTP_202_ACCEPTED)
async def refresh_recommended_trips(
    request: RecommendTripsRequest,
    background_tasks: BackgroundTasks,
    make_scheduler: SchedulerFactory = Depends(get_scheduler_factory),
    registry: JobRegistry = Depends(get_job_registry),
    store: InMemoryTripStore = Depends(get_trip_store)
):
    """
    Start regenerating a user's recommended trips.

    Returns immediately with the initial progress; poll the progress endpoint
    for updates.
    """
    try:
        job = registry.start(request.user_id, request.count or settings.batch_size)
    except BatchInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    scheduler = make_scheduler(job.update)
    background_tasks.add_task(run_recommendation_job, job, scheduler, store)
    return job.snapshot()


@router.get("/trips/recommended/{user_id}/progress")
async def get_recommendation_progress(
    user_id: str,
    registry: JobRegistry = Depends(get_job_registry)
):
    """Latest progress snapshot of the user's recommendation job"""
    job = registry.get(user_id)
    if job is None:
        raise HTTPException(status_code=404, detail="No recommendation job for this user")
    return job.snapshot()


@router.get("/trips/recommended/{user_id}")
async def list_recommended_trips(
    user_id: str,
    store: InMemoryTripStore = Depends(get_trip_store)
):
    """Saved recommended trips of a user"""
    try:
        trips = await store.list_suggested_trips(user_id)
    except Exception as e:
        logger.error(f"Failed to load trips for {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=LOAD_ERROR)
    return {"userId": user_id, "trips": trips}
