import datetime
import logging
from typing import Callable

from fastapi import Body, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from catalog import MUSCLE_GROUPS, available_exercises
from config import APP_VERSION, YamlConfig
from exceptions import InvalidPlanError, PersistenceError, SetLockedError
from models import ActiveSession, PlannedWorkout, utcnow
from planner_service import PlannerService
from repositories import Backend, open_backend
from stats_service import StatisticsService
from workout_store import WorkoutStore

logger = logging.getLogger(__name__)

DEFAULT_OWNER = "local"


class GymAPI:
    """Provides REST endpoints for planning, running and reviewing workouts."""

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str = "settings.yaml",
        *,
        backend: Backend | None = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.settings = YamlConfig(yaml_path).settings()
        if db_path is not None:
            self.settings.db_path = db_path
        self.backend = backend or open_backend(self.settings)
        self.clock = clock
        self.statistics = StatisticsService(clock)
        self.sessions: dict[str, tuple[str, ActiveSession]] = {}
        self.app = FastAPI(
            title="Locked In API",
            description="REST API for workout planning, logging and progress",
            version=APP_VERSION,
        )
        self._setup_error_handlers()
        self._setup_routes()

    def store_for(self, owner_id: str) -> WorkoutStore:
        """Return an empty store for ``owner_id``; routes load what they read."""
        planner = PlannerService(
            self.backend.planned_workouts,
            self.backend.completed_workouts,
            owner_id,
            self.clock,
        )
        return WorkoutStore(self.backend, owner_id, planner)

    def evict_stale_sessions(self) -> None:
        """Abandon sessions started longer than ``session_ttl_hours`` ago."""
        cutoff = self.clock() - datetime.timedelta(hours=self.settings.session_ttl_hours)
        for session_id, (owner_id, session) in list(self.sessions.items()):
            if session.started_at < cutoff:
                session.status = "abandoned"
                del self.sessions[session_id]
                logger.info("Dropped stale session %s of %s", session_id, owner_id)

    def _session(self, owner_id: str, session_id: str) -> ActiveSession:
        self.evict_stale_sessions()
        entry = self.sessions.get(session_id)
        if entry is None or entry[0] != owner_id:
            raise HTTPException(status_code=404, detail="session not found")
        return entry[1]

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(PersistenceError)
        async def persistence_error(request: Request, exc: PersistenceError):
            return JSONResponse(status_code=503, content={"detail": str(exc)})

        @self.app.exception_handler(SetLockedError)
        async def set_locked(request: Request, exc: SetLockedError):
            return JSONResponse(status_code=409, content={"detail": str(exc)})

        @self.app.exception_handler(InvalidPlanError)
        async def invalid_plan(request: Request, exc: InvalidPlanError):
            return JSONResponse(status_code=400, content={"detail": str(exc)})

    def _setup_routes(self) -> None:

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and backend connectivity.",
        )
        def health(x_user_id: str = Header(DEFAULT_OWNER)):
            """Return API and backend connection status."""
            self.backend.planned_workouts.list(x_user_id)
            return {"status": "ok", "backend": self.backend.name}

        @self.app.get("/catalog")
        def list_catalog():
            return MUSCLE_GROUPS

        @self.app.get("/catalog/{group}")
        def list_catalog_group(
            group: str,
            plan_id: str | None = None,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            plan = None
            try:
                if plan_id:
                    store = self.store_for(x_user_id)
                    store.load_planned()
                    plan = store.find_plan(plan_id)
                return available_exercises(group, plan)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/planned_workouts")
        def list_planned_workouts(x_user_id: str = Header(DEFAULT_OWNER)):
            store = self.store_for(x_user_id)
            store.load_planned()
            return [p.model_dump(mode="json") for p in store.planned_workouts]

        @self.app.post("/planned_workouts")
        def create_planned_workout(
            plan: PlannedWorkout = Body(...),
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            saved = self.store_for(x_user_id).save_plan(plan)
            return {"id": saved.id}

        @self.app.delete("/planned_workouts/{plan_id}")
        def delete_planned_workout(plan_id: str, x_user_id: str = Header(DEFAULT_OWNER)):
            self.store_for(x_user_id).delete_plan(plan_id)
            return {"status": "deleted"}

        @self.app.post("/planned_workouts/{plan_id}/duplicate")
        def duplicate_planned_workout(
            plan_id: str,
            name: str | None = None,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            store = self.store_for(x_user_id)
            store.load_planned()
            try:
                plan = store.find_plan(plan_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            copy = store.planner.duplicate_plan(plan, name)
            return {"id": copy.id}

        @self.app.post("/sessions")
        def start_session(plan_id: str, x_user_id: str = Header(DEFAULT_OWNER)):
            self.evict_stale_sessions()
            store = self.store_for(x_user_id)
            store.load_planned()
            try:
                plan = store.find_plan(plan_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            session = store.planner.start(plan)
            self.sessions[session.id] = (x_user_id, session)
            return session.model_dump(mode="json")

        @self.app.get("/sessions/{session_id}")
        def get_session(session_id: str, x_user_id: str = Header(DEFAULT_OWNER)):
            return self._session(x_user_id, session_id).model_dump(mode="json")

        @self.app.put("/sessions/{session_id}/exercises/{exercise_index}/sets/{set_index}")
        def update_session_set(
            session_id: str,
            exercise_index: int,
            set_index: int,
            weight: float,
            reps: int,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            session = self._session(x_user_id, session_id)
            planner = self.store_for(x_user_id).planner
            try:
                updated = planner.record_set(session, exercise_index, set_index, weight, reps)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return updated.model_dump()

        @self.app.post(
            "/sessions/{session_id}/exercises/{exercise_index}/sets/{set_index}/complete"
        )
        def complete_session_set(
            session_id: str,
            exercise_index: int,
            set_index: int,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            session = self._session(x_user_id, session_id)
            planner = self.store_for(x_user_id).planner
            try:
                updated = planner.mark_set_complete(session, exercise_index, set_index)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return updated.model_dump()

        @self.app.post("/sessions/{session_id}/finish")
        def finish_session(
            session_id: str,
            duration_minutes: float | None = None,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            session = self._session(x_user_id, session_id)
            try:
                workout = self.store_for(x_user_id).finish_session(session, duration_minutes)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.sessions.pop(session_id, None)
            logger.info("Session %s saved as workout %s", session_id, workout.id)
            return workout.model_dump(mode="json")

        @self.app.post("/sessions/{session_id}/abandon")
        def abandon_session(session_id: str, x_user_id: str = Header(DEFAULT_OWNER)):
            session = self._session(x_user_id, session_id)
            try:
                PlannerService.abandon(session)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.sessions.pop(session_id, None)
            return {"status": "abandoned"}

        @self.app.get("/completed_workouts")
        def list_completed_workouts(x_user_id: str = Header(DEFAULT_OWNER)):
            store = self.store_for(x_user_id)
            store.load_completed()
            return [w.model_dump(mode="json") for w in store.completed_workouts]

        @self.app.get("/completed_workouts/{workout_id}/summary")
        def completed_workout_summary(workout_id: str, x_user_id: str = Header(DEFAULT_OWNER)):
            store = self.store_for(x_user_id)
            store.load_completed()
            for workout in store.completed_workouts:
                if workout.id == workout_id:
                    return self.statistics.workout_summary(workout)
            raise HTTPException(status_code=404, detail="workout not found")

        @self.app.delete("/completed_workouts/{workout_id}")
        def delete_completed_workout(workout_id: str, x_user_id: str = Header(DEFAULT_OWNER)):
            self.store_for(x_user_id).delete_completed(workout_id)
            return {"status": "deleted"}

        @self.app.get("/weight_logs")
        def list_weight_logs(x_user_id: str = Header(DEFAULT_OWNER)):
            store = self.store_for(x_user_id)
            store.load_weight_logs()
            return [e.model_dump(mode="json") for e in store.weight_logs]

        @self.app.post("/weight_logs")
        def log_weight(
            weight: float,
            notes: str | None = None,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            try:
                entry = self.store_for(x_user_id).log_weight(weight, notes)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": entry.id}

        @self.app.delete("/weight_logs/{entry_id}")
        def delete_weight_log(entry_id: str, x_user_id: str = Header(DEFAULT_OWNER)):
            self.store_for(x_user_id).delete_weight_log(entry_id)
            return {"status": "deleted"}

        @self.app.get("/stats/summary")
        def stats_summary(x_user_id: str = Header(DEFAULT_OWNER)):
            store = self.store_for(x_user_id)
            store.load_completed()
            return self.statistics.summary_stats(store.completed_workouts)

        @self.app.get("/stats/exercise_series")
        def stats_exercise_series(
            window: str | None = None,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            store = self.store_for(x_user_id)
            store.load_completed()
            try:
                series = self.statistics.exercise_series(
                    store.completed_workouts, window or self.settings.default_window
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return [
                {
                    **s.model_dump(mode="json"),
                    "max_weight_delta": self.statistics.progress_delta(s.sessions, "max_weight"),
                }
                for s in series
            ]

        @self.app.get("/stats/weight_series")
        def stats_weight_series(
            window: str | None = None,
            x_user_id: str = Header(DEFAULT_OWNER),
        ):
            store = self.store_for(x_user_id)
            store.load_weight_logs()
            try:
                points = self.statistics.weight_series(
                    store.weight_logs, window or self.settings.default_window
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {
                "points": [p.model_dump() for p in points],
                "delta": self.statistics.progress_delta(points, "weight"),
                "unit": self.settings.weight_unit,
            }

        @self.app.get("/stats/weight_change")
        def stats_weight_change(x_user_id: str = Header(DEFAULT_OWNER)):
            store = self.store_for(x_user_id)
            store.load_weight_logs()
            return {
                **self.statistics.weight_change(store.weight_logs),
                "unit": self.settings.weight_unit,
            }


api = GymAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
