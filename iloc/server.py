# iloc/server.py
"""
FastAPI server for the iloc CLI.
"""

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from iloc.utils.log import get_logger
from iloc.storage.dao import FingerprintDAO, site_db_path
from iloc.analysis.config import LocalizationConfig, PdrConfig
from iloc.analysis.engine import LocalizationEngine
from iloc.analysis.pdr import PdrEngine
from iloc.analysis.strategies import Algorithm
from iloc.analysis.types import Point2D
from iloc.utils.validate import (
    AnchorRequest,
    Fingerprint,
    HeadingRequest,
    PdrState,
    SaveFingerprintRequest,
    ScanRequest,
)

logger = get_logger(__name__)


def _pdr_state(pdr: PdrEngine) -> PdrState:
    pos = pdr.position
    return PdrState(
        running=pdr.running,
        x=pos.x,
        y=pos.y,
        heading=pdr.heading,
        step_length=pdr.step_length,
        trail=[p.as_tuple() for p in pdr.trail],
        correction_steps_remaining=pdr.correction_steps_remaining,
    )


def create_app(
    site: str,
    db_path: Optional[str] = None,
    cfg: Optional[LocalizationConfig] = None,
) -> FastAPI:
    """
    Build a FastAPI instance bound to a specific site.

    The fingerprint store and the dead-reckoning engine live for the
    lifetime of the app; the store is closed on shutdown.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.dao.close()
        logger.debug("Closed fingerprint store %s", app.state.db_path)

    app = FastAPI(lifespan=lifespan)
    app.state.site = site
    app.state.db_path = db_path or site_db_path(site)
    app.state.dao = FingerprintDAO(app.state.db_path)
    app.state.cfg = cfg or LocalizationConfig.default()
    app.state.algorithm = Algorithm.EUCLIDEAN
    app.state.pdr = PdrEngine(PdrConfig.default())
    app.state.pdr.start()

    def _engine(request: Request) -> LocalizationEngine:
        state = request.app.state
        engine = LocalizationEngine(state.dao, state.cfg)
        if state.algorithm is not Algorithm.EUCLIDEAN:
            engine.set_algorithm(state.algorithm.value)
        return engine

    @app.get("/api/status", response_class=JSONResponse)
    async def status() -> JSONResponse:
        return JSONResponse(status_code=200, content={"status": "ok"})

    @app.get("/api/site", response_class=JSONResponse)
    async def get_site(request: Request) -> JSONResponse:
        return JSONResponse(
            status_code=200,
            content={"site": request.app.state.site, "algorithm": request.app.state.algorithm.value},
        )

    # ------------------------------------------------------------------
    # fingerprints

    @app.get("/api/fingerprints", response_model=list[Fingerprint])
    async def list_fingerprints(request: Request):
        return _engine(request).fingerprints()

    @app.post("/api/fingerprints", response_class=JSONResponse)
    async def save_fingerprint(request: Request, body: SaveFingerprintRequest) -> JSONResponse:
        """
        Save a fingerprint. Blank labels and empty scans are accepted but
        not stored, mirroring the engine.
        """
        engine = _engine(request)
        before = engine.dao.count()
        engine.save_fingerprint(body.location_name, body.readings, body.x_meters, body.y_meters)
        saved = engine.dao.count() > before
        return JSONResponse(status_code=201 if saved else 200, content={"saved": saved})

    @app.delete("/api/fingerprints", response_class=JSONResponse)
    async def clear_fingerprints(request: Request) -> JSONResponse:
        return JSONResponse(status_code=200, content={"deleted": _engine(request).clear()})

    @app.delete("/api/fingerprints/{fingerprint_id}", response_class=JSONResponse)
    async def delete_fingerprint(request: Request, fingerprint_id: int) -> JSONResponse:
        if not _engine(request).delete_fingerprint(fingerprint_id):
            return JSONResponse(
                status_code=404,
                content={"detail": f"fingerprint {fingerprint_id} not found"},
            )
        return JSONResponse(status_code=200, content={"deleted": 1})

    # ------------------------------------------------------------------
    # positioning

    @app.post("/api/algorithm", response_class=JSONResponse)
    async def set_algorithm(request: Request, name: str) -> JSONResponse:
        request.app.state.algorithm = Algorithm.parse(name)
        return JSONResponse(status_code=200, content={"algorithm": request.app.state.algorithm.value})

    @app.post("/api/predict", response_class=JSONResponse)
    async def predict(request: Request, body: ScanRequest) -> JSONResponse:
        """
        Label-only prediction. A match on a calibrated fingerprint also
        anchors the dead-reckoning track.
        """
        engine = _engine(request)
        prediction = engine.predict(body.readings)
        anchor = engine.anchor_for(prediction)
        if anchor is not None:
            request.app.state.pdr.apply_anchor(anchor)
        return JSONResponse(
            status_code=200,
            content={
                "prediction": asdict(prediction) if prediction else None,
                "anchor": anchor.as_tuple() if anchor else None,
            },
        )

    @app.post("/api/position", response_class=JSONResponse)
    async def position(request: Request, body: ScanRequest) -> JSONResponse:
        engine = _engine(request)
        if body.algorithm is not None:
            engine.set_algorithm(body.algorithm)
        pos = engine.update_position(body.readings)
        return JSONResponse(
            status_code=200,
            content={
                "algorithm": engine.algorithm.value,
                "position": asdict(pos) if pos else None,
            },
        )

    # ------------------------------------------------------------------
    # dead reckoning

    @app.get("/api/pdr", response_model=PdrState)
    async def get_pdr(request: Request):
        return _pdr_state(request.app.state.pdr)

    @app.post("/api/pdr/heading", response_model=PdrState)
    async def pdr_heading(request: Request, body: HeadingRequest):
        pdr: PdrEngine = request.app.state.pdr
        if body.rotation_vector is not None:
            pdr.on_rotation_vector(body.rotation_vector)
        elif body.azimuth is not None:
            pdr.on_heading(body.azimuth)
        else:
            return JSONResponse(
                status_code=422,
                content={"detail": "azimuth or rotation_vector required"},
            )
        return _pdr_state(pdr)

    @app.post("/api/pdr/step", response_model=PdrState)
    async def pdr_step(request: Request):
        pdr: PdrEngine = request.app.state.pdr
        pdr.on_step()
        return _pdr_state(pdr)

    @app.post("/api/pdr/anchor", response_model=PdrState)
    async def pdr_anchor(request: Request, body: AnchorRequest):
        pdr: PdrEngine = request.app.state.pdr
        pdr.apply_anchor(Point2D(body.x, body.y), body.steps)
        return _pdr_state(pdr)

    @app.post("/api/pdr/step-length", response_model=PdrState)
    async def pdr_step_length(request: Request, length_m: float):
        pdr: PdrEngine = request.app.state.pdr
        pdr.set_step_length(length_m)
        return _pdr_state(pdr)

    @app.post("/api/pdr/reset", response_model=PdrState)
    async def pdr_reset(request: Request):
        pdr: PdrEngine = request.app.state.pdr
        pdr.reset()
        return _pdr_state(pdr)

    return app
