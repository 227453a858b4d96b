"""
Steplang API Server — HTTP Surface for Visualizers
==================================================
FastAPI application exposing the lexer, the parser, the direct evaluator
and stepwise sessions to AST viewers, token tables and step debuggers.

Launch:
    python -m steplang.server           # Direct
    uvicorn steplang.server:app         # Via uvicorn

Endpoints:
    POST /api/tokenize                  → Token table for a source text
    POST /api/parse                     → Pretty-printed AST + parse errors
    POST /api/run                       → Run to completion, final value + output
    POST /api/step/prepare              → Open a stepwise session
    POST /api/step/next                 → Advance a session one step
    POST /api/step/previous             → Move a session back one step
    GET  /api/step/state                → Current state of a session
    GET  /api/health                    → Liveness and open session count
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .callstack import StackOverflowError
from .config import RuntimeConfig
from .evaluator import Evaluator
from .lexer import tokenize
from .output import OutputLog
from .parser import ParseResult, parse_program
from .stepwise import StepwiseError, StepwiseEvaluator

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
#  App Setup
# ─────────────────────────────────────────────────────────────

app = FastAPI(title="Steplang API", version=__version__)

# Oldest sessions are dropped beyond this many
MAX_SESSIONS = 64

_sessions: dict[str, StepwiseEvaluator] = {}


# ─────────────────────────────────────────────────────────────
#  Request / Response Models
# ─────────────────────────────────────────────────────────────

class SourceRequest(BaseModel):
    source: str


class RunRequest(BaseModel):
    source: str
    max_call_depth: Optional[int] = None
    max_loop_iterations: Optional[int] = None


class PrepareRequest(RunRequest):
    max_steps: Optional[int] = None


class SessionRequest(BaseModel):
    session_id: str


# ─────────────────────────────────────────────────────────────
#  Helpers
# ─────────────────────────────────────────────────────────────

def _config(req: RunRequest) -> RuntimeConfig:
    return RuntimeConfig.from_env().with_overrides(
        max_call_depth=req.max_call_depth,
        max_loop_iterations=req.max_loop_iterations,
        max_steps=getattr(req, "max_steps", None),
    )


def _error_list(result: ParseResult) -> list[dict]:
    return [
        {"message": e.message, "line": e.line, "column": e.column}
        for e in result.errors
    ]


def _parse_or_400(source: str) -> ParseResult:
    """Parse `source`; raise 400 listing every syntax error if it fails."""
    result = parse_program(source)
    if not result.ok:
        raise HTTPException(status_code=400, detail={"errors": _error_list(result)})
    return result


def _get_session(session_id: str) -> StepwiseEvaluator:
    stepper = _sessions.get(session_id)
    if stepper is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return stepper


def _state_response(session_id: str, state, moved: bool = True) -> JSONResponse:
    return JSONResponse({
        "session_id": session_id,
        "moved": moved,
        "state": state.model_dump(mode="json"),
    })


# ─────────────────────────────────────────────────────────────
#  Routes — Front End
# ─────────────────────────────────────────────────────────────

@app.post("/api/tokenize")
async def api_tokenize(req: SourceRequest):
    """Return the token table for a source text."""
    tokens = [
        {"type": t.type.name, "literal": t.literal, "line": t.line, "column": t.column}
        for t in tokenize(req.source)
    ]
    return JSONResponse({"tokens": tokens})


@app.post("/api/parse")
async def api_parse(req: SourceRequest):
    """Return the canonical source of the AST plus any parse errors."""
    result = parse_program(req.source)
    program = result.program
    return JSONResponse({
        "ok": result.ok,
        "program": str(program),
        "statements": [
            {
                "node_type": s.node_type,
                "source": str(s),
                "line": s.position().line,
                "column": s.position().column,
            }
            for s in program.statements
        ],
        "errors": _error_list(result),
    })


@app.post("/api/run")
def api_run(req: RunRequest):
    """Run a program to completion with the direct evaluator."""
    program = _parse_or_400(req.source).program
    output = OutputLog()
    evaluator = Evaluator(config=_config(req), output=output)
    try:
        result = evaluator.evaluate_program(program)
    except StackOverflowError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return JSONResponse({
        "result": result.inspect(),
        "result_type": result.type.value,
        "output": [entry.model_dump(mode="json") for entry in output.entries],
    })


# ─────────────────────────────────────────────────────────────
#  Routes — Stepwise Sessions
# ─────────────────────────────────────────────────────────────

@app.post("/api/step/prepare")
def api_step_prepare(req: PrepareRequest):
    """Open a stepwise session positioned before the first step."""
    program = _parse_or_400(req.source).program
    stepper = StepwiseEvaluator(config=_config(req))
    state = stepper.prepare(program)

    session_id = uuid.uuid4().hex
    _sessions[session_id] = stepper
    while len(_sessions) > MAX_SESSIONS:
        dropped = next(iter(_sessions))
        del _sessions[dropped]
        logger.debug("dropped stepwise session %s", dropped)
    return _state_response(session_id, state)


@app.post("/api/step/next")
def api_step_next(req: SessionRequest):
    """Advance one step, executing more of the program when needed."""
    stepper = _get_session(req.session_id)
    try:
        state = stepper.next_step()
    except (StackOverflowError, StepwiseError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _state_response(req.session_id, state)


@app.post("/api/step/previous")
def api_step_previous(req: SessionRequest):
    """Move back one step; `moved` is false at the first step."""
    stepper = _get_session(req.session_id)
    state = stepper.previous_step()
    if state is None:
        return _state_response(req.session_id, stepper.get_state(), moved=False)
    return _state_response(req.session_id, state)


@app.get("/api/step/state")
def api_step_state(session_id: str):
    """Return the state at the session's current step."""
    stepper = _get_session(session_id)
    return _state_response(session_id, stepper.get_state(), moved=False)


@app.get("/api/health")
async def api_health():
    """Liveness check."""
    return JSONResponse({"status": "ok", "version": __version__, "sessions": len(_sessions)})


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Launch the API server."""
    import uvicorn

    print(f"\n◬ ─── Steplang API ───")
    print(f"  http://{host}:{port}")
    print(f"  Press Ctrl+C to stop\n")

    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    run_server()
