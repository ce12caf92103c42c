"""
FastAPI server for the doWhat discovery service.

Exposes:
  - GET /health - Health check
  - POST /run-graph - Execute a graph (recommendations, session_ranking, reliability_recompute)
  - GET /reliability/{user_id} - Persisted reliability summary for a profile
  - GET /docs - Interactive API documentation (Swagger UI)
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Request, status, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Any, Annotated, Callable, Dict, Optional
import time

from src.config import config, validate_config
from src.utils.logging_config import logger, setup_langsmith, setup_logging

from src.graphs.recommendations import create_recommendations_graph
from src.graphs.reliability import create_reliability_graph
from src.graphs.session_ranking import create_session_ranking_graph

from src.tools.reliability_index import summarize_reliability
from src.tools.supabase_tools import fetch_reliability_snapshot, get_client
from src.utils.errors import SupabaseQueryError, SupabaseUnavailableError

setup_logging(debug=config.DEBUG)
setup_langsmith()

# Fail fast: the service is useless without Supabase credentials.
try:
    for setting, state in validate_config().items():
        logger.info("config %s: %s", setting, state)
except ValueError as e:
    logger.error("Configuration error: %s", e)
    exit(1)

GRAPH_FACTORIES: Dict[str, Callable[[], Any]] = {
    "recommendations": create_recommendations_graph,
    "session_ranking": create_session_ranking_graph,
    "reliability_recompute": create_reliability_graph,
}

# Graphs the scheduler triggers; they always need a matching X-Cron-Secret.
CRON_GRAPHS = {"reliability_recompute"}

app = FastAPI(
    title="doWhat Discovery Service",
    description="Session ranking, recommendations and reliability index for doWhat",
    version="1.0.0",
)

# Web app (Next.js) and Expo dev server.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8081"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================
class GraphRequest(BaseModel):
    """
    Body of POST /run-graph.

    Attributes:
        graph (str): One of 'recommendations', 'session_ranking',
                    'reliability_recompute'.
        input (dict): Initial graph state; keys depend on the graph.
    """
    graph: str
    input: Dict[str, Any]


class GraphResponse(BaseModel):
    """
    Result of POST /run-graph.

    Attributes:
        success (bool): False when a node recorded an error in state
        graph (str): Graph that ran
        data (dict): Final graph state
        error (Optional[str]): Node error, e.g. "sessions: timeout"
    """
    success: bool
    graph: str
    data: Dict[str, Any] = {}
    error: Optional[str] = None


def require_service_token(
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Reject callers without the shared bearer token (when one is configured)."""
    if config.SERVICE_TOKEN and authorization != f"Bearer {config.SERVICE_TOKEN}":
        logger.warning("Rejected request with missing or wrong service token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Report handler latency in the X-Process-Time header."""
    started = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - started)
    return response


# ============================================================
# ROUTES
# ============================================================
@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, str]:
    return {"status": "healthy"}


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """Service name and where to find the docs."""
    return {
        "service": "doWhat Discovery Service",
        "version": "1.0.0",
        "docs": f"http://localhost:{config.PORT}/docs",
        "health": f"http://localhost:{config.PORT}/health",
    }


@app.post(
    "/run-graph",
    response_model=GraphResponse,
    tags=["Graphs"],
    dependencies=[Depends(require_service_token)],
)
def run_graph(
    request: GraphRequest,
    x_cron_secret: Annotated[Optional[str], Header()] = None,
) -> GraphResponse:
    """
    Run one of the discovery graphs on the given input.

    Supported graphs:
      - recommendations: personalised session feed for ``user_id``
      - session_ranking: distance/skill/urgency ordering of caller-supplied sessions
      - reliability_recompute: rebuild reliability metrics and index rows

    Node failures come back as ``success=False`` with the error message;
    only unexpected exceptions become HTTP 500.
    """
    factory = GRAPH_FACTORIES.get(request.graph)
    if factory is None:
        logger.error("Unknown graph requested: %s", request.graph)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown graph: {request.graph}. "
                   f"Valid options: {', '.join(GRAPH_FACTORIES)}",
        )

    if request.graph in CRON_GRAPHS and (not config.CRON_SECRET or x_cron_secret != config.CRON_SECRET):
        logger.warning("Rejected %s: bad or missing cron secret", request.graph)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    logger.info("Running graph=%s input_keys=%s", request.graph, sorted(request.input))
    started = time.time()
    try:
        result = factory().invoke(request.input)
    except Exception as e:
        logger.exception("Graph %s crashed after %.2fs", request.graph, time.time() - started)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Graph execution failed: {str(e)}",
        )

    error = result.get("error")
    logger.info(
        "Finished graph=%s success=%s time=%.2fs",
        request.graph,
        not error,
        time.time() - started,
    )
    return GraphResponse(success=not error, graph=request.graph, data=result, error=error)


@app.get(
    "/reliability/{user_id}",
    tags=["Reliability"],
    dependencies=[Depends(require_service_token)],
)
def get_reliability(user_id: str) -> Dict[str, Any]:
    """
    Persisted reliability score and 30/90-day attendance counts for a profile.

    Users without rows, or a failed read, get the zeroed empty state.
    """
    try:
        index_row, metrics_row = fetch_reliability_snapshot(get_client(), user_id)
    except (SupabaseQueryError, SupabaseUnavailableError) as exc:
        logger.warning("Failed to load reliability for user=%s: %s", user_id, exc)
        index_row, metrics_row = None, None
    return summarize_reliability(index_row, metrics_row)


# ============================================================
# ERROR HANDLERS
# ============================================================
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error("HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, "status_code": exc.status_code},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log the exception; the client only sees a generic message."""
    logger.exception("Unhandled exception on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error", "status_code": 500},
    )


@app.on_event("startup")
async def startup_event():
    logger.info("doWhat Discovery Service starting")
    logger.info("Supabase URL: %s", config.SUPABASE_URL)
    logger.info("Debug mode: %s, graph timeout: %ss", config.DEBUG, config.GRAPH_TIMEOUT)
    logger.info(
        "Recommendation limit: default=%s range=[%s, %s]",
        config.RECOMMENDATION_DEFAULT_LIMIT,
        config.RECOMMENDATION_MIN_LIMIT,
        config.RECOMMENDATION_MAX_LIMIT,
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("doWhat Discovery Service shutting down")


if __name__ == "__main__":
    # python -m uvicorn src.server:app --reload
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="debug" if config.DEBUG else "info",
    )
