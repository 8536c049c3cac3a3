"""HTTP API for experiment protocol generation."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, List, Union

from dotenv import find_dotenv, load_dotenv
from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from shared.catalog import default_catalog
from shared.mlflow_utils import configure_mlflow_once
from shared.models import Protocol

from protocol_service.completion_client import CompletionBackend
from protocol_service.config import GenerationConfig
from protocol_service.errors import ValidationError
from protocol_service.orchestrator import ProtocolGenerator
from protocol_service.prompts import PromptPair, build_prompt
from protocol_service.rendering import render_markdown
from protocol_service.templates import generate_data_template
from protocol_service.validation import validate_descriptor

from api_service.dependencies import get_chat_backend, get_generation_config
from api_service.interpretation import extract_interpretation

# Load .env from repo root (find_dotenv walks up to find it)
load_dotenv(find_dotenv())

DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:3000")

ANALYSIS_SYSTEM_PROMPT = (
    "You are a helpful assistant for analyzing experimental data."
)
INTERPRETATION_SYSTEM_PROMPT = (
    "You are a helpful assistant for analyzing experimental data. "
    "Answer the question first. Then list your observations as bullet points "
    "under a line reading 'Insights:' and practical next steps as bullet points "
    "under a line reading 'Suggestions:'."
)


@dataclass(frozen=True)
class ApiConfig:
    """Configuration for the API service."""

    cors_allow_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> "ApiConfig":
        """Create ApiConfig from environment variables."""
        raw_origins = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
        origins = (
            tuple(o.strip() for o in raw_origins.split(",") if o.strip())
            if raw_origins
            else DEFAULT_CORS_ORIGINS
        )
        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if not isinstance(getattr(logging, log_level, None), int):
            log_level = "INFO"
        return ApiConfig(cors_allow_origins=origins, log_level=log_level)


config = ApiConfig.from_env()

# Override uvicorn's logging setup so LOG_LEVEL applies to our loggers too.
logging.basicConfig(
    level=getattr(logging, config.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,
)
for _name in ("api_service", "protocol_service", "inference", "uvicorn"):
    logging.getLogger(_name).setLevel(config.log_level)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error rendered as ``{"error": message}`` with the given status."""

    def __init__(self, status_code: int, message: str) -> None:
        """Initialize API error."""
        self.status_code = status_code
        self.message = message
        super().__init__(message)


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncIterator[None]:
    """Initialize and teardown app state for the lifespan scope."""
    configure_mlflow_once("protocol-generation")
    logger.info("API service started")
    yield
    logger.info("Shutdown complete")


app = FastAPI(title="Experiment Protocol API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def _handle_api_error(_request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(ValidationError)
async def _handle_validation_error(
    _request: Request, exc: ValidationError
) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": str(exc)})


class AnalyzeRequest(BaseModel):
    """Request payload for the analysis completion boundary."""

    query: str | None = None


class AnalyzeResponse(BaseModel):
    """Plain analysis answer."""

    result: str


class GenerateProtocolRequest(BaseModel):
    """Request payload for raw protocol text generation."""

    model_config = ConfigDict(populate_by_name=True)

    experiment_title: str | None = Field(None, alias="experimentTitle")
    goal: str | None = None
    methods: str | None = None
    analysis_types: Union[List[str], str, None] = Field(None, alias="analysisTypes")
    file_content: str | None = Field(None, alias="fileContent")


class GenerateProtocolResponse(BaseModel):
    """Raw protocol text returned by the model."""

    protocol: str


@app.get("/healthz")
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.post("/api/analyze", response_model=None)
async def analyze(
    payload: AnalyzeRequest,
    detailed: bool = False,
    backend: CompletionBackend = Depends(get_chat_backend),
) -> dict[str, Any]:
    """Answer a free-text analysis question.

    With ``detailed=true`` the answer is split into ``answer``, ``insights``
    and ``suggestions``.
    """
    query = payload.query or ""
    if not query.strip():
        raise ApiError(400, "Missing 'query' in request body")

    system = INTERPRETATION_SYSTEM_PROMPT if detailed else ANALYSIS_SYSTEM_PROMPT
    try:
        result = await backend.complete(PromptPair(system=system, user=query))
    except Exception as exc:
        logger.exception("Analysis request failed")
        raise ApiError(500, "Failed to analyze data") from exc

    if detailed:
        return extract_interpretation(result).model_dump()
    return AnalyzeResponse(result=result).model_dump()


@app.post("/api/generateProtocol", response_model=GenerateProtocolResponse)
async def generate_protocol_text(
    payload: GenerateProtocolRequest,
    backend: CompletionBackend = Depends(get_chat_backend),
) -> GenerateProtocolResponse:
    """Return the model's raw protocol text for an experiment."""
    required = (payload.experiment_title, payload.goal, payload.methods)
    if any(value is None or not value.strip() for value in required):
        raise ApiError(
            400, "Missing required fields: experimentTitle, goal, or methods"
        )

    analysis_types = payload.analysis_types or []
    if isinstance(analysis_types, str):
        analysis_types = [analysis_types]
    descriptor = validate_descriptor(
        {
            "title": payload.experiment_title,
            "purpose": payload.goal,
            "designRationale": payload.methods,
            "analysisTypes": analysis_types,
            "fileContent": payload.file_content,
        }
    )

    try:
        text = await backend.complete(build_prompt(descriptor))
    except Exception as exc:
        logger.exception("Protocol text generation failed")
        raise ApiError(500, "Failed to generate protocol") from exc
    return GenerateProtocolResponse(protocol=text)


@app.post("/v1/protocols/generate")
async def generate_protocol(
    payload: Any = Body(...),
    date: str | None = None,
    backend: CompletionBackend = Depends(get_chat_backend),
    generation_config: GenerationConfig = Depends(get_generation_config),
) -> dict[str, Any]:
    """Run the full pipeline and return a structured protocol.

    Falls back to the deterministic protocol when the model fails; only
    malformed descriptors produce an error response (422).
    """
    generator = ProtocolGenerator(backend, generation_config)
    protocol = await generator.generate_protocol(payload, date=date)
    return protocol.model_dump(mode="json", by_alias=True)


@app.post("/v1/protocols/template")
def create_data_template(protocol: Protocol) -> dict[str, Any]:
    """Derive a data collection template from a protocol."""
    template = generate_data_template(protocol)
    return template.model_dump(mode="json", by_alias=True)


@app.post("/v1/protocols/markdown", response_class=PlainTextResponse)
def export_markdown(protocol: Protocol) -> str:
    """Render a protocol as Markdown for downstream exporters."""
    return render_markdown(protocol)


@app.get("/v1/analysis-methods")
def list_analysis_methods() -> list[dict[str, Any]]:
    """List the analysis methods experimenters can choose from."""
    return [method.model_dump() for method in default_catalog()]
