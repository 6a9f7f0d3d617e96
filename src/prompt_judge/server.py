"""
HTTP API for the prompt judge.

Routes mirror what the browser client calls: a single model output, a
qualitative critique, and a streamed quantitative run over server-sent events.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .config import JudgeConfig, load_config
from .errors import CredentialMissingError
from .llm_client import ChatModelClient, build_model_client
from .prompt_templates import load_sample_prompts
from .qualitative import evaluate_prompts
from .quantitative.events import encode_sse
from .quantitative.runner import SleepFunction
from .quantitative.scheduler import BatchScheduler
from .schema import EvaluationRequest, LLMOutputRequest, QualitativeRequest


logger = logging.getLogger(__name__)

ClientFactory = Callable[[Optional[str], JudgeConfig], ChatModelClient]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def extract_api_key(request: Request) -> str:
    """Read the caller's provider key from `Authorization: Bearer` or `x-api-key`."""
    api_key = ""
    authorization = request.headers.get("authorization", "")
    if authorization:
        api_key = authorization.replace("Bearer ", "", 1).strip()
    if not api_key:
        api_key = request.headers.get("x-api-key", "").strip()
    if not api_key:
        raise CredentialMissingError()
    return api_key


def create_app(
    config: Optional[JudgeConfig] = None,
    client_factory: ClientFactory = build_model_client,
    sleep: SleepFunction = asyncio.sleep,
) -> FastAPI:
    judge_config = config or load_config()

    app = FastAPI(
        title="Prompt Judge",
        description="Run prompts against an LLM and score the results",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Dependencies run before body validation: no key is a 401 even for an incomplete body.
    def build_client(request: Request) -> ChatModelClient:
        return client_factory(extract_api_key(request), judge_config)

    @app.exception_handler(CredentialMissingError)
    async def credential_missing_handler(request: Request, error: CredentialMissingError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error": str(error)})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/sample-prompts")
    async def sample_prompts():
        return {
            name: {
                "description": sample.description,
                "systemPrompt": sample.system_prompt,
                "userPrompt": sample.user_prompt,
            }
            for name, sample in load_sample_prompts().items()
        }

    @app.post("/api/llm-output")
    async def llm_output(body: LLMOutputRequest, client: ChatModelClient = Depends(build_client)):
        try:
            output = await client.complete(
                model=body.model or judge_config.default_model,
                system_prompt=body.system_prompt,
                user_prompt=body.user_prompt,
                temperature=judge_config.generation_temperature,
            )
        except Exception:
            logger.exception("Error getting LLM output")
            return JSONResponse(status_code=500, content={"error": "Failed to get LLM output"})
        return {"output": output}

    @app.post("/api/qualitative-evaluation")
    async def qualitative_evaluation(body: QualitativeRequest, client: ChatModelClient = Depends(build_client)):
        try:
            evaluation = await evaluate_prompts(
                client=client,
                config=judge_config,
                system_prompt=body.system_prompt,
                original_prompt=body.original_prompt,
                llm_output=body.llm_output,
            )
        except Exception:
            logger.exception("Error getting qualitative evaluation")
            return JSONResponse(status_code=500, content={"error": "Failed to get qualitative evaluation"})
        return evaluation.model_dump(mode="json", by_alias=True)

    @app.post("/api/quantitative-evaluation")
    async def quantitative_evaluation(body: EvaluationRequest, client: ChatModelClient = Depends(build_client)):
        if "batch_size" not in body.model_fields_set:
            body = body.model_copy(update={"batch_size": judge_config.default_batch_size})
        scheduler = BatchScheduler(client=client, config=judge_config, sleep=sleep)
        try:
            scheduler.validate_request(body)
        except ValueError as invalid:
            return JSONResponse(status_code=422, content={"error": str(invalid)})

        async def event_stream() -> AsyncIterator[str]:
            async for event in scheduler.stream(body):
                yield encode_sse(event)

        return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)

    return app
