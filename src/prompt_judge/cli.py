import argparse
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd
from tqdm import tqdm

from .config import JudgeConfig, load_config
from .llm_client import build_model_client
from .prompt_templates import load_prompt_text, load_sample_prompts
from .qualitative import evaluate_prompts
from .quantitative.events import FinalEvent, ProgressEvent
from .quantitative.scheduler import BatchScheduler
from .schema import EvaluationRequest, EvaluationResults


API_KEY_ENV_VAR = "OPENAI_API_KEY"


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to YAML/JSON config file.")
    parser.add_argument("--api-key", default=None, help=f"Provider API key. Defaults to ${API_KEY_ENV_VAR}.")


def _add_prompt_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--sample", default=None, help="Name of a bundled sample prompt pair.")
    parser.add_argument("--system-prompt", default=None, help="System prompt text.")
    parser.add_argument("--system-prompt-file", default=None, help="Read the system prompt from this file.")
    parser.add_argument("--user-prompt", default=None, help="User prompt text.")
    parser.add_argument("--user-prompt-file", default=None, help="Read the user prompt from this file.")
    parser.add_argument("--model", default=None, help="Model id. Defaults to the configured default_model.")


def _load_cli_config(args: argparse.Namespace) -> JudgeConfig:
    return load_config(Path(args.config) if args.config else None)


def _resolve_api_key(args: argparse.Namespace) -> Optional[str]:
    return args.api_key or os.environ.get(API_KEY_ENV_VAR)


def _resolve_prompts(args: argparse.Namespace) -> Tuple[str, str]:
    system_prompt = ""
    user_prompt = ""
    if args.sample:
        samples = load_sample_prompts()
        if args.sample not in samples:
            raise ValueError(f"Unknown sample '{args.sample}'. Available: {', '.join(sorted(samples))}")
        system_prompt = samples[args.sample].system_prompt
        user_prompt = samples[args.sample].user_prompt

    if args.system_prompt_file:
        system_prompt = load_prompt_text(Path(args.system_prompt_file))
    elif args.system_prompt is not None:
        system_prompt = args.system_prompt

    if args.user_prompt_file:
        user_prompt = load_prompt_text(Path(args.user_prompt_file))
    elif args.user_prompt is not None:
        user_prompt = args.user_prompt

    if not user_prompt.strip():
        raise ValueError("A user prompt is required (--user-prompt, --user-prompt-file, or --sample).")
    return system_prompt, user_prompt


def summarize_statistics(results: EvaluationResults) -> pd.DataFrame:
    rows = []
    for metric_name, summary in results.statistics.items():
        rows.append(
            {
                "metric": metric_name,
                "mean": summary.mean,
                "median": summary.median,
                "mode": ", ".join(f"{value:g}" for value in summary.mode),
                "std": summary.standard_deviation,
                "min": summary.min,
                "max": summary.max,
                "range": summary.range,
            }
        )
    return pd.DataFrame(rows)


async def _run_quantitative(scheduler: BatchScheduler, request: EvaluationRequest) -> Optional[EvaluationResults]:
    final_results: Optional[EvaluationResults] = None
    progress_bar = tqdm(total=request.iteration_count, desc="iterations", leave=True)
    try:
        async for event in scheduler.stream(request):
            if isinstance(event, ProgressEvent):
                progress_bar.update(1)
                progress_bar.set_postfix(batch=f"{event.batch_index}/{event.total_batches}")
                if event.error:
                    progress_bar.write(f"iteration placeholder: {event.error}")
            elif isinstance(event, FinalEvent):
                final_results = event.results
    finally:
        progress_bar.close()
    return final_results


def _cmd_output(args: argparse.Namespace) -> None:
    config = _load_cli_config(args)
    system_prompt, user_prompt = _resolve_prompts(args)
    client = build_model_client(_resolve_api_key(args), config)
    output = asyncio.run(
        client.complete(
            model=args.model or config.default_model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=config.generation_temperature,
        )
    )
    print(output)


async def _output_then_critique(args: argparse.Namespace, config: JudgeConfig):
    system_prompt, user_prompt = _resolve_prompts(args)
    client = build_model_client(_resolve_api_key(args), config)
    llm_output = await client.complete(
        model=args.model or config.default_model,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        temperature=config.generation_temperature,
    )
    evaluation = await evaluate_prompts(
        client=client,
        config=config,
        system_prompt=system_prompt,
        original_prompt=user_prompt,
        llm_output=llm_output,
    )
    return llm_output, evaluation


def _cmd_qualitative(args: argparse.Namespace) -> None:
    config = _load_cli_config(args)
    llm_output, evaluation = asyncio.run(_output_then_critique(args, config))
    print(
        json.dumps(
            {"output": llm_output, "evaluation": evaluation.model_dump(mode="json", by_alias=True)},
            indent=2,
            ensure_ascii=False,
        )
    )


def _cmd_quantitative(args: argparse.Namespace) -> None:
    config = _load_cli_config(args)
    system_prompt, user_prompt = _resolve_prompts(args)
    request = EvaluationRequest(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        model_id=args.model,
        iteration_count=args.iterations,
        batch_size=args.batch_size if args.batch_size is not None else config.default_batch_size,
    )
    scheduler = BatchScheduler(client=build_model_client(_resolve_api_key(args), config), config=config)
    scheduler.validate_request(request)
    results = asyncio.run(_run_quantitative(scheduler, request))
    if results is None:
        raise RuntimeError("Quantitative run ended without results.")

    print(summarize_statistics(results).to_string(index=False, float_format=lambda value: f"{value:.2f}"))
    print(f"iterations={results.iterations}")
    print(f"placeholder_count={results.placeholder_count}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(results.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        print(f"results_path={output_path}")


def _cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    from .server import create_app

    uvicorn.run(create_app(_load_cli_config(args)), host=args.host, port=args.port)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Score system/user prompt pairs against an LLM.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    output_parser = subparsers.add_parser("output", help="Run the prompt pair once and print the model output.")
    _add_common_args(output_parser)
    _add_prompt_args(output_parser)
    output_parser.set_defaults(handler=_cmd_output)

    qualitative_parser = subparsers.add_parser(
        "qualitative", help="Run the prompt pair once, then critique the prompts against the output."
    )
    _add_common_args(qualitative_parser)
    _add_prompt_args(qualitative_parser)
    qualitative_parser.set_defaults(handler=_cmd_qualitative)

    quantitative_parser = subparsers.add_parser(
        "quantitative", help="Run the prompt pair many times and report score statistics."
    )
    _add_common_args(quantitative_parser)
    _add_prompt_args(quantitative_parser)
    quantitative_parser.add_argument("--iterations", type=int, default=5, help="Number of iterations to run.")
    quantitative_parser.add_argument(
        "--batch-size", type=int, default=None, help="Concurrent iterations per batch (clamped to 1-10)."
    )
    quantitative_parser.add_argument("--output", default=None, help="Write the full results JSON to this path.")
    quantitative_parser.set_defaults(handler=_cmd_quantitative)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API.")
    serve_parser.add_argument("--config", default=None, help="Path to YAML/JSON config file.")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0).")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to run the server on (default: 8080).")
    serve_parser.set_defaults(handler=_cmd_serve)

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    args.handler(args)


if __name__ == "__main__":
    main()
