from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound


PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
SAMPLES_DIR = PROMPTS_DIR / "samples"
SAMPLES_INDEX = SAMPLES_DIR / "samples.yaml"

# Strict undefined variables so a renamed placeholder fails loudly instead of
# sending a half-empty prompt to the model.
PROMPT_TEMPLATE_ENVIRONMENT = Environment(
    loader=FileSystemLoader(str(PROMPTS_DIR)),
    autoescape=False,
    undefined=StrictUndefined,
)


@dataclass(frozen=True)
class SamplePrompt:
    name: str
    description: str
    system_prompt: str
    user_prompt: str


def load_prompt_text(prompt_path: Path) -> str:
    if not prompt_path.exists():
        raise ValueError(f"Prompt template not found: {prompt_path}")
    return prompt_path.read_text(encoding="utf-8").strip()


def render_prompt_text(template_text: str, template_variables: Mapping[str, Any]) -> str:
    template = PROMPT_TEMPLATE_ENVIRONMENT.from_string(template_text)
    return template.render(**dict(template_variables)).strip()


def render_prompt(template_name: str, template_variables: Mapping[str, Any]) -> str:
    try:
        template = PROMPT_TEMPLATE_ENVIRONMENT.get_template(template_name)
    except TemplateNotFound as missing:
        raise ValueError(f"Prompt template not found: {PROMPTS_DIR / template_name}") from missing
    return template.render(**dict(template_variables)).strip()


def load_sample_prompts(samples_index: Path = SAMPLES_INDEX) -> Dict[str, SamplePrompt]:
    index = yaml.safe_load(load_prompt_text(samples_index)) or {}
    if not isinstance(index, dict):
        raise ValueError(f"Sample prompt index must be a mapping: {samples_index}")

    samples: Dict[str, SamplePrompt] = {}
    for name, entry in index.items():
        samples[name] = SamplePrompt(
            name=name,
            description=str(entry.get("description", "")),
            system_prompt=load_prompt_text(samples_index.parent / entry["system_prompt_file"]),
            user_prompt=load_prompt_text(samples_index.parent / entry["user_prompt_file"]),
        )
    return samples
