"""
OpenAI model capability helpers.

All model calls in this repo go through the Chat Completions API. Reasoning
model families (o-series, gpt-5) only accept the default sampling temperature
and return a 400 when a custom `temperature` is sent:

  Unsupported value: 'temperature' does not support 0.7 with this model.

To keep prompt runs working across model choices, the request builder drops
`temperature` for those families. This is a small name-based heuristic rather
than a registry, so update it when model naming conventions change.
"""


def is_reasoning_model(model: str) -> bool:
    normalized_model = (model or "").strip().lower()
    if not normalized_model:
        return False

    if normalized_model.startswith("gpt-5"):
        return True

    # o1, o3-mini, o4-mini, ...
    if len(normalized_model) > 1 and normalized_model[0] == "o" and normalized_model[1].isdigit():
        return True

    return False


def supports_temperature(model: str) -> bool:
    """
    Return True if `model` accepts a caller-chosen `temperature`.

    Everything that is not a reasoning model does.
    """

    return not is_reasoning_model(model)
