import json
import logging
from typing import Any, Dict, List, Sequence

import requests

from .config import LLM_MODEL, LLM_TIMEOUT, OLLAMA_HOST

logger = logging.getLogger(__name__)

RECOMMENDATIONS = ("keep_winner", "keep_testing", "no_difference")


def _variant_lines(snapshots: Sequence[Any]) -> List[str]:
    lines = []
    for s in snapshots:
        variant = s.variant
        line = (
            f"Variant {variant.name}: "
            f"applications={s.total_applications}, "
            f"response_rate={s.response_rate}%, "
            f"interview_rate={s.interview_conversion_rate}%, "
            f"offer_rate={s.offer_rate}%"
        )
        if s.avg_time_to_response_hours is not None:
            line += f", avg_hours_to_response={s.avg_time_to_response_hours}"
        if s.p_value is not None:
            line += f", p_value_vs_50pct={s.p_value}"
        if variant.format_type:
            line += f", format={variant.format_type}"
        lines.append(line)
    return lines


def generate_report(experiment: Any, snapshots: Sequence[Any]) -> Dict[str, str]:
    """
    experiment: an Experiment row (needs .name and .material_type)
    snapshots: ResultSnapshot rows with their variant loaded

    Returns:
      {
        "report_text": "...",
        "recommendation": "keep_winner" | "keep_testing" | "no_difference"
      }
    """
    material = getattr(experiment.material_type, "value", experiment.material_type).replace("_", " ")
    variants_block = "\n".join(_variant_lines(snapshots))

    prompt = f"""
You are a career coach who also understands statistics. I will give you the results of
an experiment where a job-seeker sent different {material} versions to real job openings.
The numbers are already computed. Do not recompute them; only interpret them.

Experiment name: {experiment.name}

Here are the variants and stats:
{variants_block}

Your job:
1. Explain in simple English which version is doing better and by how much.
2. Say clearly whether there is enough data (p-values are against a 50% response baseline, p < 0.05).
3. Make a recommendation: "keep_winner", "keep_testing", or "no_difference".
4. Mention caveats (small samples, few responses, differences in job types).

Output JSON ONLY with keys:
- "report_text": string
- "recommendation": one of "keep_winner", "keep_testing", "no_difference"
""".strip()

    # Call Ollama chat API
    url = f"{OLLAMA_HOST}/api/chat"
    payload = {
        "model": LLM_MODEL,
        "messages": [
            {"role": "system", "content": "You are a careful analyst who follows instructions exactly."},
            {"role": "user", "content": prompt},
        ],
        "stream": False,
    }

    resp = requests.post(url, json=payload, timeout=LLM_TIMEOUT)
    resp.raise_for_status()
    data = resp.json()

    # Ollama returns the whole conversation; we need the assistant message content
    content = data["message"]["content"].strip()

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        parsed = None

    if not isinstance(parsed, dict):
        # If the model didn't obey perfectly (plain text, a list, ...), wrap raw text
        logger.warning("Report model returned no JSON object, using its output verbatim")
        parsed = {
            "report_text": content,
            "recommendation": "keep_testing",
        }

    recommendation = parsed.get("recommendation", "keep_testing")
    if recommendation not in RECOMMENDATIONS:
        recommendation = "keep_testing"

    report_text = parsed.get("report_text")
    return {
        "report_text": "" if report_text is None else str(report_text),
        "recommendation": recommendation,
    }
