"""Delimited prompt construction for judge calls.

User-controlled text only ever appears inside the <user_submission> block of
the evaluation prompt; the system prompt is built from configuration alone.
"""

from config.config_loader import PromptsConfig
from council.models import JudgePersona, SubmissionContext


def build_system_prompt(prompts: PromptsConfig, judge_name: str, rubric: str) -> str:
    return prompts.system.format(judge_name=judge_name, rubric=rubric).strip()


def uses_native_retrieval(persona: JudgePersona, context: SubmissionContext) -> bool:
    """True when this seat should fetch the submission URL with its own tooling."""
    return context.content_type in persona.native_content_types


def _format_peer_block(prompts: PromptsConfig, peer_summaries: list[str]) -> str:
    if not peer_summaries or not prompts.peer_block:
        return ""
    lines = "\n".join(f"- {s}" for s in peer_summaries)
    return prompts.peer_block.format(peer_summaries=lines)


def build_evaluation_prompt(
    prompts: PromptsConfig,
    persona: JudgePersona,
    context: SubmissionContext,
    peer_summaries: list[str] | None = None,
) -> str:
    native_hint = ""
    if uses_native_retrieval(persona, context):
        hint = prompts.native_hints.get(context.content_type, "")
        if hint:
            native_hint = f"\n<native_capabilities>\n{hint}\n</native_capabilities>\n"

    extracted = ""
    if context.extracted_content:
        extracted = f"\n<extracted_content>\n{context.extracted_content}\n</extracted_content>"

    return prompts.evaluation.format(
        project_id=context.project_id,
        submission_url=context.submission_url,
        content_type=context.content_type,
        notes=context.submission_notes or "None provided",
        extracted=extracted,
        native_hint=native_hint,
        peer_block=_format_peer_block(prompts, peer_summaries or []),
    )
