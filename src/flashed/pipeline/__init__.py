"""
Generation pipeline: jobs, batch scheduling, style decisions, variants and sites.
"""

from .accumulator import (
    FinalizationResult,
    StreamAccumulator,
    finalize_html,
    is_valid_html,
    render_error_html,
    rescue_html,
    strip_code_fences,
)
from .executor import GenerationPipeline, GenerationRequest, Variation, build_scheduler
from .job import Job, JobOutcome
from .scheduler import BatchScheduler, RetryingCompletionClient, RetryPolicy
from .site import DEFAULT_PAGES, SiteSequencer, plan_pages, upgrade_to_site
from .styles import (
    STYLE_FALLBACKS,
    StyleDecision,
    StylesError,
    StylesFallback,
    StylesOk,
    decide_site_style,
    decide_styles,
    fallback_styles,
    parse_style_list,
)

__all__ = [
    "FinalizationResult",
    "StreamAccumulator",
    "finalize_html",
    "is_valid_html",
    "render_error_html",
    "rescue_html",
    "strip_code_fences",
    "GenerationPipeline",
    "GenerationRequest",
    "Variation",
    "build_scheduler",
    "Job",
    "JobOutcome",
    "BatchScheduler",
    "RetryingCompletionClient",
    "RetryPolicy",
    "DEFAULT_PAGES",
    "SiteSequencer",
    "plan_pages",
    "upgrade_to_site",
    "STYLE_FALLBACKS",
    "StyleDecision",
    "StylesError",
    "StylesFallback",
    "StylesOk",
    "decide_site_style",
    "decide_styles",
    "fallback_styles",
    "parse_style_list",
]
