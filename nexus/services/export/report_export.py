# nexus/services/export/report_export.py
from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Optional

import markdown2
from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup

from nexus.models.models import Report
from nexus.services.analysis.prompt_instruction import (
    COMPETITOR_SEPARATOR,
    DOMAIN_NAMES,
    PURPOSE_NAMES,
    REGION_NAMES,
    UNSPECIFIED,
    label_for,
)
from nexus.utils.helper import utc_now

MARKDOWN_EXTRAS = ["tables", "fenced-code-blocks", "strike", "cuddled-lists"]


@lru_cache(maxsize=1)
def _env() -> Environment:
    return Environment(
        loader=PackageLoader("nexus", "templates"),
        autoescape=select_autoescape(["html"]),
    )


def render_markdown(text: str) -> Markup:
    """Markdown → HTML with raw HTML in the source escaped."""
    return Markup(markdown2.markdown(text or "", extras=MARKDOWN_EXTRAS, safe_mode="escape"))


def render_report_html(report: Report, *, exported_at: Optional[datetime] = None) -> str:
    """Self-contained, printable HTML document for one report (inline CSS, no scripts)."""
    exported_at = exported_at or utc_now()
    competitors = COMPETITOR_SEPARATOR.join(report.competitors)
    return _env().get_template("report_export.html").render(
        title=f"竞品分析报告 - {competitors}",
        competitors=competitors,
        domain=label_for(DOMAIN_NAMES, report.domain),
        purpose=label_for(PURPOSE_NAMES, report.purpose),
        region=label_for(REGION_NAMES, report.region),
        company=report.company or UNSPECIFIED,
        created_at=report.created_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip(),
        model_name=report.model.name,
        backend_model=report.model.model_name,
        analysis_seconds=f"{report.analysis_time / 1000:.1f}",
        body=render_markdown(report.content),
        exported_on=exported_at.strftime("%Y-%m-%d"),
    )
