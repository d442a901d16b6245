"""
PDF report rendering through a headless Chrome session.

Every call renders the Jinja2 template, starts a fresh browser, prints the
page to an A4 PDF and quits the browser. Nothing is pooled between calls.
"""

import asyncio
import base64
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.print_page_options import PrintOptions
from webdriver_manager.chrome import ChromeDriverManager

from app.constants.constants import DIMENSION_LABELS, DIMENSION_ORDER, MAX_DIMENSION_SCORE, MAX_TOTAL_SCORE
from app.core.config import settings
from app.core.exceptions import ReportRenderError
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
TEMPLATE_NAME = "pdf_report.html"

# A4 in centimetres
PAGE_WIDTH_CM = 21.0
PAGE_HEIGHT_CM = 29.7

INTERACTIVE = "interactive"
HEADLESS_SERVER = "headless-server"

SCORE_BANDS = (
    (85, "score-excellent", "优秀"),
    (70, "score-good", "良好"),
    (50, "score-average", "一般"),
)
LOWEST_BAND = ("score-poor", "待提升")


@dataclass
class Respondent:
    name: str = ""
    email: str = ""
    company: str = ""


@dataclass
class DimensionScore:
    dimension: str
    score: float
    max_score: float = MAX_DIMENSION_SCORE


@dataclass
class ReportAdvice:
    overall_level: str = ""
    dimension_advice: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)


@dataclass
class ReportData:
    respondent: Respondent
    total_score: float
    dimension_scores: List[DimensionScore]
    advice: ReportAdvice
    completed_at: datetime
    max_total_score: float = MAX_TOTAL_SCORE


def score_percent(score: float, max_score: float) -> float:
    if not max_score:
        return 0.0
    return score / max_score * 100


def score_band(score: float, max_score: float = 100) -> Dict[str, str]:
    """CSS class and label for a score, banded on its percentage of ``max_score``."""
    percentage = score_percent(score, max_score)
    for threshold, css_class, label in SCORE_BANDS:
        if percentage >= threshold:
            return {"css_class": css_class, "label": label}
    css_class, label = LOWEST_BAND
    return {"css_class": css_class, "label": label}


def format_date(value: datetime) -> str:
    return value.strftime("%Y/%m/%d %H:%M")


def build_report_data(record: Mapping[str, Any], advice: Mapping[str, Any]) -> ReportData:
    """Assemble report input from a stored assessment record and its regenerated advice."""
    scores = record.get("scores") or {}
    dimension_advice = advice.get("dimensionAdvice") or {}
    return ReportData(
        respondent=Respondent(
            name=record.get("user_name") or "",
            email=record.get("user_email") or "",
            company=record.get("user_company") or "",
        ),
        total_score=record.get("total_score") or 0,
        dimension_scores=[
            DimensionScore(dimension=DIMENSION_LABELS[d], score=scores.get(d, 0) or 0)
            for d in DIMENSION_ORDER
        ],
        advice=ReportAdvice(
            overall_level=advice.get("levelDescription") or "",
            dimension_advice=[dimension_advice[d] for d in DIMENSION_ORDER if d in dimension_advice],
            next_steps=list(advice.get("nextSteps") or []),
        ),
        completed_at=record.get("completed_at") or utcnow(),
    )


class PdfReportGenerator:
    """Renders assessment reports to PDF bytes."""

    def __init__(
        self,
        template_dir: Path = TEMPLATE_DIR,
        driver_factory: Optional[Callable[[], Any]] = None,
        content_timeout: Optional[float] = None,
        generation_timeout: Optional[float] = None,
    ):
        self.templates = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
        )
        self._driver_factory = driver_factory
        self.content_timeout = content_timeout or settings.PDF_CONTENT_TIMEOUT_SECONDS
        self.generation_timeout = generation_timeout or settings.PDF_GENERATION_TIMEOUT_SECONDS

    @property
    def environment(self) -> str:
        """Launch path: a configured driver binary means a headless server."""
        return HEADLESS_SERVER if settings.CHROMEDRIVER_PATH else INTERACTIVE

    def template_context(self, data: ReportData, generated_at: Optional[datetime] = None) -> Dict[str, Any]:
        total_band = score_band(data.total_score, data.max_total_score)
        name = data.respondent.name
        return {
            "user_name": name,
            "user_email": data.respondent.email,
            "company": data.respondent.company or "未填写",
            "user_initial": name[:1].upper() if name else "U",
            "completed_at": format_date(data.completed_at),
            "total_score": data.total_score,
            "total_score_percent": f"{score_percent(data.total_score, data.max_total_score):.1f}",
            "total_score_class": total_band["css_class"],
            "assessment_level": total_band["label"],
            "dimension_scores": [
                {
                    "dimension": dim.dimension,
                    "score": dim.score,
                    "score_percent": f"{score_percent(dim.score, dim.max_score):.1f}",
                    "score_class": score_band(dim.score, dim.max_score)["css_class"],
                }
                for dim in data.dimension_scores
            ],
            "advice": data.advice,
            "report_generated_at": format_date(generated_at or utcnow()),
        }

    def render_html(self, data: ReportData) -> str:
        return self.templates.get_template(TEMPLATE_NAME).render(**self.template_context(data))

    def _chrome_options(self) -> Options:
        options = Options()
        options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--disable-gpu")
        options.add_argument("--font-render-hinting=none")
        if settings.CHROME_BINARY:
            options.binary_location = settings.CHROME_BINARY
        return options

    def _build_driver(self):
        if self._driver_factory:
            return self._driver_factory()
        if self.environment == HEADLESS_SERVER:
            service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        else:
            service = Service(ChromeDriverManager().install())
        return webdriver.Chrome(service=service, options=self._chrome_options())

    @staticmethod
    def _print_options() -> PrintOptions:
        print_options = PrintOptions()
        print_options.page_width = PAGE_WIDTH_CM
        print_options.page_height = PAGE_HEIGHT_CM
        print_options.margin_top = 0
        print_options.margin_bottom = 0
        print_options.margin_left = 0
        print_options.margin_right = 0
        print_options.background = True
        return print_options

    def _print_pdf(self, html: str) -> bytes:
        """Blocking: load ``html`` in a fresh browser and print it."""
        driver = None
        fd, html_path = tempfile.mkstemp(suffix=".html")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(html)

            driver = self._build_driver()
            driver.set_page_load_timeout(self.content_timeout)
            driver.get(Path(html_path).as_uri())
            encoded = driver.print_page(self._print_options())
            pdf = base64.b64decode(encoded) if encoded else b""
            if not pdf:
                raise ReportRenderError(self.environment, "browser returned an empty document")
            return pdf
        finally:
            if driver is not None:
                try:
                    driver.quit()
                except WebDriverException as e:
                    logger.warning(f"⚠️ Failed to quit browser: {e}")
            os.unlink(html_path)

    async def generate(self, data: ReportData) -> bytes:
        """
        Render ``data`` to PDF bytes.

        Raises:
            ReportRenderError: launch, load, print or timeout failure
        """
        environment = self.environment
        try:
            html = self.render_html(data)
            pdf = await asyncio.wait_for(
                asyncio.to_thread(self._print_pdf, html),
                timeout=self.generation_timeout,
            )
        except ReportRenderError:
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"❌ PDF generation timed out [{environment}] after {self.generation_timeout}s")
            raise ReportRenderError(environment, f"timed out after {self.generation_timeout}s") from e
        except Exception as e:
            logger.error(f"❌ PDF generation failed [{environment}]: {e}")
            raise ReportRenderError(environment, str(e)) from e

        logger.info(f"📄 PDF generated [{environment}], {len(pdf)} bytes")
        return pdf


pdf_report_generator = PdfReportGenerator()


def get_pdf_generator() -> PdfReportGenerator:
    """FastAPI dependency for the report generator."""
    return pdf_report_generator
