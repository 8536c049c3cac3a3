"""Deterministic, rule-based protocol generator.

Used whenever the completion backend is unavailable or returns unusable text.
The output depends only on the descriptor, the date and the analysis catalog,
so two calls with the same inputs produce the same sections.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from shared.catalog import AnalysisCatalog, default_catalog
from shared.models import ExperimentDescriptor, Protocol

from protocol_service.sections import SectionAccumulator

logger = logging.getLogger(__name__)

GENERIC_CATEGORY = "generic"


@dataclass(frozen=True)
class AnalysisContent:
    """Materials and data-analysis lines contributed by one analysis category.

    Args:
        label: Heading of the analysis block in Data Collection and Analysis.
        equipment: Extra Materials and Equipment entries.
        procedure: Analysis steps listed under the label.
        catalog_id: Catalog method whose display name replaces ``label``.
    """

    label: str
    equipment: Tuple[str, ...] = ()
    procedure: Tuple[str, ...] = ()
    catalog_id: Optional[str] = None


AnalysisProducer = Callable[[ExperimentDescriptor], AnalysisContent]


def _statistical(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Statistical analysis",
        equipment=("Statistical analysis software (e.g. R, Python or SPSS)",),
        procedure=(
            "Descriptive statistics: report mean, median, standard deviation "
            "and range for every condition.",
            "Inferential statistics: compare conditions with a t-test or ANOVA "
            "at a significance level of 0.05.",
            "Report effect sizes and 95% confidence intervals alongside p-values.",
        ),
    )


def _descriptive(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Descriptive statistics",
        equipment=("Spreadsheet or statistical software for summary tables",),
        procedure=(
            "Summarise each measured variable by mean, median, standard deviation "
            "and range.",
            "Flag values beyond 1.5 times the interquartile range as potential "
            "outliers.",
        ),
        catalog_id="descriptive",
    )


def _hypothesis(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Hypothesis testing",
        equipment=("Statistical analysis software with hypothesis test routines",),
        procedure=(
            "State the null and alternative hypotheses before collecting data.",
            "Apply a t-test for two groups or a chi-squared test for counts "
            "at a significance level of 0.05.",
        ),
        catalog_id="hypothesis",
    )


def _correlation(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Correlation analysis",
        equipment=("Software able to compute Pearson and Spearman coefficients",),
        procedure=(
            "Plot each pair of variables as a scatter plot before computing "
            "coefficients.",
            "Use Pearson correlation for linear relationships and Spearman for "
            "ranked data.",
        ),
        catalog_id="correlation",
    )


def _regression(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Regression analysis",
        equipment=("Statistical software with linear model fitting",),
        procedure=(
            "Fit a linear model of the response on the controlled variable.",
            "Check residual plots for non-linearity and unequal variance.",
            "Report coefficients with standard errors and R-squared.",
        ),
        catalog_id="regression",
    )


def _clustering(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Cluster analysis",
        equipment=("Software supporting k-means or hierarchical clustering",),
        procedure=(
            "Standardise variables to zero mean and unit variance.",
            "Run k-means with 3 clusters and confirm the choice with the "
            "silhouette score.",
        ),
        catalog_id="cluster",
    )


def _pca(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Principal component analysis",
        equipment=("Software supporting principal component analysis",),
        procedure=(
            "Standardise variables before extracting components.",
            "Retain the first 2 components and report the variance each explains.",
        ),
        catalog_id="pca",
    )


def _time_series(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Time series analysis",
        equipment=("Timer or data logger with timestamped output",),
        procedure=(
            "Record measurements at fixed intervals with a timestamp for each "
            "reading.",
            "Plot each series over time and check for trend and seasonality "
            "before modelling.",
        ),
    )


def _anova(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Analysis of variance",
        equipment=("Statistical software with ANOVA and post-hoc tests",),
        procedure=(
            "Run a one-way ANOVA across all experimental groups.",
            "Follow significant results with Tukey's HSD post-hoc comparisons.",
            "Check normality of residuals and homogeneity of variance.",
        ),
    )


def _generic(descriptor: ExperimentDescriptor) -> AnalysisContent:
    return AnalysisContent(
        label="Data analysis",
        equipment=("Spreadsheet software for data entry and plotting",),
        procedure=(
            "Tabulate all measurements by condition and replicate.",
            "Plot the measured variable against the experimental condition and "
            "describe the observed trend.",
        ),
    )


ANALYSIS_CATEGORIES: Mapping[str, AnalysisProducer] = MappingProxyType(
    {
        "statistical": _statistical,
        "descriptive": _descriptive,
        "hypothesis": _hypothesis,
        "correlation": _correlation,
        "regression": _regression,
        "clustering": _clustering,
        "pca": _pca,
        "time_series": _time_series,
        "anova": _anova,
    }
)

# Keys are normalized tags (see ``normalize_tag``).
CATEGORY_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "statistics": "statistical",
        "stats": "statistical",
        "descriptivestats": "descriptive",
        "descriptivestatistics": "descriptive",
        "hypothesistesting": "hypothesis",
        "ttest": "hypothesis",
        "correlationanalysis": "correlation",
        "regressionanalysis": "regression",
        "cluster": "clustering",
        "clusteranalysis": "clustering",
        "principalcomponentanalysis": "pca",
        "timeseries": "time_series",
        "analysisofvariance": "anova",
    }
)

_NORMALIZE = re.compile(r"[^a-z0-9]+")

_BASE_MATERIALS = (
    "Laboratory notebook or electronic data capture sheet",
    "Personal protective equipment (lab coat, gloves, safety glasses)",
    "Calibrated measuring instruments suited to the measured variable",
    "Labelled sample containers for every condition and replicate",
)


def normalize_tag(tag: str) -> str:
    """Lower-case ``tag`` and drop everything but letters and digits."""
    return _NORMALIZE.sub("", tag.lower())


@dataclass(frozen=True)
class AnalysisRegistry:
    """Read-only dispatch table from category name to content producer.

    Args:
        categories: Producers keyed by canonical category name.
        aliases: Canonical names keyed by normalized alternative spelling.
    """

    categories: Mapping[str, AnalysisProducer] = field(
        default_factory=lambda: ANALYSIS_CATEGORIES
    )
    aliases: Mapping[str, str] = field(default_factory=lambda: CATEGORY_ALIASES)

    def __post_init__(self) -> None:
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))
        object.__setattr__(self, "aliases", MappingProxyType(dict(self.aliases)))


DEFAULT_REGISTRY = AnalysisRegistry()


def resolve_category(
    tag: str, registry: Optional[AnalysisRegistry] = None
) -> Optional[str]:
    """Map a user-supplied tag onto a registered category name.

    Examples:
        >>> resolve_category("descriptiveStats")
        'descriptive'
        >>> resolve_category("time-series")
        'time_series'
        >>> resolve_category("astrology") is None
        True
    """
    registry = registry or DEFAULT_REGISTRY
    key = normalize_tag(tag)
    if not key:
        return None
    alias = registry.aliases.get(key)
    if alias in registry.categories:
        return alias
    for name in registry.categories:
        if normalize_tag(name) == key:
            return name
    return None


def register_analysis_category(
    tag: str,
    producer: AnalysisProducer,
    *,
    aliases: Iterable[str] = (),
    registry: Optional[AnalysisRegistry] = None,
) -> AnalysisRegistry:
    """Return a registry extended with (or replacing) one analysis category.

    The given registry, ``DEFAULT_REGISTRY`` when omitted, is left unchanged.
    Pass the result to ``generate_default_protocol`` or ``ProtocolGenerator``.

    Args:
        tag: Canonical category name.
        producer: Callable returning the category's ``AnalysisContent``.
        aliases: Alternative spellings that resolve to ``tag``.
        registry: Registry to extend.

    Raises:
        ValueError: If ``tag`` has no letters or digits.
    """
    base = registry or DEFAULT_REGISTRY
    name = tag.strip()
    if not normalize_tag(name):
        raise ValueError(f"Invalid analysis category tag: {tag!r}")
    categories = dict(base.categories)
    categories[name] = producer
    alias_table = dict(base.aliases)
    for alias in aliases:
        alias_table[normalize_tag(alias)] = name
    logger.debug("Registered analysis category %s", name)
    return AnalysisRegistry(categories=categories, aliases=alias_table)


def collect_analysis_content(
    descriptor: ExperimentDescriptor,
    registry: Optional[AnalysisRegistry] = None,
) -> List[AnalysisContent]:
    """Return one content block per distinct category, in declared order.

    Unknown tags, or no tags at all, contribute the generic block once.
    """
    registry = registry or DEFAULT_REGISTRY
    blocks: List[AnalysisContent] = []
    seen: set[str] = set()
    for tag in descriptor.analysis_types:
        category = resolve_category(tag, registry) or GENERIC_CATEGORY
        if category in seen:
            continue
        seen.add(category)
        producer = registry.categories.get(category, _generic)
        blocks.append(producer(descriptor))
    if not blocks:
        blocks.append(_generic(descriptor))
    return blocks


def generate_default_protocol(
    descriptor: ExperimentDescriptor,
    date: str,
    *,
    catalog: Optional[AnalysisCatalog] = None,
    registry: Optional[AnalysisRegistry] = None,
) -> Protocol:
    """Build a complete protocol without calling any model.

    Args:
        descriptor: A validated experiment descriptor.
        date: ISO calendar date stamped on the protocol.
        catalog: Analysis method catalog used for block labels. Defaults to
            ``default_catalog()``.
        registry: Analysis category table. Defaults to ``DEFAULT_REGISTRY``.

    Returns:
        A protocol with ``ai_generated`` set to False.
    """
    catalog = catalog or default_catalog()
    blocks = collect_analysis_content(descriptor, registry)
    title = descriptor.title.strip()

    accumulator = SectionAccumulator()
    accumulator.add("Introduction", _introduction(descriptor))
    rationale = (descriptor.design_rationale or "").strip()
    if rationale:
        accumulator.add("Design Rationale", rationale)
    accumulator.add("Materials and Equipment", _materials(blocks))
    accumulator.add("Methods", _methods(descriptor))
    accumulator.add("Data Collection and Analysis", _data_analysis(blocks, catalog))
    accumulator.add("Expected Results", _expected_results(descriptor))
    accumulator.add("References", _references(descriptor))

    return Protocol(
        title=title,
        date=date,
        sections=accumulator.sections(),
        ai_generated=False,
    )


def _introduction(descriptor: ExperimentDescriptor) -> str:
    lines = [f'This protocol describes the experiment "{descriptor.title.strip()}".']
    purpose = (descriptor.purpose or "").strip()
    if purpose:
        lines.append(f"Purpose of the experiment: {purpose}")
    lines.append(
        "Follow every step in order and record deviations in the laboratory notebook."
    )
    return "\n".join(lines)


def _materials(blocks: Sequence[AnalysisContent]) -> str:
    items: List[str] = list(_BASE_MATERIALS)
    for block in blocks:
        for entry in block.equipment:
            if entry not in items:
                items.append(entry)
    return "\n".join(f"- {item}" for item in items)


def _methods(descriptor: ExperimentDescriptor) -> str:
    lines: List[str] = []
    if (descriptor.file_content or "").strip():
        lines.append(
            "The uploaded reference document governs step order and parameters; "
            "the steps below summarise the general workflow."
        )
    lines.extend(
        [
            "1. Prepare and label all materials and sample containers before starting.",
            "2. Calibrate measuring instruments according to the manufacturer's "
            "instructions.",
            "3. Set up each experimental condition with at least 3 replicates.",
            "4. Apply the treatment to each sample and start the timer.",
            "5. Measure the response variable at the scheduled time points.",
            "6. Record every measurement immediately in the data collection template.",
            "7. Clean the work area and dispose of waste according to local rules.",
        ]
    )
    return "\n".join(lines)


def _data_analysis(
    blocks: Sequence[AnalysisContent], catalog: AnalysisCatalog
) -> str:
    lines = [
        "Enter raw measurements in the data collection template after each session.",
        "Check entries against the laboratory notebook before analysis.",
    ]
    for block in blocks:
        label = block.label
        if block.catalog_id:
            label = catalog.display_name(block.catalog_id) or label
        lines.append(f"- {label}")
        lines.extend(f"  - {step}" for step in block.procedure)
    return "\n".join(lines)


def _expected_results(descriptor: ExperimentDescriptor) -> str:
    purpose = (descriptor.purpose or "").strip()
    target = purpose or f'the question posed by "{descriptor.title.strip()}"'
    return "\n".join(
        [
            f"The results are expected to address {target}.",
            "Differences between conditions should exceed the variation between "
            "replicates.",
        ]
    )


def _references(descriptor: ExperimentDescriptor) -> str:
    lines = ["- Institutional standard operating procedures for the techniques used"]
    if (descriptor.file_content or "").strip():
        lines.insert(0, "- Reference protocol document supplied with the experiment")
    lines.append("- Manufacturer documentation for every instrument listed above")
    return "\n".join(lines)
