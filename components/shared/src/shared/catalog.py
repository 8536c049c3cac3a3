"""Read-only catalog of analysis methods offered to experimenters.

The catalog is a plain value: services receive it as an argument (or use
``default_catalog()``) instead of reading module-level mutable state.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

ParameterValue = Union[str, int, float, bool]


class ParameterOption(BaseModel):
    """Selectable value for a ``select`` parameter."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class MethodParameter(BaseModel):
    """User-tunable parameter of an analysis method."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: Literal["checkbox", "select", "number"]
    description: str = ""
    default: Optional[ParameterValue] = None
    options: List[ParameterOption] = Field(default_factory=list)
    required: bool = False


class AnalysisMethod(BaseModel):
    """Analysis method entry (id, display name, parameters)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    parameters: List[MethodParameter] = Field(default_factory=list)


class AnalysisCatalog:
    """Immutable lookup over a sequence of analysis methods.

    Args:
        methods: Methods in display order. Ids must be unique.

    Raises:
        ValueError: If two methods share an id.
    """

    def __init__(self, methods: Sequence[AnalysisMethod]) -> None:
        """Index methods by id."""
        self._methods = tuple(methods)
        self._by_id = {method.id: method for method in self._methods}
        if len(self._by_id) != len(self._methods):
            raise ValueError("Analysis method ids must be unique.")

    def __iter__(self) -> Iterator[AnalysisMethod]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def get(self, method_id: str) -> Optional[AnalysisMethod]:
        """Return the method with ``method_id`` or None when unknown."""
        return self._by_id.get(method_id)

    def display_name(self, method_id: str) -> Optional[str]:
        """Return the display name for ``method_id`` or None when unknown."""
        method = self.get(method_id)
        return method.name if method else None


def _select(*pairs: tuple[str, str]) -> List[ParameterOption]:
    return [ParameterOption(value=value, label=label) for value, label in pairs]


_DEFAULT_METHODS = (
    AnalysisMethod(
        id="descriptive",
        name="Descriptive Statistics",
        description=(
            "Basic statistical measures including mean, median, standard "
            "deviation, etc."
        ),
        parameters=[
            MethodParameter(
                id="includeOutlierAnalysis",
                name="Include Outlier Analysis",
                type="checkbox",
                description="Identify and analyze potential outliers in the dataset",
                default=True,
            ),
            MethodParameter(
                id="confidenceInterval",
                name="Confidence Interval",
                type="select",
                description="Statistical confidence level for interval calculations",
                default="0.95",
                options=_select(("0.90", "90%"), ("0.95", "95%"), ("0.99", "99%")),
            ),
        ],
    ),
    AnalysisMethod(
        id="hypothesis",
        name="Hypothesis Testing",
        description=(
            "Statistical tests to determine if a hypothesis about your data is valid"
        ),
        parameters=[
            MethodParameter(
                id="testType",
                name="Test Type",
                type="select",
                description="Type of statistical test to perform",
                default="t-test",
                options=_select(
                    ("t-test", "T-Test"),
                    ("chi-squared", "Chi-Squared Test"),
                    ("anova", "ANOVA"),
                    ("mann-whitney", "Mann-Whitney U Test"),
                ),
                required=True,
            ),
            MethodParameter(
                id="significance",
                name="Significance Level (α)",
                type="select",
                description="Threshold probability for rejecting the null hypothesis",
                default="0.05",
                options=_select(
                    ("0.01", "0.01 (1%)"), ("0.05", "0.05 (5%)"), ("0.10", "0.10 (10%)")
                ),
            ),
        ],
    ),
    AnalysisMethod(
        id="correlation",
        name="Correlation Analysis",
        description="Measure relationships between variables in your dataset",
        parameters=[
            MethodParameter(
                id="method",
                name="Correlation Method",
                type="select",
                description="Statistical method used to calculate correlations",
                default="pearson",
                options=_select(
                    ("pearson", "Pearson (linear)"),
                    ("spearman", "Spearman (rank)"),
                    ("kendall", "Kendall's Tau (ordinal)"),
                ),
                required=True,
            ),
        ],
    ),
    AnalysisMethod(
        id="regression",
        name="Regression Analysis",
        description="Model relationships between dependent and independent variables",
        parameters=[
            MethodParameter(
                id="regressionType",
                name="Regression Type",
                type="select",
                description="Type of regression model to fit",
                default="linear",
                options=_select(
                    ("linear", "Linear Regression"),
                    ("polynomial", "Polynomial Regression"),
                    ("logistic", "Logistic Regression"),
                ),
                required=True,
            ),
            MethodParameter(
                id="polynomialDegree",
                name="Polynomial Degree",
                type="number",
                description="Degree of polynomial for polynomial regression",
                default=2,
            ),
        ],
    ),
    AnalysisMethod(
        id="pca",
        name="Principal Component Analysis",
        description="Reduce data dimensionality while preserving variance",
        parameters=[
            MethodParameter(
                id="components",
                name="Number of Components",
                type="number",
                description="Number of principal components to extract",
                default=2,
            ),
            MethodParameter(
                id="standardize",
                name="Standardize Data",
                type="checkbox",
                description="Standardize data before analysis (recommended)",
                default=True,
            ),
        ],
    ),
    AnalysisMethod(
        id="cluster",
        name="Cluster Analysis",
        description="Group similar data points into clusters",
        parameters=[
            MethodParameter(
                id="algorithm",
                name="Clustering Algorithm",
                type="select",
                description="Algorithm used for clustering",
                default="kmeans",
                options=_select(
                    ("kmeans", "K-Means"),
                    ("hierarchical", "Hierarchical Clustering"),
                    ("dbscan", "DBSCAN"),
                ),
                required=True,
            ),
            MethodParameter(
                id="clusters",
                name="Number of Clusters",
                type="number",
                description="Number of clusters to form (K-means, Hierarchical)",
                default=3,
            ),
        ],
    ),
)


@lru_cache(maxsize=1)
def default_catalog() -> AnalysisCatalog:
    """Return the built-in analysis method catalog."""
    return AnalysisCatalog(_DEFAULT_METHODS)
