"""Analytics package: derived figures for the dashboard pages and reports."""

from financepro.analytics.benchmark import (
    MARKET_BENCHMARK,
    BenchmarkInsight,
    BenchmarkResult,
    BenchmarkRow,
    compare_to_market,
)
from financepro.analytics.dashboard import (
    DashboardSummary,
    Sentiment,
    dashboard_insight,
    financial_sentiment,
    recent_chart_points,
    summarize,
)
from financepro.analytics.planning import (
    BudgetProgress,
    DebtOverview,
    PortfolioSummary,
    budget_progress,
    debt_overview,
    payoff_months,
    portfolio_summary,
)
from financepro.analytics.reports import (
    CategoryShare,
    MonthlyRow,
    YearlyReport,
    build_yearly_report,
)

__all__ = [
    # Benchmark
    "MARKET_BENCHMARK",
    "BenchmarkInsight",
    "BenchmarkResult",
    "BenchmarkRow",
    "compare_to_market",
    # Dashboard
    "DashboardSummary",
    "Sentiment",
    "dashboard_insight",
    "financial_sentiment",
    "recent_chart_points",
    "summarize",
    # Planning
    "BudgetProgress",
    "DebtOverview",
    "PortfolioSummary",
    "budget_progress",
    "debt_overview",
    "payoff_months",
    "portfolio_summary",
    # Reports
    "CategoryShare",
    "MonthlyRow",
    "YearlyReport",
    "build_yearly_report",
]
