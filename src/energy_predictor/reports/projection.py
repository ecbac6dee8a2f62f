"""Generate standalone HTML chart reports for projections and comparisons."""

import html
import json
from datetime import datetime

from ..models import MonthBreakdown, ProjectionResult, Session
from ..sessions import compare_sessions

PAGE_HEAD = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <script src="https://cdn.tailwindcss.com"></script>
    <script src="https://cdn.jsdelivr.net/npm/chart.js"></script>
    <style>
        .gradient-bg {{
            background: linear-gradient(135deg, #1e3a5f 0%, #0d1b2a 100%);
        }}
        .card {{
            background: rgba(255, 255, 255, 0.95);
            backdrop-filter: blur(10px);
        }}
    </style>
</head>
"""

# Chart.js options shared by every chart: month on x, value from zero on y
CHART_OPTIONS_JS = """function chartOptions(yTitle) {
            return {
                responsive: true,
                maintainAspectRatio: false,
                plugins: { legend: { position: 'top' } },
                scales: {
                    x: { title: { display: true, text: 'Month' } },
                    y: { beginAtZero: true, title: { display: true, text: yTitle } }
                }
            };
        }"""

USAGE_COLORS = [("rgba(59, 130, 246, 1)", "rgba(59, 130, 246, 0.2)"), ("rgba(239, 68, 68, 1)", "rgba(239, 68, 68, 0.2)")]
COST_COLORS = [("rgba(168, 85, 247, 1)", "rgba(168, 85, 247, 0.2)"), ("rgba(14, 165, 233, 1)", "rgba(14, 165, 233, 0.2)")]


def _js(value) -> str:
    """Serialize a value for inline use inside a <script> block."""
    return json.dumps(value).replace("</", "<\\/")


def month_labels(month_count: int) -> list[str]:
    return [f"Month {i + 1}" for i in range(month_count)]


def _breakdown_rows_html(breakdown: list[MonthBreakdown]) -> str:
    rows = []
    for month in breakdown:
        rows.append(
            f"""                    <tr class="border-t">
                        <td class="py-1">{html.escape(month.label)}</td>
                        <td class="py-1">{html.escape(month.band_name)}</td>
                        <td class="py-1 text-right">{month.total_kwh:g}</td>
                        <td class="py-1 text-right">£{month.unit_cost:.2f}</td>
                        <td class="py-1 text-right">£{month.standing_cost:.2f}</td>
                        <td class="py-1 text-right font-semibold">£{month.cost:.2f}</td>
                    </tr>"""
        )
    return "\n".join(rows)


def generate_projection_report(
    result: ProjectionResult,
    breakdown: list[MonthBreakdown] | None = None,
    title: str = "Energy Usage Projection",
) -> str:
    """Generate HTML report with usage and cost charts for one projection.

    Args:
        result: Projection to chart
        breakdown: Optional per-month detail for the table under the charts
        title: Page heading

    Returns:
        Complete HTML document as a string
    """
    if not result.ok or not result.monthly_usage:
        return f"<html><body><p>No projection available: {html.escape(result.error or 'empty')}</p></body></html>"

    labels = month_labels(len(result.monthly_usage))
    generated_date = datetime.now().strftime("%Y-%m-%d %H:%M")

    table_html = ""
    if breakdown:
        table_html = f"""
        <div class="card rounded-xl p-6 shadow-lg mb-6">
            <h2 class="font-bold text-gray-800 mb-4">Monthly Breakdown</h2>
            <table class="w-full text-sm text-gray-700">
                <thead>
                    <tr>
                        <th class="text-left">Month</th>
                        <th class="text-left">Tariff</th>
                        <th class="text-right">Usage (kWh)</th>
                        <th class="text-right">Unit Cost</th>
                        <th class="text-right">Standing</th>
                        <th class="text-right">Total</th>
                    </tr>
                </thead>
                <tbody>
{_breakdown_rows_html(breakdown)}
                </tbody>
            </table>
        </div>"""

    return PAGE_HEAD.format(title=html.escape(title)) + f"""<body class="gradient-bg min-h-screen">
    <div class="container mx-auto px-4 py-8">
        <header class="text-center mb-8">
            <h1 class="text-4xl font-bold text-white mb-2">{html.escape(title)}</h1>
            <p class="text-blue-200">{len(labels)} months, total projected cost £{result.total_cost:.2f}</p>
        </header>

        <div class="grid grid-cols-1 lg:grid-cols-2 gap-6 mb-6">
            <div class="card rounded-xl p-4 shadow-lg" style="height: 360px">
                <canvas id="usageChart"></canvas>
            </div>
            <div class="card rounded-xl p-4 shadow-lg" style="height: 360px">
                <canvas id="costChart"></canvas>
            </div>
        </div>
{table_html}
        <footer class="text-center text-blue-200 text-sm py-8">
            <p>Generated {generated_date}</p>
        </footer>
    </div>

    <script>
        const labels = {_js(labels)};
        const usage = {_js(list(result.monthly_usage))};
        const costs = {_js(list(result.monthly_cost))};

        {CHART_OPTIONS_JS}

        new Chart(document.getElementById('usageChart'), {{
            type: 'bar',
            data: {{
                labels: labels,
                datasets: [{{
                    label: 'Projected Monthly Usage (kWh)',
                    data: usage,
                    backgroundColor: 'rgba(59, 130, 246, 0.6)',
                    borderColor: 'rgba(59, 130, 246, 1)',
                    borderWidth: 1
                }}]
            }},
            options: chartOptions('Usage (kWh)')
        }});

        new Chart(document.getElementById('costChart'), {{
            type: 'line',
            data: {{
                labels: labels,
                datasets: [{{
                    label: 'Projected Monthly Cost (£)',
                    data: costs,
                    backgroundColor: 'rgba(239, 68, 68, 0.6)',
                    borderColor: 'rgba(239, 68, 68, 1)',
                    borderWidth: 2,
                    tension: 0.3,
                    fill: false
                }}]
            }},
            options: chartOptions('Cost (£)')
        }});
    </script>
</body>
</html>
"""


def _datasets(series: list[dict], field: str, unit: str, colors: list[tuple[str, str]]) -> list[dict]:
    return [
        {
            "label": f"{s['name']} {unit}",
            "data": s[field],
            "borderColor": border,
            "backgroundColor": background,
            "fill": False,
            "tension": 0.3,
        }
        for s, (border, background) in zip(series, colors)
    ]


def generate_comparison_report(first: Session, second: Session) -> str:
    """Generate HTML report comparing two saved sessions."""
    comparison = compare_sessions(first, second)
    series = comparison["series"]
    generated_date = datetime.now().strftime("%Y-%m-%d %H:%M")

    usage_datasets = _datasets(series, "usage", "Usage (kWh)", USAGE_COLORS)
    cost_datasets = _datasets(series, "cost", "Cost (£)", COST_COLORS)

    if comparison["cheaper"]:
        verdict = (
            f"{html.escape(comparison['cheaper'])} is cheaper by "
            f"£{abs(comparison['cost_difference']):.2f}"
        )
    else:
        verdict = "Both scenarios cost the same"

    totals_html = "\n".join(
        f"""            <div class="card rounded-xl p-4 shadow-lg text-center">
                <h3 class="font-bold text-gray-800">{html.escape(s['name'])}</h3>
                <p class="text-2xl text-gray-700">£{s['total_cost']:.2f}</p>
            </div>"""
        for s in series
    )

    title = f"{first.name} vs {second.name}"
    return PAGE_HEAD.format(title=html.escape(title)) + f"""<body class="gradient-bg min-h-screen">
    <div class="container mx-auto px-4 py-8">
        <header class="text-center mb-8">
            <h1 class="text-4xl font-bold text-white mb-2">{html.escape(title)}</h1>
            <p class="text-blue-200">{verdict}</p>
        </header>

        <div class="grid grid-cols-2 gap-6 mb-6">
{totals_html}
        </div>

        <div class="grid grid-cols-1 lg:grid-cols-2 gap-6">
            <div class="card rounded-xl p-4 shadow-lg" style="height: 360px">
                <canvas id="compareUsageChart"></canvas>
            </div>
            <div class="card rounded-xl p-4 shadow-lg" style="height: 360px">
                <canvas id="compareCostChart"></canvas>
            </div>
        </div>

        <footer class="text-center text-blue-200 text-sm py-8">
            <p>Generated {generated_date}</p>
        </footer>
    </div>

    <script>
        const labels = {_js(comparison["labels"])};

        {CHART_OPTIONS_JS}

        new Chart(document.getElementById('compareUsageChart'), {{
            type: 'line',
            data: {{ labels: labels, datasets: {_js(usage_datasets)} }},
            options: chartOptions('Usage (kWh)')
        }});

        new Chart(document.getElementById('compareCostChart'), {{
            type: 'line',
            data: {{ labels: labels, datasets: {_js(cost_datasets)} }},
            options: chartOptions('Cost (£)')
        }});
    </script>
</body>
</html>
"""
