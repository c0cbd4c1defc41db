"""
Performance Chart Service

Renders the performance time series as a PNG line chart.
"""

import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.dates as mdates
import numpy as np
import seaborn as sns
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional


class PerformanceChartService:
    """Service for drawing per-criterion score averages over time."""

    @staticmethod
    def generate_performance_chart(
        series: List[Dict[str, Any]],
        criteria: List[str],
        title: Optional[str] = None
    ) -> bytes:
        """
        Generate a line chart with one line per criterion.

        Args:
            series: Rows from the report, {'date': 'YYYY-MM-DD', criterion: value}
            criteria: Criteria to draw, in legend order
            title: Chart title (usually the event type)

        Returns:
            PNG image as bytes
        """
        if not series or not criteria:
            return PerformanceChartService._generate_no_data_chart(
                'No performance data for the selected competitions'
            )

        dates = [datetime.fromisoformat(row['date']) for row in series]
        palette = sns.color_palette('husl', len(criteria))

        fig, ax = plt.subplots(figsize=(12, 7))

        for color, criterion in zip(palette, criteria):
            # Missing points stay NaN so the line shows a gap
            values = np.array(
                [row.get(criterion, np.nan) for row in series],
                dtype=float
            )
            if np.all(np.isnan(values)):
                continue
            ax.plot(dates, values, 'o-', color=color, label=criterion,
                    linewidth=2, markersize=6,
                    markeredgecolor='white', markeredgewidth=1)

        ax.set_xlabel('Competition Date', fontsize=13, fontweight='bold', labelpad=10)
        ax.set_ylabel('Average Score', fontsize=13, fontweight='bold', labelpad=10)
        ax.set_title(title or 'Performance by Criteria', fontsize=15, fontweight='bold', pad=20)

        ax.legend(loc='upper left', bbox_to_anchor=(1.01, 1), fontsize=9, framealpha=0.9)
        ax.grid(True, alpha=0.3, linestyle='--', linewidth=0.7)

        ax.xaxis.set_major_formatter(mdates.DateFormatter('%Y-%m-%d'))
        ax.xaxis.set_major_locator(mdates.AutoDateLocator())
        plt.xticks(rotation=45, ha='right')

        plt.tight_layout()

        buffer = BytesIO()
        plt.savefig(buffer, format='png', dpi=100, bbox_inches='tight')
        buffer.seek(0)
        plt.close(fig)

        return buffer.getvalue()

    @staticmethod
    def _generate_no_data_chart(message: str) -> bytes:
        """Generate a placeholder chart when no data is available."""
        fig, ax = plt.subplots(figsize=(10, 6))
        ax.text(0.5, 0.5, message,
                horizontalalignment='center',
                verticalalignment='center',
                fontsize=14, color='gray',
                transform=ax.transAxes)
        ax.axis('off')

        buffer = BytesIO()
        plt.savefig(buffer, format='png', dpi=100, bbox_inches='tight')
        buffer.seek(0)
        plt.close(fig)

        return buffer.getvalue()
