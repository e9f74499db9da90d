"""
Crypto Hunter — Report Formatter
Renders alert lists into console reports and chat notification text.
"""
from datetime import datetime
from typing import Dict, List, Optional

from crypto_hunter.alerts.models import ALERT_TYPE_ORDER, Alert, AlertType, Severity
from crypto_hunter.utils.helpers import utc_now

RULE = "=" * 50
SUBRULE = "-" * 30

SEVERITY_HEADERS = {
    Severity.CRITICAL: "🚨 Critical",
    Severity.WARNING: "⚡ Warning",
    Severity.NORMAL: "ℹ️ Normal",
}

TYPE_LABELS = {
    AlertType.GAINER: "Top gainers",
    AlertType.VOLUME_SPIKE: "Volume spikes",
    AlertType.PRICE_ALERT: "Price alerts",
    AlertType.VOLATILITY: "Volatility",
    AlertType.SUPPORT_RESISTANCE: "Support/resistance",
}


class ReportFormatter:
    """Groups alerts by severity (most severe first) and appends per-type counts."""

    def __init__(self, title: str = "Crypto Hunter - Market Movement Report"):
        self.title = title

    def format_report(self, alerts: List[Alert], generated_at: Optional[datetime] = None) -> str:
        generated_at = generated_at or utc_now()
        lines = [
            RULE,
            f"🐂 {self.title}",
            f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
            RULE,
            "",
        ]

        if not alerts:
            lines.append("✅ No unusual movement detected")
            return "\n".join(lines) + "\n"

        for severity, group in self.group_by_severity(alerts).items():
            if not group:
                continue
            lines.append(f"{SEVERITY_HEADERS[severity]} ({len(group)})")
            lines.append(SUBRULE)
            lines.extend(f"  {alert.message}" for alert in group)
            lines.append("")

        lines.append("📈 Summary:")
        counts = self.count_by_type(alerts)
        for alert_type in ALERT_TYPE_ORDER:
            lines.append(f"  - {TYPE_LABELS[alert_type]}: {counts[alert_type]}")
        lines.append("")
        lines.append(RULE)
        return "\n".join(lines) + "\n"

    def format_notification(self, alerts: List[Alert]) -> str:
        """Compact text for chat channels: one alert message per line."""
        return "\n".join(alert.message for alert in alerts)

    @staticmethod
    def group_by_severity(alerts: List[Alert]) -> Dict[Severity, List[Alert]]:
        groups: Dict[Severity, List[Alert]] = {
            Severity.CRITICAL: [], Severity.WARNING: [], Severity.NORMAL: [],
        }
        for alert in alerts:
            groups[alert.severity].append(alert)
        return groups

    @staticmethod
    def count_by_type(alerts: List[Alert]) -> Dict[AlertType, int]:
        counts = {alert_type: 0 for alert_type in AlertType}
        for alert in alerts:
            counts[alert.type] += 1
        return counts
