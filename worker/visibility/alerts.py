"""Alerts raised from daily visibility scores."""

from datetime import date

import structlog

from worker.visibility.models import AlertSeverity, AlertType, VisibilityAlert, VisibilityScore

logger = structlog.get_logger(__name__)

DRIFT_ALERT_PCT = 50.0
DRIFT_HIGH_PCT = 100.0
SCORE_LOW = 5.0
SCORE_HIGH = 95.0


def detect_alerts(day: date, scores: list[VisibilityScore]) -> list[VisibilityAlert]:
    """
    Find significant drift and threshold breaches.

    Drift alerts fire when week-over-week change exceeds 50% in either
    direction (high severity past 100%). Threshold alerts fire for scores
    below 5 or above 95.

    Returns:
        Drift alerts by descending magnitude, then threshold alerts by score
    """
    alerts = []

    drifting = [s for s in scores if abs(s.drift_pct) > DRIFT_ALERT_PCT]
    for score in sorted(drifting, key=lambda s: -abs(s.drift_pct)):
        direction = "increased" if score.drift_pct > 0 else "decreased"
        alerts.append(
            VisibilityAlert(
                day=day,
                type=AlertType.DRIFT,
                severity=(
                    AlertSeverity.HIGH
                    if abs(score.drift_pct) > DRIFT_HIGH_PCT
                    else AlertSeverity.MEDIUM
                ),
                message=(
                    f"{score.domain} visibility {direction} by "
                    f"{abs(score.drift_pct):.1f}% for {score.assistant}"
                ),
                domain=score.domain,
                assistant=score.assistant,
            )
        )

    breaches = [s for s in scores if s.score < SCORE_LOW or s.score > SCORE_HIGH]
    for score in sorted(breaches, key=lambda s: s.score):
        alerts.append(
            VisibilityAlert(
                day=day,
                type=AlertType.THRESHOLD,
                severity=AlertSeverity.LOW if score.score < SCORE_LOW else AlertSeverity.MEDIUM,
                message=f"{score.domain} has {score.score:.1f} visibility score for {score.assistant}",
                domain=score.domain,
                assistant=score.assistant,
            )
        )

    for alert in alerts:
        logger.info(
            "visibility_alert",
            type=alert.type.value,
            severity=alert.severity.value,
            domain=alert.domain,
            assistant=alert.assistant,
        )
    return alerts
