"""
Append-only store for model review results.

routelens/src/routelens/insights.py
"""

import logging
from pathlib import Path
from typing import Optional, Union

from routelens.adapter import Insight, InsightError
from routelens.filesystem import publish_json, safe_name, safe_timestamp

__all__ = ["INSIGHT_MARKER", "insight_filename", "save_insight"]

logger = logging.getLogger(__name__)

INSIGHT_MARKER = "_AI_Insights_"


def insight_filename(handler: str, timestamp: Optional[str] = None) -> str:
    """``{handler}_AI_Insights_{safe timestamp}``, without the extension."""
    return f"{safe_name(handler)}{INSIGHT_MARKER}{safe_timestamp(timestamp)}"


def save_insight(
    insight: Union[Insight, InsightError],
    handler: str,
    directory: Path,
    timestamp: Optional[str] = None,
) -> Path:
    """Publish an insight without ever overwriting an earlier one."""
    path = publish_json(Path(directory), insight_filename(handler, timestamp), insight.to_dict())
    if isinstance(insight, InsightError):
        logger.warning(f"Saved error insight for {handler} to {path.name}: {insight.error}")
    else:
        logger.info(f"Saved insight for {handler} to {path.name}")
    return path
