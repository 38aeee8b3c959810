"""Render a statistics snapshot as chat-ready text lines."""

from __future__ import annotations

from datetime import date

from callstats.domain.models import AgentStats, StatisticsSnapshot

EMPTY_MARK = "—"
ITEM_MARK = "—"

LABELS: dict[str, dict[str, str]] = {
    "en": {
        "title": "Call statistics for {date}",
        "total_calls": "Total calls",
        "inbound": "Inbound",
        "outbound": "Outbound",
        "missed": "Missed",
        "missed_outbound": "Failed outbound",
        "unique_numbers": "Unique numbers",
        "unanswered_total": "Unanswered",
        "unanswered_numbers": "Unanswered",
        "by_agent": "By agent:",
    },
    "ru": {
        "title": "Статистика звонков за {date}",
        "total_calls": "Всего звонков",
        "inbound": "Входящих",
        "outbound": "Исходящих",
        "missed": "Пропущенных",
        "missed_outbound": "Неудачных исходящих",
        "unique_numbers": "Уникальных номеров",
        "unanswered_total": "Неотвеченных",
        "unanswered_numbers": "Неотвеченные",
        "by_agent": "По менеджерам:",
    },
}


def render_report(snapshot: StatisticsSnapshot, report_date: date, locale: str = "en") -> list[str]:
    """Return the report lines: header totals, then one block per agent.

    Agents are listed in the order they first appeared in the call sequence.
    A snapshot without agents renders the header only.
    """
    labels = LABELS.get(locale, LABELS["en"])
    lines = [
        labels["title"].format(date=report_date.isoformat()),
        f"{labels['total_calls']}: {snapshot.total_calls}",
        f"{labels['inbound']}: {snapshot.total_inbound}",
    ]
    if snapshot.unanswered_count is None:
        lines.append(f"{labels['outbound']}: {snapshot.total_outbound}")
    lines.append(f"{labels['missed']}: {snapshot.missed_inbound}")
    if snapshot.unanswered_count is None:
        lines.append(f"{labels['missed_outbound']}: {snapshot.missed_outbound}")
    lines.append(f"{labels['unique_numbers']}: {snapshot.unique_numbers}")
    if snapshot.unanswered_count is not None:
        lines.append(f"{labels['unanswered_total']}: {snapshot.unanswered_count}")

    if not snapshot.agents:
        return lines

    lines.extend(["", labels["by_agent"]])
    for name, stats in snapshot.agents.items():
        lines.append(f" {name}")
        lines.extend(f"{ITEM_MARK} {line}" for line in _agent_lines(stats, labels))
    return lines


def render_text(snapshot: StatisticsSnapshot, report_date: date, locale: str = "en") -> str:
    return "\n".join(render_report(snapshot, report_date, locale))


def _agent_lines(stats: AgentStats, labels: dict[str, str]) -> list[str]:
    lines = [
        f"{labels['total_calls']}: {stats.total_calls}",
        f"{labels['inbound']}: {stats.inbound}",
    ]
    if stats.unanswered_numbers is None:
        lines.append(f"{labels['outbound']}: {stats.outbound}")
    lines.append(f"{labels['missed']}: {stats.missed_inbound}")
    if stats.unanswered_numbers is None:
        lines.append(f"{labels['missed_outbound']}: {stats.missed_outbound}")
    lines.append(f"{labels['unique_numbers']}: {stats.unique_numbers}")
    if stats.unanswered_numbers is not None:
        numbers = ", ".join(stats.unanswered_numbers) or EMPTY_MARK
        lines.append(f"{labels['unanswered_numbers']}: {numbers}")
    return lines
